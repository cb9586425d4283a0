"""HTTP middleware: access logging and Prometheus timing."""

from .logging import REQUEST_ID_HEADER, StructuredLoggingMiddleware
from .telemetry import TelemetryMiddleware, route_template

__all__ = [
    "REQUEST_ID_HEADER",
    "StructuredLoggingMiddleware",
    "TelemetryMiddleware",
    "route_template",
]
