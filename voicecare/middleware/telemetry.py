"""Prometheus instrumentation for the report and transcription routes."""

from __future__ import annotations

import time
from typing import Any

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from voicecare.telemetry import observe_request, observe_upload

UNMATCHED_ROUTE = "unmatched"

AUDIO_UPLOAD_ROUTES = frozenset({"/reports/generate", "/transcribe"})


def route_template(request: Request) -> str:
    """Return the path template the router matched, so job ids never become labels.

    The router stores the matched route in the scope, so this is only
    meaningful once the request has been dispatched.
    """

    matched: Any = request.scope.get("route")
    path = getattr(matched, "path", None)
    return path or UNMATCHED_ROUTE


class TelemetryMiddleware(BaseHTTPMiddleware):
    """Time every request and size every voice note upload."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            route = route_template(request)
            observe_request(request.method, route, status_code, time.perf_counter() - started)
            if request.method == "POST" and route in AUDIO_UPLOAD_ROUTES:
                declared = request.headers.get("content-length", "")
                if declared.isdigit():
                    observe_upload(route, int(declared))
