"""Per-request access log lines tagged with report job context."""

from __future__ import annotations

import json
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

logger = logging.getLogger("voicecare.middleware.structured")

REQUEST_ID_HEADER = "X-Request-ID"

_STATUS_COLOURS = (
    (500, "\u001b[31m"),
    (400, "\u001b[33m"),
    (200, "\u001b[32m"),
)
_DEFAULT_COLOUR = "\u001b[36m"
_RESET = "\u001b[0m"

_CONSOLE_FIELDS = ("request_id", "method", "path", "job_id", "status", "duration_ms")


def _colour_for(status: int) -> str:
    for floor, colour in _STATUS_COLOURS:
        if status >= floor:
            return colour
    return _DEFAULT_COLOUR


def render_console_line(entry: dict[str, Any]) -> str:
    """Render the short coloured form shown on stdout."""

    text = " ".join(
        f"{name}={entry[name] if entry.get(name) is not None else '-'}" for name in _CONSOLE_FIELDS
    )
    return f"{_colour_for(entry.get('status') or 0)}{text}{_RESET}"


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """Write one access entry per request; job polls and cancels carry the job id."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        entry: dict[str, Any] = {
            "at": datetime.now(timezone.utc).isoformat(),
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "job_id": request.query_params.get("jobId"),
            "client": request.client.host if request.client else None,
        }
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            entry.update(status=500, error=repr(exc))
            entry["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)
            logger.exception(render_console_line(entry))
            raise

        entry["status"] = response.status_code
        entry["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)
        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(render_console_line(entry))
        logger.debug(json.dumps(entry, default=str, separators=(",", ":")))
        return response
