"""Application entry point and FastAPI app factory."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
import sys
from pathlib import Path
from typing import Any

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .config.settings import settings
from .controllers import reports, transcription
from .database import dispose_engine, init_models
from .middleware import StructuredLoggingMiddleware, TelemetryMiddleware
from .views import error_envelope

logger = logging.getLogger(__name__)


_LINE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_QUIET_LIBRARIES = ("botocore", "boto3", "urllib3", "httpx", "httpcore", "sqlalchemy.engine")


def _rotating_handler(path_value: str, max_bytes: int, line_format: str = _LINE_FORMAT) -> RotatingFileHandler:
    log_path = Path(path_value)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=5, encoding="utf-8")
    handler.setFormatter(logging.Formatter(line_format))
    return handler


def _stdout_handler(line_format: str) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(line_format))
    return handler


def _route(name: str, *handlers: logging.Handler, level: int, propagate: bool = True) -> None:
    target = logging.getLogger(name)
    target.handlers.clear()
    for handler in handlers:
        target.addHandler(handler)
    target.setLevel(level)
    target.propagate = propagate


def _configure_logging() -> None:
    """Route access lines, pipeline progress and raw transcripts to their own sinks.

    Access lines go to stdout only. Pipeline records land in their own file and
    also reach the root handlers. Transcripts are written to their file only.
    """

    level = logging.DEBUG if settings.debug else logging.INFO

    _route("", _stdout_handler(_LINE_FORMAT), _rotating_handler(settings.log_file, 1_000_000), level=level)
    _route("voicecare.middleware.structured", _stdout_handler("%(message)s"), level=level, propagate=False)
    _route("voicecare.pipelines", _rotating_handler(settings.pipeline_log_file, 500_000), level=level)
    _route(
        "voicecare.logs.transcript",
        _rotating_handler(settings.transcript_log_file, 500_000),
        level=logging.INFO,
        propagate=False,
    )

    for name in _QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    _configure_logging()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        description="Voice symptom reports: transcription, clinical analysis and doctor matching",
    )

    app.add_middleware(TelemetryMiddleware)
    app.add_middleware(StructuredLoggingMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    app.include_router(reports.router)
    app.include_router(transcription.router)

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, str]:
        """Root endpoint."""

        return {
            "message": f"Welcome to {settings.app_name}",
            "version": settings.app_version,
            "status": "operational",
        }

    @app.get("/health", include_in_schema=False)
    async def health_check() -> dict[str, Any]:
        """Liveness plus the backends report jobs are running against."""

        return {
            "status": "healthy",
            "service": settings.app_name,
            "version": settings.app_version,
            "jobStore": settings.jobs.backend,
            "persistence": settings.persistence_enabled,
            "llmModel": settings.bedrock.model_id,
        }

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        """Expose application metrics for Prometheus scraping."""

        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request, exc):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_envelope(exc.detail),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request, exc):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=error_envelope("Internal server error"),
        )

    @app.on_event("startup")
    async def startup_event() -> None:
        await init_models()

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        await dispose_engine()

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "voicecare.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
