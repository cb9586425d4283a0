"""Telemetry helpers and metrics."""

from .metrics import (
    AUDIO_UPLOAD_BYTES,
    ERROR_COUNTER,
    PIPELINE_RUNS,
    REQUEST_COUNT,
    REQUEST_LATENCY,
    STAGE_DURATION,
    STAGE_TOKENS,
    TRANSCRIPTION_ATTEMPTS,
    TRANSCRIPTION_FALLBACKS,
    observe_fallback,
    observe_pipeline_run,
    observe_request,
    observe_stage,
    observe_transcription,
    observe_upload,
)

__all__ = [
    "AUDIO_UPLOAD_BYTES",
    "ERROR_COUNTER",
    "PIPELINE_RUNS",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "STAGE_DURATION",
    "STAGE_TOKENS",
    "TRANSCRIPTION_ATTEMPTS",
    "TRANSCRIPTION_FALLBACKS",
    "observe_fallback",
    "observe_pipeline_run",
    "observe_request",
    "observe_stage",
    "observe_transcription",
    "observe_upload",
]
