"""Prometheus metrics definitions and helpers."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests processed",
    ("method", "route", "status"),
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ("method", "route"),
    buckets=(
        0.005,
        0.01,
        0.025,
        0.05,
        0.1,
        0.25,
        0.5,
        1.0,
        2.5,
        5.0,
        10.0,
    ),
)

ERROR_COUNTER = Counter(
    "app_internal_errors_total",
    "Number of requests ending in internal server error responses",
    ("method", "route"),
)

TRANSCRIPTION_ATTEMPTS = Counter(
    "transcription_attempts_total",
    "Speech-to-text provider calls by outcome",
    ("provider", "outcome"),
)

TRANSCRIPTION_FALLBACKS = Counter(
    "transcription_fallbacks_total",
    "Transcriptions handed to the secondary provider",
    ("primary", "reason"),
)

STAGE_DURATION = Histogram(
    "analysis_stage_duration_seconds",
    "Duration of each analysis stage",
    ("stage", "outcome"),
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 40.0, 80.0),
)

STAGE_TOKENS = Counter(
    "analysis_stage_tokens_total",
    "Tokens consumed by analysis stages",
    ("stage", "direction"),
)

PIPELINE_RUNS = Counter(
    "report_pipeline_runs_total",
    "Report pipeline runs by terminal outcome",
    ("outcome",),
)

AUDIO_UPLOAD_BYTES = Histogram(
    "audio_upload_bytes",
    "Declared size of uploaded voice notes",
    ("route",),
    buckets=(1_000, 10_000, 100_000, 500_000, 1_000_000, 5_000_000, 10_000_000, 25_000_000),
)


def observe_request(
    method: str,
    route: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """Record metrics for a completed HTTP request."""

    safe_route = route or "unknown"
    safe_method = method or "UNKNOWN"
    status_label = str(status_code)
    observed_duration = duration_seconds if duration_seconds >= 0 else 0

    REQUEST_COUNT.labels(
        method=safe_method,
        route=safe_route,
        status=status_label,
    ).inc()
    REQUEST_LATENCY.labels(
        method=safe_method,
        route=safe_route,
    ).observe(observed_duration)

    if status_code >= 500:
        ERROR_COUNTER.labels(
            method=safe_method,
            route=safe_route,
        ).inc()


def observe_transcription(provider: str, success: bool) -> None:
    TRANSCRIPTION_ATTEMPTS.labels(
        provider=provider,
        outcome="success" if success else "failure",
    ).inc()


def observe_fallback(primary: str, reason: str) -> None:
    TRANSCRIPTION_FALLBACKS.labels(primary=primary, reason=reason).inc()


def observe_stage(
    stage: str,
    success: bool,
    duration_seconds: float,
    input_tokens: int = 0,
    output_tokens: int = 0,
) -> None:
    """Record duration and token usage for one analysis stage."""

    STAGE_DURATION.labels(
        stage=stage,
        outcome="success" if success else "failure",
    ).observe(max(duration_seconds, 0.0))
    if input_tokens:
        STAGE_TOKENS.labels(stage=stage, direction="input").inc(input_tokens)
    if output_tokens:
        STAGE_TOKENS.labels(stage=stage, direction="output").inc(output_tokens)


def observe_pipeline_run(outcome: str) -> None:
    PIPELINE_RUNS.labels(outcome=outcome).inc()


def observe_upload(route: str, size_bytes: int) -> None:
    AUDIO_UPLOAD_BYTES.labels(route=route).observe(max(size_bytes, 0))
