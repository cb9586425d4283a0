"""Tests for payload validation, provider fallback and the HTTP adapters."""

from __future__ import annotations

import json

import httpx
import pytest

from conftest import FakeProvider, transcript_ok
from voicecare.config.settings import AssemblyAIConfig, DeepgramConfig
from voicecare.services.assemblyai import AssemblyAITranscriber
from voicecare.services.deepgram import DeepgramTranscriber
from voicecare.services.provider_errors import ProviderErrorKind, kind_for_status
from voicecare.services.transcribe import (
    TranscriptionGateway,
    normalize_mime_type,
    validate_audio_payload,
)
from voicecare.services.transcription_types import TranscriptionResult

AUDIO = b"\x1a\x45\xdf\xa3" * 16


def _failure(provider: str, kind: ProviderErrorKind, message: str = "boom") -> TranscriptionResult:
    return TranscriptionResult.failure(provider, message, kind)


def _gateway(primary: FakeProvider, secondary: FakeProvider, config, *, fallback_enabled: bool = True):
    return TranscriptionGateway(
        {primary.name: primary, secondary.name: secondary},
        primary=primary.name,
        fallback_enabled=fallback_enabled,
        config=config,
    )


def test_validate_audio_payload_rejects_unknown_format(transcription_config):
    error = validate_audio_payload(AUDIO, "video/avi", transcription_config)
    assert error.startswith("Unsupported audio format: video/avi")


def test_validate_audio_payload_size_bounds(transcription_config):
    assert "too small" in validate_audio_payload(b"abc", "audio/wav", transcription_config)
    assert "too large" in validate_audio_payload(b"x" * 1001, "audio/wav", transcription_config)
    assert validate_audio_payload(b"x" * 1000, "audio/wav", transcription_config) is None


def test_codec_parameters_and_aliases_are_folded(transcription_config):
    assert normalize_mime_type("Audio/WebM; codecs=opus") == "audio/webm"
    assert normalize_mime_type("audio/x-wav") == "audio/wav"
    assert normalize_mime_type("video/webm") == "audio/webm"
    assert validate_audio_payload(AUDIO, "audio/x-wav", transcription_config) is None
    assert validate_audio_payload(AUDIO, "audio/webm;codecs=opus", transcription_config) is None


def test_kind_for_status_classification():
    assert kind_for_status(401) is ProviderErrorKind.AUTH
    assert kind_for_status(402) is ProviderErrorKind.QUOTA
    assert kind_for_status(429) is ProviderErrorKind.RATE_LIMITED
    assert kind_for_status(503) is ProviderErrorKind.SERVER_ERROR
    assert kind_for_status(415) is ProviderErrorKind.INVALID_INPUT


@pytest.mark.asyncio
async def test_invalid_payload_never_reaches_providers(transcription_config):
    primary = FakeProvider("deepgram", [])
    secondary = FakeProvider("assemblyai", [])
    gateway = _gateway(primary, secondary, transcription_config)

    result = await gateway.transcribe(AUDIO, "text/plain")

    assert not result.success
    assert result.error_kind is ProviderErrorKind.INVALID_INPUT
    assert primary.calls == 0
    assert secondary.calls == 0


@pytest.mark.asyncio
async def test_primary_success_skips_fallback(transcription_config):
    primary = FakeProvider("deepgram", [transcript_ok("deepgram")])
    secondary = FakeProvider("assemblyai", [])
    gateway = _gateway(primary, secondary, transcription_config)

    result = await gateway.transcribe(AUDIO, "audio/webm")

    assert result.success
    assert result.provider == "deepgram"
    assert secondary.calls == 0


@pytest.mark.asyncio
async def test_timeout_falls_back_exactly_once(transcription_config):
    primary = FakeProvider("deepgram", [_failure("deepgram", ProviderErrorKind.TIMEOUT)])
    secondary = FakeProvider("assemblyai", [transcript_ok("assemblyai")])
    gateway = _gateway(primary, secondary, transcription_config)

    result = await gateway.transcribe(AUDIO, "audio/webm")

    assert result.success
    assert result.provider == "assemblyai"
    assert primary.calls == 1
    assert secondary.calls == 1


@pytest.mark.parametrize(
    "kind",
    [ProviderErrorKind.AUTH, ProviderErrorKind.QUOTA, ProviderErrorKind.INVALID_INPUT],
)
@pytest.mark.asyncio
async def test_terminal_failures_do_not_fall_back(transcription_config, kind):
    primary = FakeProvider("deepgram", [_failure("deepgram", kind, "Invalid Deepgram API key")])
    secondary = FakeProvider("assemblyai", [transcript_ok("assemblyai")])
    gateway = _gateway(primary, secondary, transcription_config)

    result = await gateway.transcribe(AUDIO, "audio/webm")

    assert not result.success
    assert result.error_kind is kind
    assert secondary.calls == 0


@pytest.mark.asyncio
async def test_both_failing_reports_primary_error(transcription_config):
    primary = FakeProvider("deepgram", [_failure("deepgram", ProviderErrorKind.SERVER_ERROR, "Deepgram API error: 503")])
    secondary = FakeProvider("assemblyai", [_failure("assemblyai", ProviderErrorKind.TIMEOUT)])
    gateway = _gateway(primary, secondary, transcription_config)

    result = await gateway.transcribe(AUDIO, "audio/webm")

    assert not result.success
    assert result.provider == "deepgram"
    assert result.error == "Deepgram API error: 503"


@pytest.mark.asyncio
async def test_empty_transcript_counts_as_failure(transcription_config):
    primary = FakeProvider("deepgram", [transcript_ok("deepgram", text="   ")])
    secondary = FakeProvider("assemblyai", [transcript_ok("assemblyai")])
    gateway = _gateway(primary, secondary, transcription_config)

    result = await gateway.transcribe(AUDIO, "audio/webm")

    assert result.success
    assert result.provider == "assemblyai"


@pytest.mark.asyncio
async def test_fallback_disabled(transcription_config):
    primary = FakeProvider("deepgram", [_failure("deepgram", ProviderErrorKind.RATE_LIMITED)])
    secondary = FakeProvider("assemblyai", [transcript_ok("assemblyai")])
    gateway = _gateway(primary, secondary, transcription_config, fallback_enabled=False)

    result = await gateway.transcribe(AUDIO, "audio/webm")

    assert not result.success
    assert gateway.secondary is None
    assert secondary.calls == 0


def test_health_reports_configured_providers(transcription_config):
    primary = FakeProvider("deepgram", [], configured=True)
    secondary = FakeProvider("assemblyai", [], configured=False)
    gateway = _gateway(primary, secondary, transcription_config)

    assert gateway.health() == {"deepgram": True, "assemblyai": False}
    assert gateway.primary == "deepgram"
    assert gateway.secondary == "assemblyai"


def test_unknown_primary_is_rejected(transcription_config):
    with pytest.raises(ValueError):
        TranscriptionGateway({}, primary="deepgram", config=transcription_config)


DEEPGRAM_RESPONSE = {
    "metadata": {"duration": 4.2},
    "results": {
        "channels": [
            {
                "alternatives": [
                    {
                        "transcript": "My head hurts.",
                        "confidence": 0.97,
                        "words": [
                            {"word": "my", "punctuated_word": "My", "start": 0.1, "end": 0.3, "confidence": 0.99},
                            {"word": "head", "start": 0.3, "end": 0.6, "confidence": 0.98},
                            {"word": "hurts", "punctuated_word": "hurts.", "start": 0.6, "end": 1.0, "confidence": 0.95},
                        ],
                    }
                ]
            }
        ]
    },
}


@pytest.mark.asyncio
async def test_deepgram_parses_response(transcription_config):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["content_type"] = request.headers["Content-Type"]
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=DEEPGRAM_RESPONSE)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        provider = DeepgramTranscriber(
            DeepgramConfig(api_key="dg-key"),
            retry_config=transcription_config,
            client=client,
        )
        result = await provider.transcribe(AUDIO, "audio/webm")

    assert result.success
    assert result.transcript == "My head hurts."
    assert result.duration_seconds == 4.2
    assert [word.word for word in result.words] == ["My", "head", "hurts."]
    assert seen["auth"] == "Token dg-key"
    assert seen["content_type"] == "audio/webm"
    assert seen["params"]["smart_format"] == "true"
    assert seen["params"]["diarize"] == "false"


@pytest.mark.asyncio
async def test_deepgram_auth_failure_is_terminal(transcription_config):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"err_msg": "bad key"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        provider = DeepgramTranscriber(
            DeepgramConfig(api_key="dg-key"),
            retry_config=transcription_config,
            client=client,
        )
        result = await provider.transcribe(AUDIO, "audio/webm")

    assert not result.success
    assert result.error == "Invalid Deepgram API key"
    assert result.error_kind is ProviderErrorKind.AUTH
    assert result.error_kind.terminal


@pytest.mark.asyncio
async def test_deepgram_retries_rate_limit(transcription_config):
    attempts = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["count"] += 1
        if attempts["count"] == 1:
            return httpx.Response(429)
        return httpx.Response(200, json=DEEPGRAM_RESPONSE)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        provider = DeepgramTranscriber(
            DeepgramConfig(api_key="dg-key"),
            retry_config=transcription_config,
            client=client,
        )
        result = await provider.transcribe(AUDIO, "audio/webm")

    assert result.success
    assert attempts["count"] == 2


@pytest.mark.asyncio
async def test_deepgram_retries_timeouts_then_gives_up(transcription_config):
    attempts = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["count"] += 1
        raise httpx.ReadTimeout("slow upstream", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        provider = DeepgramTranscriber(
            DeepgramConfig(api_key="dg-key"),
            retry_config=transcription_config,
            client=client,
        )
        result = await provider.transcribe(AUDIO, "audio/webm")

    assert attempts["count"] == transcription_config.max_retries
    assert result.error == "Request timed out. Please try again."
    assert result.error_kind is ProviderErrorKind.TIMEOUT


@pytest.mark.asyncio
async def test_deepgram_recovers_after_one_timeout(transcription_config):
    attempts = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["count"] += 1
        if attempts["count"] == 1:
            raise httpx.ConnectTimeout("no answer", request=request)
        return httpx.Response(200, json=DEEPGRAM_RESPONSE)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        provider = DeepgramTranscriber(
            DeepgramConfig(api_key="dg-key"),
            retry_config=transcription_config,
            client=client,
        )
        result = await provider.transcribe(AUDIO, "audio/webm")

    assert result.success
    assert attempts["count"] == 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status, kind, message",
    [
        (402, ProviderErrorKind.QUOTA, "Deepgram API quota exceeded"),
        (503, ProviderErrorKind.SERVER_ERROR, "Deepgram API error: 503"),
    ],
)
async def test_deepgram_status_errors_are_not_retried(transcription_config, status, kind, message):
    attempts = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["count"] += 1
        return httpx.Response(status)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        provider = DeepgramTranscriber(
            DeepgramConfig(api_key="dg-key"),
            retry_config=transcription_config,
            client=client,
        )
        result = await provider.transcribe(AUDIO, "audio/webm")

    assert attempts["count"] == 1
    assert result.error == message
    assert result.error_kind is kind


@pytest.mark.asyncio
async def test_zero_attempts_reports_an_error_instead_of_crashing(transcription_config):
    no_attempts = transcription_config.model_copy(update={"max_retries": 0})
    provider = DeepgramTranscriber(DeepgramConfig(api_key="dg-key"), retry_config=no_attempts)

    result = await provider.transcribe(AUDIO, "audio/webm")

    assert not result.success
    assert result.error == "Deepgram request was never attempted"
    assert result.error_kind is ProviderErrorKind.UNKNOWN


@pytest.mark.asyncio
async def test_deepgram_without_key_is_not_configured(transcription_config):
    provider = DeepgramTranscriber(DeepgramConfig(api_key=None), retry_config=transcription_config)

    result = await provider.transcribe(AUDIO, "audio/webm")

    assert not provider.configured
    assert result.error_kind is ProviderErrorKind.NOT_CONFIGURED


@pytest.mark.asyncio
async def test_assemblyai_upload_request_and_poll(transcription_config):
    polls = {"count": 0}
    requested = {}

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/v2/upload":
            return httpx.Response(200, json={"upload_url": "https://cdn.example/audio"})
        if path == "/v2/transcript" and request.method == "POST":
            requested.update(json.loads(request.content))
            return httpx.Response(200, json={"id": "tx-1", "status": "queued"})
        if path == "/v2/transcript/tx-1":
            polls["count"] += 1
            if polls["count"] == 1:
                return httpx.Response(200, json={"id": "tx-1", "status": "processing"})
            return httpx.Response(
                200,
                json={
                    "id": "tx-1",
                    "status": "completed",
                    "text": "Sore throat since Monday.",
                    "confidence": 0.88,
                    "audio_duration": 3,
                    "words": [
                        {"text": "Sore", "start": 100, "end": 400, "confidence": 0.9},
                        {"text": "throat", "start": 400, "end": 900, "confidence": 0.87},
                    ],
                },
            )
        return httpx.Response(404)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        provider = AssemblyAITranscriber(
            AssemblyAIConfig(api_key="aai-key", poll_interval_seconds=0.0, max_poll_attempts=5),
            retry_config=transcription_config,
            client=client,
        )
        result = await provider.transcribe(AUDIO, "audio/webm", language="en-GB")

    assert result.success
    assert result.transcript == "Sore throat since Monday."
    assert result.duration_seconds == 3.0
    assert result.words[0].start == pytest.approx(0.1)
    assert result.words[1].end == pytest.approx(0.9)
    assert requested["audio_url"] == "https://cdn.example/audio"
    assert requested["language_code"] == "en_gb"
    assert polls["count"] == 2


@pytest.mark.asyncio
async def test_assemblyai_reports_job_error(transcription_config):
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/v2/upload":
            return httpx.Response(200, json={"upload_url": "https://cdn.example/audio"})
        if path == "/v2/transcript":
            return httpx.Response(200, json={"id": "tx-2"})
        return httpx.Response(200, json={"id": "tx-2", "status": "error", "error": "Audio is corrupt"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        provider = AssemblyAITranscriber(
            AssemblyAIConfig(api_key="aai-key", poll_interval_seconds=0.0),
            retry_config=transcription_config,
            client=client,
        )
        result = await provider.transcribe(AUDIO, "audio/webm")

    assert not result.success
    assert result.error == "Audio is corrupt"
