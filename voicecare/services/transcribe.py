"""Speech-to-text gateway with primary/fallback provider selection.

The gateway validates the payload before any network call, asks the
configured primary provider first and hands the recording to the secondary
provider only when the primary failed for a reason another provider could
overcome (timeouts, rate limiting, outages, missing credentials). Format,
size, authentication and quota failures are returned as-is.
"""

from __future__ import annotations

import logging
from typing import Final, Mapping

from voicecare.config.settings import TranscriptionConfig, settings
from voicecare.telemetry import observe_fallback, observe_transcription

from .assemblyai import AssemblyAITranscriber
from .deepgram import DeepgramTranscriber
from .provider_errors import ProviderErrorKind
from .transcription_types import TranscriptionProvider, TranscriptionResult

logger = logging.getLogger("voicecare.pipelines.transcription")

SUPPORTED_AUDIO_FORMATS: Final[frozenset[str]] = frozenset(
    {
        "audio/webm",
        "audio/wav",
        "audio/mp3",
        "audio/mpeg",
        "audio/mp4",
        "audio/ogg",
        "audio/flac",
    }
)

MIME_TYPE_ALIASES: Final[dict[str, str]] = {
    "audio/x-wav": "audio/wav",
    "audio/wave": "audio/wav",
    "audio/vnd.wave": "audio/wav",
    "audio/x-flac": "audio/flac",
    "audio/x-m4a": "audio/mp4",
    "video/webm": "audio/webm",
    "video/mp4": "audio/mp4",
}


def normalize_mime_type(mime_type: str | None) -> str:
    """Drop codec parameters and fold aliases (``audio/x-wav`` -> ``audio/wav``)."""

    if not mime_type:
        return ""
    base = mime_type.split(";", 1)[0].strip().lower()
    return MIME_TYPE_ALIASES.get(base, base)


def is_valid_audio_format(mime_type: str | None) -> bool:
    return normalize_mime_type(mime_type) in SUPPORTED_AUDIO_FORMATS


def validate_audio_payload(
    audio: bytes,
    mime_type: str | None,
    config: TranscriptionConfig | None = None,
) -> str | None:
    """Return a user-facing error message when the payload cannot be transcribed."""

    limits = config or settings.transcription
    if not is_valid_audio_format(mime_type):
        return (
            f"Unsupported audio format: {mime_type}. "
            "Supported formats: webm, wav, mp3, mp4, ogg, flac"
        )
    if len(audio) < limits.min_audio_bytes:
        return "Audio file is too small. Please record a longer message."
    if len(audio) > limits.max_audio_bytes:
        max_mb = limits.max_audio_bytes // (1024 * 1024)
        return f"Audio file is too large. Maximum size is {max_mb}MB."
    return None


class TranscriptionGateway:
    """Route a recording through the primary provider and, if allowed, the fallback."""

    def __init__(
        self,
        providers: Mapping[str, TranscriptionProvider],
        *,
        primary: str,
        fallback_enabled: bool = True,
        config: TranscriptionConfig | None = None,
    ) -> None:
        if primary not in providers:
            raise ValueError(f"Primary provider '{primary}' is not registered")
        self._providers = dict(providers)
        self._primary = primary
        self._fallback_enabled = fallback_enabled
        self._config = config or settings.transcription

    @property
    def primary(self) -> str:
        return self._primary

    @property
    def secondary(self) -> str | None:
        if not self._fallback_enabled:
            return None
        for name in self._providers:
            if name != self._primary:
                return name
        return None

    def health(self) -> dict[str, bool]:
        """Report which providers have credentials configured."""

        return {name: provider.configured for name, provider in self._providers.items()}

    async def transcribe(
        self,
        audio: bytes,
        mime_type: str | None = "audio/webm",
        language: str | None = None,
    ) -> TranscriptionResult:
        validation_error = validate_audio_payload(audio, mime_type, self._config)
        if validation_error:
            logger.info("Rejected audio payload bytes=%s mime=%s: %s", len(audio), mime_type, validation_error)
            return TranscriptionResult.failure(
                self._primary,
                validation_error,
                ProviderErrorKind.INVALID_INPUT,
            )

        normalized_mime = normalize_mime_type(mime_type)
        result = await self._call(self._primary, audio, normalized_mime, language)
        if result.success or result.error_kind is None or result.error_kind.terminal:
            return result

        secondary = self.secondary
        if secondary is None:
            return result

        logger.warning(
            "%s failed (%s: %s); trying %s fallback",
            self._primary,
            result.error_kind.value,
            result.error,
            secondary,
        )
        observe_fallback(self._primary, result.error_kind.value)
        fallback = await self._call(secondary, audio, normalized_mime, language)
        if fallback.success:
            return fallback

        logger.error("Fallback provider %s also failed: %s", secondary, fallback.error)
        return result

    async def _call(
        self,
        name: str,
        audio: bytes,
        mime_type: str,
        language: str | None,
    ) -> TranscriptionResult:
        result = await self._providers[name].transcribe(audio, mime_type, language)
        if result.success and not result.transcript.strip():
            result = TranscriptionResult.failure(
                name,
                "No speech detected in the recording.",
                ProviderErrorKind.MALFORMED,
                duration_seconds=result.duration_seconds,
            )
        observe_transcription(name, result.success)
        return result


_DEFAULT_GATEWAY: TranscriptionGateway | None = None


def build_transcription_gateway() -> TranscriptionGateway:
    """Assemble the gateway from application settings."""

    providers: dict[str, TranscriptionProvider] = {
        DeepgramTranscriber.name: DeepgramTranscriber(),
        AssemblyAITranscriber.name: AssemblyAITranscriber(),
    }
    return TranscriptionGateway(
        providers,
        primary=settings.transcription.primary_provider,
        fallback_enabled=settings.transcription.fallback_enabled,
    )


def get_transcription_gateway() -> TranscriptionGateway:
    """Return a lazily-instantiated gateway singleton."""

    global _DEFAULT_GATEWAY
    if _DEFAULT_GATEWAY is None:
        _DEFAULT_GATEWAY = build_transcription_gateway()
    return _DEFAULT_GATEWAY


__all__ = [
    "SUPPORTED_AUDIO_FORMATS",
    "TranscriptionGateway",
    "build_transcription_gateway",
    "get_transcription_gateway",
    "is_valid_audio_format",
    "normalize_mime_type",
    "validate_audio_payload",
]
