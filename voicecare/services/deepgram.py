"""Deepgram pre-recorded audio integration (primary speech-to-text provider)."""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from voicecare.config.settings import DeepgramConfig, TranscriptionConfig, settings

from .provider_errors import ProviderError, ProviderErrorKind
from .transcription_types import TranscribedWord, TranscriptionProvider, TranscriptionResult

logger = logging.getLogger("voicecare.pipelines.transcription")

_STATUS_MESSAGES = {
    401: "Invalid Deepgram API key",
    402: "Deepgram API quota exceeded",
}


class DeepgramTranscriber(TranscriptionProvider):
    """Send the whole recording in one request to Deepgram's ``/listen`` endpoint."""

    name = "deepgram"
    label = "Deepgram"

    def __init__(
        self,
        config: DeepgramConfig | None = None,
        *,
        retry_config: TranscriptionConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(retry_config=retry_config, client=client)
        self._config = config or settings.deepgram

    @property
    def configured(self) -> bool:
        return bool(self._api_key())

    def _api_key(self) -> str | None:
        if self._config.api_key is None:
            return None
        return self._config.api_key.get_secret_value().strip() or None

    async def transcribe(
        self,
        audio: bytes,
        mime_type: str,
        language: str | None = None,
    ) -> TranscriptionResult:
        api_key = self._api_key()
        if not api_key:
            return TranscriptionResult.failure(
                self.name,
                "Deepgram API key not configured",
                ProviderErrorKind.NOT_CONFIGURED,
            )

        params = {
            "model": self._config.model,
            "language": language or self._config.language,
            "punctuate": "true",
            "smart_format": "true",
            # Single speaker symptom recordings.
            "diarize": "false",
            "filler_words": "false",
            "utterances": "false",
        }
        headers = {
            "Authorization": f"Token {api_key}",
            "Content-Type": mime_type or "audio/webm",
        }

        try:
            async with self._http_client() as client:
                response = await self._request(
                    client,
                    "POST",
                    self._config.base_url,
                    params=params,
                    headers=headers,
                    content=audio,
                    timeout=self._retry.timeout_seconds,
                    status_messages=_STATUS_MESSAGES,
                )
            payload = response.json()
        except ProviderError as exc:
            logger.warning("Deepgram transcription failed kind=%s: %s", exc.kind.value, exc)
            return TranscriptionResult.failure(self.name, str(exc), exc.kind)
        except ValueError as exc:
            return TranscriptionResult.failure(
                self.name,
                f"Deepgram returned an unreadable response: {exc}",
                ProviderErrorKind.MALFORMED,
            )

        return self._parse_payload(payload)

    def _parse_payload(self, payload: Any) -> TranscriptionResult:
        metadata = payload.get("metadata") if isinstance(payload, Mapping) else None
        duration = _as_float(metadata.get("duration")) if isinstance(metadata, Mapping) else 0.0

        alternative = _first_alternative(payload)
        if alternative is None:
            return TranscriptionResult.failure(
                self.name,
                "No transcription result returned",
                ProviderErrorKind.MALFORMED,
                duration_seconds=duration,
            )

        words = tuple(
            TranscribedWord(
                word=str(item.get("punctuated_word") or item.get("word") or ""),
                start=_as_float(item.get("start")),
                end=_as_float(item.get("end")),
                confidence=_as_float(item.get("confidence")),
            )
            for item in alternative.get("words") or []
            if isinstance(item, Mapping)
        )

        return TranscriptionResult(
            success=True,
            transcript=str(alternative.get("transcript") or "").strip(),
            confidence=_as_float(alternative.get("confidence")),
            duration_seconds=duration,
            provider=self.name,
            words=words,
        )


def _first_alternative(payload: Any) -> Mapping[str, Any] | None:
    if not isinstance(payload, Mapping):
        return None
    results = payload.get("results")
    channels = results.get("channels") if isinstance(results, Mapping) else None
    if not channels or not isinstance(channels[0], Mapping):
        return None
    alternatives = channels[0].get("alternatives")
    if not alternatives or not isinstance(alternatives[0], Mapping):
        return None
    return alternatives[0]


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


__all__ = ["DeepgramTranscriber"]
