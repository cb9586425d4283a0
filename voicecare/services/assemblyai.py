"""AssemblyAI integration (fallback speech-to-text provider).

AssemblyAI processes audio asynchronously: the recording is uploaded, a
transcript job is requested, and the job is polled until it settles.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

import httpx

from voicecare.config.settings import AssemblyAIConfig, TranscriptionConfig, settings

from .provider_errors import ProviderError, ProviderErrorKind
from .transcription_types import TranscribedWord, TranscriptionProvider, TranscriptionResult

logger = logging.getLogger("voicecare.pipelines.transcription")

_STATUS_MESSAGES = {
    401: "Invalid AssemblyAI API key",
    402: "AssemblyAI account balance exhausted",
}


class AssemblyAITranscriber(TranscriptionProvider):
    """Upload, request and poll an AssemblyAI transcript."""

    name = "assemblyai"
    label = "AssemblyAI"

    def __init__(
        self,
        config: AssemblyAIConfig | None = None,
        *,
        retry_config: TranscriptionConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(retry_config=retry_config, client=client)
        self._config = config or settings.assemblyai

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
                "AssemblyAI API key not configured",
                ProviderErrorKind.NOT_CONFIGURED,
            )

        base_url = self._config.base_url.rstrip("/")
        try:
            async with self._http_client() as client:
                upload = await self._request(
                    client,
                    "POST",
                    f"{base_url}/upload",
                    headers={
                        "Authorization": api_key,
                        "Content-Type": "application/octet-stream",
                    },
                    content=audio,
                    timeout=self._retry.timeout_seconds,
                    status_messages=_STATUS_MESSAGES,
                )
                upload_url = _require_str(upload.json(), "upload_url")

                requested = await self._request(
                    client,
                    "POST",
                    f"{base_url}/transcript",
                    headers={"Authorization": api_key},
                    json={
                        "audio_url": upload_url,
                        "language_code": _language_code(language) or self._config.language_code,
                        "punctuate": True,
                        "format_text": True,
                    },
                    timeout=self._retry.timeout_seconds,
                    status_messages=_STATUS_MESSAGES,
                )
                transcript_id = _require_str(requested.json(), "id")

                result = await self._poll(client, base_url, transcript_id, api_key)
        except ProviderError as exc:
            logger.warning("AssemblyAI transcription failed kind=%s: %s", exc.kind.value, exc)
            return TranscriptionResult.failure(
                self.name,
                f"AssemblyAI transcription failed: {exc}",
                exc.kind,
            )
        except ValueError as exc:
            return TranscriptionResult.failure(
                self.name,
                f"AssemblyAI transcription failed: unreadable response ({exc})",
                ProviderErrorKind.MALFORMED,
            )

        if result.get("status") == "error":
            return TranscriptionResult.failure(
                self.name,
                str(result.get("error") or "Transcription failed"),
                ProviderErrorKind.UNKNOWN,
            )

        words = tuple(
            TranscribedWord(
                word=str(item.get("text") or ""),
                start=_ms_to_seconds(item.get("start")),
                end=_ms_to_seconds(item.get("end")),
                confidence=_as_float(item.get("confidence")),
            )
            for item in result.get("words") or []
            if isinstance(item, Mapping)
        )

        return TranscriptionResult(
            success=True,
            transcript=str(result.get("text") or "").strip(),
            confidence=_as_float(result.get("confidence")),
            duration_seconds=_as_float(result.get("audio_duration")),
            provider=self.name,
            words=words,
        )

    async def _poll(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        transcript_id: str,
        api_key: str,
    ) -> Mapping[str, Any]:
        for _ in range(self._config.max_poll_attempts):
            response = await self._request(
                client,
                "GET",
                f"{base_url}/transcript/{transcript_id}",
                headers={"Authorization": api_key},
                timeout=self._retry.timeout_seconds,
                status_messages=_STATUS_MESSAGES,
            )
            data = response.json()
            if not isinstance(data, Mapping):
                raise ValueError("transcript status payload is not an object")
            if data.get("status") in ("completed", "error"):
                return data
            await asyncio.sleep(self._config.poll_interval_seconds)

        raise ProviderError(
            "Transcription timed out",
            ProviderErrorKind.TIMEOUT,
            provider=self.name,
        )


def _require_str(payload: Any, key: str) -> str:
    value = payload.get(key) if isinstance(payload, Mapping) else None
    if not isinstance(value, str) or not value:
        raise ValueError(f"missing '{key}' in response")
    return value


def _language_code(language: str | None) -> str | None:
    # AssemblyAI expects en_us style codes.
    if not language:
        return None
    return language.replace("-", "_").lower()


def _ms_to_seconds(value: Any) -> float:
    return _as_float(value) / 1000


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


__all__ = ["AssemblyAITranscriber"]
