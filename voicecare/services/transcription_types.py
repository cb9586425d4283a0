"""Shared containers and the provider base class for speech-to-text adapters."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Mapping

import httpx

from voicecare.config.settings import TranscriptionConfig, settings

from .provider_errors import ProviderError, ProviderErrorKind, kind_for_status

logger = logging.getLogger("voicecare.pipelines.transcription")


@dataclass(frozen=True)
class TranscribedWord:
    """One recognised word with timings in seconds."""

    word: str
    start: float
    end: float
    confidence: float


@dataclass(frozen=True)
class TranscriptionResult:
    """Structured transcription outcome returned by providers and the gateway."""

    success: bool
    transcript: str
    confidence: float
    duration_seconds: float
    provider: str
    words: tuple[TranscribedWord, ...] = field(default_factory=tuple)
    error: str | None = None
    error_kind: ProviderErrorKind | None = None

    @classmethod
    def failure(
        cls,
        provider: str,
        error: str,
        kind: ProviderErrorKind,
        *,
        duration_seconds: float = 0.0,
    ) -> "TranscriptionResult":
        return cls(
            success=False,
            transcript="",
            confidence=0.0,
            duration_seconds=duration_seconds,
            provider=provider,
            error=error,
            error_kind=kind,
        )

    @property
    def word_count(self) -> int:
        return len(self.transcript.split())


class TranscriptionProvider(ABC):
    """Base class for HTTP speech-to-text adapters.

    Subclasses return a tagged :class:`TranscriptionResult` instead of raising,
    so the gateway can decide on fallback from ``error_kind`` alone.
    """

    name: str = "provider"
    label: str = "Provider"

    def __init__(
        self,
        *,
        retry_config: TranscriptionConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._retry = retry_config or settings.transcription
        self._client = client

    @property
    @abstractmethod
    def configured(self) -> bool:
        """Whether credentials for this provider are available."""

    @abstractmethod
    async def transcribe(
        self,
        audio: bytes,
        mime_type: str,
        language: str | None = None,
    ) -> TranscriptionResult:
        """Transcribe the payload or return a tagged failure."""

    @asynccontextmanager
    async def _http_client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self._retry.timeout_seconds) as client:
            yield client

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        *,
        status_messages: Mapping[int, str] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send one HTTP request, retrying timeouts and HTTP 429 with linear backoff."""

        max_attempts = self._retry.max_retries
        last_error: ProviderError | None = None

        for attempt in range(1, max_attempts + 1):
            try:
                response = await client.request(method, url, **kwargs)
            except httpx.TimeoutException:
                last_error = ProviderError(
                    "Request timed out. Please try again.",
                    ProviderErrorKind.TIMEOUT,
                    provider=self.name,
                )
            except httpx.RequestError as exc:
                raise ProviderError(
                    f"{self.label} request failed: {exc}",
                    ProviderErrorKind.SERVER_ERROR,
                    provider=self.name,
                ) from exc
            else:
                if response.status_code == 429:
                    last_error = ProviderError(
                        "Rate limit exceeded. Please try again later.",
                        ProviderErrorKind.RATE_LIMITED,
                        provider=self.name,
                        status_code=429,
                    )
                elif response.is_error:
                    raise self._status_error(response, status_messages or {})
                else:
                    return response

            if attempt < max_attempts:
                delay = self._retry.retry_delay_seconds * attempt
                logger.warning(
                    "%s attempt %s/%s failed (%s); retrying in %.2fs",
                    self.label,
                    attempt,
                    max_attempts,
                    last_error.kind.value,
                    delay,
                )
                await asyncio.sleep(delay)

        if last_error is None:
            raise ProviderError(
                f"{self.label} request was never attempted",
                ProviderErrorKind.UNKNOWN,
                provider=self.name,
            )
        raise last_error

    def _status_error(
        self,
        response: httpx.Response,
        status_messages: Mapping[int, str],
    ) -> ProviderError:
        status_code = response.status_code
        message = status_messages.get(status_code)
        if message is None:
            message = _error_body_message(response) or f"{self.label} API error: {status_code}"
        return ProviderError(
            message,
            kind_for_status(status_code),
            provider=self.name,
            status_code=status_code,
        )


def _error_body_message(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, Mapping):
        return None
    for key in ("err_msg", "error", "message"):
        value = body.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


__all__ = [
    "TranscribedWord",
    "TranscriptionProvider",
    "TranscriptionResult",
]
