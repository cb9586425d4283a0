"""Typed failure classification shared by the speech-to-text and LLM adapters.

Adapters translate transport errors (HTTP status codes, botocore error codes,
timeouts) into a :class:`ProviderErrorKind` once, at the edge. Retry loops and
the transcription fallback decide on the kind, never on error message text.
"""

from __future__ import annotations

from enum import Enum


class ProviderErrorKind(str, Enum):
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    AUTH = "auth"
    QUOTA = "quota"
    INVALID_INPUT = "invalid_input"
    MALFORMED = "malformed"
    NOT_CONFIGURED = "not_configured"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        """Whether the same request may succeed if resubmitted later."""

        return self in _RETRYABLE_KINDS

    @property
    def terminal(self) -> bool:
        """Whether no other provider should be tried for the same payload."""

        return self in _TERMINAL_KINDS


_RETRYABLE_KINDS = frozenset(
    {
        ProviderErrorKind.TIMEOUT,
        ProviderErrorKind.RATE_LIMITED,
        ProviderErrorKind.SERVER_ERROR,
    }
)

_TERMINAL_KINDS = frozenset(
    {
        ProviderErrorKind.AUTH,
        ProviderErrorKind.QUOTA,
        ProviderErrorKind.INVALID_INPUT,
    }
)


class ProviderError(RuntimeError):
    """Raised by an external provider adapter with a typed failure kind."""

    def __init__(
        self,
        message: str,
        kind: ProviderErrorKind = ProviderErrorKind.UNKNOWN,
        *,
        provider: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.provider = provider
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.kind.retryable


def kind_for_status(status_code: int) -> ProviderErrorKind:
    """Map an HTTP status code returned by a provider onto a failure kind."""

    if status_code in (401, 403):
        return ProviderErrorKind.AUTH
    if status_code == 402:
        return ProviderErrorKind.QUOTA
    if status_code == 408:
        return ProviderErrorKind.TIMEOUT
    if status_code == 429:
        return ProviderErrorKind.RATE_LIMITED
    if status_code in (400, 413, 415, 422):
        return ProviderErrorKind.INVALID_INPUT
    if status_code >= 500:
        return ProviderErrorKind.SERVER_ERROR
    return ProviderErrorKind.UNKNOWN


__all__ = ["ProviderError", "ProviderErrorKind", "kind_for_status"]
