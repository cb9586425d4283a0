"""Thin Bedrock client wrapper for structured-extraction completions."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    ReadTimeoutError,
)
from fastapi.concurrency import run_in_threadpool

from voicecare.config.settings import BedrockConfig, settings

from .aws import bedrock_runtime_client
from .provider_errors import ProviderError, ProviderErrorKind

logger = logging.getLogger(__name__)

_ERROR_CODE_KINDS: dict[str, ProviderErrorKind] = {
    "ThrottlingException": ProviderErrorKind.RATE_LIMITED,
    "TooManyRequestsException": ProviderErrorKind.RATE_LIMITED,
    "ModelTimeoutException": ProviderErrorKind.TIMEOUT,
    "RequestTimeout": ProviderErrorKind.TIMEOUT,
    "ServiceUnavailableException": ProviderErrorKind.SERVER_ERROR,
    "InternalServerException": ProviderErrorKind.SERVER_ERROR,
    "ModelNotReadyException": ProviderErrorKind.SERVER_ERROR,
    "AccessDeniedException": ProviderErrorKind.AUTH,
    "UnrecognizedClientException": ProviderErrorKind.AUTH,
    "ExpiredTokenException": ProviderErrorKind.AUTH,
    "ServiceQuotaExceededException": ProviderErrorKind.QUOTA,
    "ValidationException": ProviderErrorKind.INVALID_INPUT,
    "ResourceNotFoundException": ProviderErrorKind.INVALID_INPUT,
    "ModelErrorException": ProviderErrorKind.MALFORMED,
}


class LlmInvocationError(ProviderError):
    """Raised when the Bedrock invocation fails."""


@dataclass(frozen=True)
class LlmCompletion:
    """Text returned by the model together with its token usage."""

    text: str
    input_tokens: int
    output_tokens: int
    model_id: str


def classify_bedrock_error(exc: Exception) -> ProviderErrorKind:
    """Map a boto/botocore failure onto a typed failure kind."""

    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {}) if isinstance(exc.response, dict) else {}
        code = str(error.get("Code") or "")
        if code in _ERROR_CODE_KINDS:
            return _ERROR_CODE_KINDS[code]
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        if isinstance(status, int) and status >= 500:
            return ProviderErrorKind.SERVER_ERROR
        return ProviderErrorKind.UNKNOWN
    if isinstance(exc, (ReadTimeoutError, ConnectTimeoutError)):
        return ProviderErrorKind.TIMEOUT
    if isinstance(exc, EndpointConnectionError):
        return ProviderErrorKind.SERVER_ERROR
    if isinstance(exc, NoCredentialsError):
        return ProviderErrorKind.NOT_CONFIGURED
    return ProviderErrorKind.UNKNOWN


class BedrockLlmClient:
    """Invoke Amazon Bedrock models with standard configuration."""

    def __init__(self, config: BedrockConfig | None = None) -> None:
        self._config = config or settings.bedrock
        self._model_id = self._config.model_id

        try:
            self._client = bedrock_runtime_client(self._config)
        except (BotoCoreError, ValueError) as exc:  # pragma: no cover - configuration issue
            logger.warning("Could not initialise Bedrock client: %s", exc)
            self._client = None

    @property
    def model_id(self) -> str:
        return self._model_id

    async def complete(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
        top_p: float | None = None,
        model_id: str | None = None,
    ) -> LlmCompletion:
        """Run a Bedrock ``converse`` call and return the text output plus usage."""

        target_model_id = model_id or self._model_id
        if not self._client or not target_model_id:
            raise LlmInvocationError(
                "Bedrock client is not configured",
                ProviderErrorKind.NOT_CONFIGURED,
                provider="bedrock",
            )

        inference_cfg = {
            "maxTokens": max_tokens or self._config.max_tokens,
            "temperature": (
                temperature
                if temperature is not None
                else self._config.temperature
            ),
            "topP": top_p if top_p is not None else self._config.top_p,
        }

        def _call() -> dict:
            return self._client.converse(
                modelId=target_model_id,
                system=[{"text": system_prompt}],
                messages=[{"role": "user", "content": [{"text": user_prompt}]}],
                inferenceConfig=inference_cfg,
            )

        try:
            response = await run_in_threadpool(_call)
        except (BotoCoreError, ClientError) as exc:  # pragma: no cover - external dependency
            kind = classify_bedrock_error(exc)
            raise LlmInvocationError(str(exc), kind, provider="bedrock") from exc

        content_blocks = (
            response.get("output", {})
            .get("message", {})
            .get("content", [])
        )
        texts = [block.get("text", "") for block in content_blocks if block.get("text")]
        text = "\n".join(texts).strip()
        if not text:
            raise LlmInvocationError(
                "No text content in response",
                ProviderErrorKind.MALFORMED,
                provider="bedrock",
            )

        usage = response.get("usage", {})
        return LlmCompletion(
            text=text,
            input_tokens=int(usage.get("inputTokens", 0) or 0),
            output_tokens=int(usage.get("outputTokens", 0) or 0),
            model_id=target_model_id,
        )


_DEFAULT_CLIENT: BedrockLlmClient | None = None


def get_llm_client() -> BedrockLlmClient:
    """Return a lazily-instantiated Bedrock client singleton."""

    global _DEFAULT_CLIENT
    if _DEFAULT_CLIENT is None:
        _DEFAULT_CLIENT = BedrockLlmClient()
    return _DEFAULT_CLIENT


__all__ = [
    "BedrockLlmClient",
    "LlmCompletion",
    "LlmInvocationError",
    "classify_bedrock_error",
    "get_llm_client",
]
