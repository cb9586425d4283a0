"""Single structured-completion request with bounded retries."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Protocol, TypeVar

from voicecare.config.settings import AnalysisConfig, settings
from voicecare.services.llm_client import LlmCompletion
from voicecare.services.provider_errors import ProviderError

from .types import StageResult

logger = logging.getLogger("voicecare.pipelines.analysis")

T = TypeVar("T")


class CompletionClient(Protocol):
    async def complete(self, *, system_prompt: str, user_prompt: str) -> LlmCompletion:
        ...


def _truncate(value: str, max_length: int = 500) -> str:
    if len(value) <= max_length:
        return value
    return value[: max_length - 3] + "..."


async def run_stage(
    client: CompletionClient,
    system_prompt: str,
    user_prompt: str,
    parser: Callable[[str], T],
    *,
    stage: str = "stage",
    config: AnalysisConfig | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> StageResult[T]:
    """Send one prompt pair to the model and parse the reply.

    Transient provider failures (timeouts, throttling, 5xx) are retried up to
    ``stage_retries`` extra times, waiting ``retry_base_delay_seconds * n``
    before attempt ``n + 1``. Every other provider error and every parse
    failure propagates on the first occurrence.
    """

    cfg = config or settings.analysis
    attempts = cfg.stage_retries + 1
    for attempt in range(1, attempts + 1):
        try:
            completion = await client.complete(system_prompt=system_prompt, user_prompt=user_prompt)
        except ProviderError as exc:
            if not exc.retryable or attempt >= attempts:
                raise
            delay = cfg.retry_base_delay_seconds * attempt
            logger.warning(
                "Stage %s attempt %s/%s failed (%s): %s; retrying in %.1fs",
                stage,
                attempt,
                attempts,
                exc.kind.value,
                exc,
                delay,
            )
            await sleep(delay)
            continue

        logger.debug("Stage %s raw response: %s", stage, _truncate(completion.text))
        value = parser(completion.text)
        return StageResult(
            value=value,
            input_tokens=completion.input_tokens,
            output_tokens=completion.output_tokens,
        )

    # The loop either returns or raises.
    raise RuntimeError(f"Stage {stage} exhausted its attempts")


__all__ = ["CompletionClient", "run_stage"]
