"""Sequence the analysis stages over one transcript.

Risk assessment, clinical summary and next steps are mandatory and run in
that order, each prompt built from the outputs before it. Doctor matching
runs last, only when candidates were supplied, and its failure never fails
the analysis.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import string
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable, Optional, Protocol, TypeVar

from voicecare.config.settings import AnalysisConfig, settings
from voicecare.services.response_contract import (
    NextStepsResult,
    parse_clinical_summary,
    parse_next_steps,
    parse_risk_assessment,
)
from voicecare.telemetry import observe_stage

from .matching import match_doctors, profile_from_analysis
from .prompts import (
    CLINICAL_SUMMARY_SYSTEM_PROMPT,
    NEXT_STEPS_SYSTEM_PROMPT,
    RISK_ASSESSMENT_SYSTEM_PROMPT,
    build_clinical_summary_prompt,
    build_next_steps_prompt,
    build_risk_assessment_prompt,
)
from .stage_runner import CompletionClient, run_stage
from .types import (
    AnalysisInput,
    AnalysisMetadata,
    AnalysisStage,
    ClinicalProfile,
    DoctorForMatching,
    DoctorMatchingResult,
    FullAnalysisResult,
    StageMetadata,
    StageResult,
)

logger = logging.getLogger("voicecare.pipelines.analysis")

T = TypeVar("T")

MEDICAL_DISCLAIMER = (
    "IMPORTANT DISCLAIMER: This analysis is generated by an AI system and is intended for "
    "informational purposes only. It is NOT a medical diagnosis and should NOT replace "
    "professional medical advice, diagnosis, or treatment. Always consult with qualified "
    "healthcare providers for medical concerns. If you are experiencing a medical emergency, "
    "call emergency services (911) immediately."
)

DEFAULT_WARNING_SIGNS: tuple[str, ...] = (
    "Chest pain, pressure or tightness",
    "Difficulty breathing or shortness of breath",
    "Sudden confusion, weakness, numbness or trouble speaking",
    "Fainting or loss of consciousness",
    "Symptoms that get rapidly worse",
)

_BASE36 = string.digits + string.ascii_lowercase

DoctorMatcher = Callable[[Iterable[DoctorForMatching], ClinicalProfile, datetime], DoctorMatchingResult]


class StageListener(Protocol):
    async def stage_started(self, stage: AnalysisStage) -> None:
        ...

    async def stage_finished(self, metadata: StageMetadata) -> None:
        ...


class AnalysisStageError(RuntimeError):
    """A mandatory stage failed; carries the stage records gathered so far."""

    def __init__(self, stage: AnalysisStage, message: str, stages: list[StageMetadata]) -> None:
        super().__init__(message)
        self.stage = stage
        self.stages = stages


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def new_analysis_id() -> str:
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"analysis_{_to_base36(int(time.time() * 1000))}_{suffix}"


def estimate_cost(input_tokens: int, output_tokens: int, config: AnalysisConfig) -> float:
    cost = (input_tokens / 1000) * config.input_cost_per_1k + (output_tokens / 1000) * config.output_cost_per_1k
    return round(cost, 4)


class AnalysisOrchestrator:
    """Run the analysis stages in order and assemble the full result."""

    def __init__(
        self,
        client: CompletionClient,
        *,
        config: AnalysisConfig | None = None,
        doctor_matcher: DoctorMatcher = match_doctors,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._client = client
        self._config = config or settings.analysis
        self._doctor_matcher = doctor_matcher
        self._sleep = sleep
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def model_id(self) -> str:
        return str(getattr(self._client, "model_id", "unknown"))

    async def run(
        self,
        analysis_input: AnalysisInput,
        listener: Optional[StageListener] = None,
    ) -> FullAnalysisResult:
        analysis_id = new_analysis_id()
        started = time.perf_counter()
        stages: list[StageMetadata] = []
        usage = {"input": 0, "output": 0}

        logger.info(
            "[%s] Starting analysis transcript_chars=%s doctors=%s",
            analysis_id,
            len(analysis_input.transcript),
            len(analysis_input.available_doctors),
        )

        async def mandatory(stage: AnalysisStage, system_prompt: str, user_prompt: str, parser) -> StageResult:
            if listener is not None:
                await listener.stage_started(stage)
            stage_started = time.perf_counter()
            try:
                result = await run_stage(
                    self._client,
                    system_prompt,
                    user_prompt,
                    parser,
                    stage=stage.value,
                    config=self._config,
                    sleep=self._sleep,
                )
            except Exception as exc:
                elapsed = time.perf_counter() - stage_started
                metadata = StageMetadata(
                    stage=stage,
                    tokens_used=0,
                    duration_ms=int(elapsed * 1000),
                    success=False,
                    error=str(exc),
                )
                stages.append(metadata)
                observe_stage(stage.value, False, elapsed)
                logger.error("[%s] Stage %s failed: %s", analysis_id, stage.value, exc)
                if listener is not None:
                    await listener.stage_finished(metadata)
                raise AnalysisStageError(stage, str(exc), list(stages)) from exc

            elapsed = time.perf_counter() - stage_started
            usage["input"] += result.input_tokens
            usage["output"] += result.output_tokens
            metadata = StageMetadata(
                stage=stage,
                tokens_used=result.tokens_used,
                duration_ms=int(elapsed * 1000),
                success=True,
            )
            stages.append(metadata)
            observe_stage(stage.value, True, elapsed, result.input_tokens, result.output_tokens)
            if listener is not None:
                await listener.stage_finished(metadata)
            return result

        risk = (
            await mandatory(
                AnalysisStage.RISK_ASSESSMENT,
                RISK_ASSESSMENT_SYSTEM_PROMPT,
                build_risk_assessment_prompt(analysis_input.transcript, analysis_input.patient_context),
                parse_risk_assessment,
            )
        ).value
        logger.info("[%s] Risk assessment complete acuity=%s", analysis_id, risk.overall_acuity)

        summary = (
            await mandatory(
                AnalysisStage.CLINICAL_SUMMARY,
                CLINICAL_SUMMARY_SYSTEM_PROMPT,
                build_clinical_summary_prompt(risk, analysis_input.transcript),
                parse_clinical_summary,
            )
        ).value

        next_steps: NextStepsResult = (
            await mandatory(
                AnalysisStage.NEXT_STEPS,
                NEXT_STEPS_SYSTEM_PROMPT,
                build_next_steps_prompt(risk, summary),
                parse_next_steps,
            )
        ).value
        if risk.overall_acuity in ("urgent", "emergent") and not next_steps.warning_signs:
            logger.warning(
                "[%s] No warning signs returned for %s acuity; using defaults",
                analysis_id,
                risk.overall_acuity,
            )
            next_steps = next_steps.model_copy(update={"warning_signs": list(DEFAULT_WARNING_SIGNS)})
        logger.info("[%s] Next steps complete timeframe=%s", analysis_id, next_steps.urgency_timeframe)

        doctor_matching: DoctorMatchingResult | None = None
        if analysis_input.available_doctors:
            stage = AnalysisStage.DOCTOR_MATCHING
            if listener is not None:
                await listener.stage_started(stage)
            stage_started = time.perf_counter()
            try:
                profile = profile_from_analysis(risk, next_steps)
                doctor_matching = self._doctor_matcher(
                    analysis_input.available_doctors, profile, self._clock()
                )
            except Exception as exc:
                # Optional stage: record it and carry on without matches.
                elapsed = time.perf_counter() - stage_started
                metadata = StageMetadata(
                    stage=stage,
                    duration_ms=int(elapsed * 1000),
                    success=False,
                    error=str(exc),
                )
                logger.exception("[%s] Doctor matching failed", analysis_id)
                observe_stage(stage.value, False, elapsed)
            else:
                elapsed = time.perf_counter() - stage_started
                metadata = StageMetadata(stage=stage, duration_ms=int(elapsed * 1000), success=True)
                logger.info(
                    "[%s] Doctor matching complete matches=%s",
                    analysis_id,
                    len(doctor_matching.matches),
                )
                observe_stage(stage.value, True, elapsed)
            stages.append(metadata)
            if listener is not None:
                await listener.stage_finished(metadata)

        total_tokens = usage["input"] + usage["output"]
        metadata = AnalysisMetadata(
            analysis_id=analysis_id,
            timestamp=self._clock(),
            model_used=self.model_id,
            total_tokens_used=total_tokens,
            input_tokens=usage["input"],
            output_tokens=usage["output"],
            estimated_cost=estimate_cost(usage["input"], usage["output"], self._config),
            processing_time_ms=int((time.perf_counter() - started) * 1000),
            stages=stages,
        )
        logger.info(
            "[%s] Analysis complete tokens=%s cost=%s time_ms=%s",
            analysis_id,
            total_tokens,
            metadata.estimated_cost,
            metadata.processing_time_ms,
        )

        return FullAnalysisResult(
            success=True,
            voice_note_id=analysis_input.voice_note_id,
            risk_assessment=risk,
            clinical_summary=summary,
            next_steps=next_steps,
            doctor_matching=doctor_matching,
            metadata=metadata,
            disclaimer=MEDICAL_DISCLAIMER,
        )


__all__ = [
    "AnalysisOrchestrator",
    "AnalysisStageError",
    "DEFAULT_WARNING_SIGNS",
    "MEDICAL_DISCLAIMER",
    "StageListener",
    "estimate_cost",
    "new_analysis_id",
]
