"""High-level map of the report generation pipeline.

``voicecare.pipelines.report.supervisor`` drives the run; this module
documents the canonical execution order so contributors can find the code
behind each step:

1. ``ingestion`` - validate the upload against the format and size limits.
2. ``transcription`` - primary speech-to-text provider with fallback.
3. ``voice note`` - persist the transcript.
4. ``risk assessment`` - acuity, risk flags and extracted symptoms.
5. ``clinical summary`` - provider-facing narrative.
6. ``next steps`` - recommended action, timeframe and warning signs.
7. ``doctor matching`` - deterministic ranking of available doctors.
8. ``report`` - persist the analysis and publish the report id.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

from voicecare.services.job_store import JobStatus


@dataclass(frozen=True)
class PipelineStage:
    """Human-readable description of one stage in the report pipeline."""

    order: int
    name: str
    module: str
    summary: str
    job_status: Optional[JobStatus] = None


class ReportGenerationPipeline:
    """Utility wrapper for documenting the ``/reports/generate`` flow."""

    _STAGES: List[PipelineStage] = [
        PipelineStage(
            1,
            "Ingestion",
            "voicecare.services.transcribe",
            "Check the MIME type against the allow-list and the payload against the size bounds.",
            JobStatus.UPLOADING,
        ),
        PipelineStage(
            2,
            "Transcription",
            "voicecare.services.transcribe",
            "Send the audio to the primary provider and fall back on transient failures.",
            JobStatus.TRANSCRIBING,
        ),
        PipelineStage(
            3,
            "Voice Note",
            "voicecare.infrastructure.persistence.repositories_sqlalchemy",
            "Store the transcript and its duration for the patient.",
            JobStatus.TRANSCRIBING,
        ),
        PipelineStage(
            4,
            "Risk Assessment",
            "voicecare.pipelines.analysis.orchestrator",
            "Extract symptoms, vitals and risk flags and decide the overall acuity.",
            JobStatus.ANALYZING_RISKS,
        ),
        PipelineStage(
            5,
            "Clinical Summary",
            "voicecare.pipelines.analysis.orchestrator",
            "Write the chief complaint, narrative and differential considerations.",
            JobStatus.GENERATING_SUMMARY,
        ),
        PipelineStage(
            6,
            "Next Steps",
            "voicecare.pipelines.analysis.orchestrator",
            "Recommend an action, a timeframe, warning signs and a specialist type.",
            JobStatus.GENERATING_RECOMMENDATIONS,
        ),
        PipelineStage(
            7,
            "Doctor Matching",
            "voicecare.pipelines.analysis.matching",
            "Score available doctors and keep the ten best above the floor.",
            JobStatus.GENERATING_RECOMMENDATIONS,
        ),
        PipelineStage(
            8,
            "Report",
            "voicecare.pipelines.report.supervisor",
            "Persist the analysis and complete the job with the report id.",
            JobStatus.SAVING,
        ),
    ]

    @classmethod
    def describe(cls) -> Iterable[PipelineStage]:
        """Expose the ordered list of stages for debugging and documentation."""

        return tuple(cls._STAGES)


__all__ = ["PipelineStage", "ReportGenerationPipeline"]
