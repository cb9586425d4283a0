"""End-to-end report generation for one recording.

The supervisor wires the transcription gateway, the analysis orchestrator
and the persistence collaborators together and publishes a progress update
at every milestone. It never talks to the job store directly; whoever starts
the run decides where progress goes through ``on_progress``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from voicecare.application.interfaces import (
    DoctorDirectoryInterface,
    ReportRepositoryInterface,
    TranscriptRepositoryInterface,
)
from voicecare.config.settings import settings
from voicecare.pipelines.analysis.orchestrator import AnalysisOrchestrator
from voicecare.pipelines.analysis.types import (
    AnalysisInput,
    AnalysisStage,
    DoctorForMatching,
    FullAnalysisResult,
    PatientContext,
    StageMetadata,
)
from voicecare.services.job_store import JobStatus
from voicecare.services.transcribe import TranscriptionGateway
from voicecare.telemetry import observe_pipeline_run

logger = logging.getLogger("voicecare.pipelines.report")
transcript_logger = logging.getLogger("voicecare.logs.transcript")

CANCELLED_MESSAGE = "Job cancelled"
# Bytes per second used to estimate duration when the provider reports none.
_ESTIMATED_BYTES_PER_SECOND = 16000


@dataclass(frozen=True)
class ProgressUpdate:
    status: JobStatus
    progress: int
    message: str
    details: Optional[str] = None
    error: Optional[str] = None
    report_id: Optional[str] = None

    def as_job_fields(self) -> dict:
        fields = {
            "status": self.status,
            "progress": self.progress,
            "message": self.message,
            "details": self.details,
        }
        if self.error is not None:
            fields["error"] = self.error
        if self.report_id is not None:
            fields["report_id"] = self.report_id
        return fields


ProgressCallback = Callable[[ProgressUpdate], Awaitable[None]]


@dataclass(frozen=True)
class PipelineResult:
    success: bool
    report_id: Optional[str] = None
    voice_note_id: Optional[str] = None
    error: Optional[str] = None
    analysis_result: Optional[FullAnalysisResult] = None


class PipelineFailure(RuntimeError):
    """A mandatory step failed; the message is shown to the client."""


class _ProgressReporter:
    """Forward updates to the callback keeping progress non-decreasing."""

    def __init__(self, callback: Optional[ProgressCallback]) -> None:
        self._callback = callback
        self._last = 0

    async def __call__(
        self,
        status: JobStatus,
        progress: int,
        message: str,
        details: Optional[str] = None,
        **extra,
    ) -> None:
        if status is not JobStatus.ERROR:
            progress = max(self._last, progress)
            self._last = progress
        if self._callback is None:
            return
        update = ProgressUpdate(status, progress, message, details, **extra)
        try:
            await self._callback(update)
        except Exception:
            logger.warning("Progress callback failed for %s", status.value, exc_info=True)


_STAGE_STARTED = {
    AnalysisStage.RISK_ASSESSMENT: (
        JobStatus.ANALYZING_RISKS,
        40,
        "Analyzing symptoms and risk factors...",
        "AI is reviewing your symptoms",
    ),
    AnalysisStage.CLINICAL_SUMMARY: (
        JobStatus.GENERATING_SUMMARY,
        60,
        "Generating clinical summary...",
        None,
    ),
    AnalysisStage.NEXT_STEPS: (
        JobStatus.GENERATING_RECOMMENDATIONS,
        75,
        "Generating recommendations...",
        None,
    ),
    AnalysisStage.DOCTOR_MATCHING: (
        JobStatus.GENERATING_RECOMMENDATIONS,
        85,
        "Finding matching doctors...",
        None,
    ),
}

_STAGE_FINISHED = {
    AnalysisStage.RISK_ASSESSMENT: (JobStatus.ANALYZING_RISKS, 55, "Risk assessment complete"),
    AnalysisStage.CLINICAL_SUMMARY: (JobStatus.GENERATING_SUMMARY, 70, "Clinical summary complete"),
    AnalysisStage.NEXT_STEPS: (JobStatus.GENERATING_RECOMMENDATIONS, 80, "Recommendations ready"),
}


class _ProgressStageListener:
    """Translate orchestrator stage events into progress updates."""

    def __init__(self, report: _ProgressReporter) -> None:
        self._report = report

    async def stage_started(self, stage: AnalysisStage) -> None:
        status, progress, message, details = _STAGE_STARTED[stage]
        await self._report(status, progress, message, details)

    async def stage_finished(self, metadata: StageMetadata) -> None:
        if not metadata.success or metadata.stage not in _STAGE_FINISHED:
            return
        status, progress, message = _STAGE_FINISHED[metadata.stage]
        await self._report(status, progress, message)


class ReportPipeline:
    """Audio in, persisted clinical report out."""

    def __init__(
        self,
        *,
        gateway: TranscriptionGateway,
        orchestrator: AnalysisOrchestrator,
        transcripts: Optional[TranscriptRepositoryInterface] = None,
        reports: Optional[ReportRepositoryInterface] = None,
        doctors: Optional[DoctorDirectoryInterface] = None,
    ) -> None:
        self._gateway = gateway
        self._orchestrator = orchestrator
        self._transcripts = transcripts
        self._reports = reports
        self._doctors = doctors

    async def generate_full_report(
        self,
        audio: bytes,
        mime_type: str,
        patient_id: Optional[str] = None,
        patient_context: Optional[PatientContext] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> PipelineResult:
        report = _ProgressReporter(on_progress)
        patient = patient_id or settings.default_patient_id

        try:
            result = await self._run(audio, mime_type, patient, patient_context, report)
        except asyncio.CancelledError:
            logger.warning("Report generation cancelled patient=%s", patient)
            observe_pipeline_run("cancelled")
            await report(JobStatus.ERROR, 0, "An error occurred", CANCELLED_MESSAGE, error=CANCELLED_MESSAGE)
            raise
        except PipelineFailure as exc:
            return await self._fail(report, str(exc))
        except Exception as exc:
            logger.exception("Report generation failed patient=%s", patient)
            return await self._fail(report, str(exc) or "Failed to generate report")

        observe_pipeline_run("success")
        return result

    async def _fail(self, report: _ProgressReporter, message: str) -> PipelineResult:
        logger.error("Pipeline error: %s", message)
        observe_pipeline_run("failure")
        await report(JobStatus.ERROR, 0, "An error occurred", message, error=message)
        return PipelineResult(success=False, error=message)

    async def _run(
        self,
        audio: bytes,
        mime_type: str,
        patient_id: str,
        patient_context: Optional[PatientContext],
        report: _ProgressReporter,
    ) -> PipelineResult:
        await report(JobStatus.UPLOADING, 5, "Preparing your voice note...")
        await report(JobStatus.UPLOADING, 10, "Voice note prepared")

        await report(
            JobStatus.TRANSCRIBING,
            15,
            "Transcribing your voice note...",
            "Converting speech to text",
        )
        transcription = await self._gateway.transcribe(audio, mime_type)
        if not transcription.success:
            raise PipelineFailure(transcription.error or "Transcription failed")

        transcript = transcription.transcript
        word_count = transcription.word_count
        transcript_logger.info(
            "patient=%s provider=%s words=%s transcript=%s",
            patient_id,
            transcription.provider,
            word_count,
            transcript,
        )
        await report(
            JobStatus.TRANSCRIBING,
            30,
            "Transcription complete",
            f"{word_count} words detected",
        )

        duration = transcription.duration_seconds or round(len(audio) / _ESTIMATED_BYTES_PER_SECOND)
        voice_note_id = await self._save_transcript(patient_id, transcript, duration)
        await report(JobStatus.TRANSCRIBING, 35, "Voice note saved")

        doctors = await self._load_doctors()

        analysis = await self._orchestrator.run(
            AnalysisInput(
                transcript=transcript,
                patient_context=patient_context,
                available_doctors=tuple(doctors),
                voice_note_id=voice_note_id,
            ),
            listener=_ProgressStageListener(report),
        )

        await report(JobStatus.SAVING, 90, "Saving your report...")
        report_id = await self._save_report(patient_id, voice_note_id, analysis)

        await report(
            JobStatus.COMPLETE,
            100,
            "Report generated successfully!",
            f"Report ID: {report_id}" if report_id else None,
            report_id=report_id,
        )
        logger.info(
            "Report generation complete patient=%s report=%s acuity=%s",
            patient_id,
            report_id,
            analysis.risk_assessment.overall_acuity,
        )
        return PipelineResult(
            success=True,
            report_id=report_id,
            voice_note_id=voice_note_id,
            analysis_result=analysis,
        )

    async def _save_transcript(self, patient_id: str, transcript: str, duration: float) -> Optional[str]:
        if self._transcripts is None:
            return None
        try:
            return await self._transcripts.save(patient_id, transcript, duration)
        except Exception:
            logger.exception("Failed to save voice note patient=%s; continuing", patient_id)
            return None

    async def _load_doctors(self) -> List[DoctorForMatching]:
        if self._doctors is None:
            return []
        try:
            return list(await self._doctors.list_available_doctors())
        except Exception:
            logger.exception("Failed to load doctors; skipping doctor matching")
            return []

    async def _save_report(
        self,
        patient_id: str,
        voice_note_id: Optional[str],
        analysis: FullAnalysisResult,
    ) -> Optional[str]:
        if self._reports is None:
            return None
        try:
            return await self._reports.save(patient_id, voice_note_id, analysis)
        except Exception:
            logger.exception("Failed to save report analysis=%s", analysis.metadata.analysis_id)
            return None


__all__ = [
    "CANCELLED_MESSAGE",
    "PipelineFailure",
    "PipelineResult",
    "ProgressCallback",
    "ProgressUpdate",
    "ReportPipeline",
]
