"""Common FastAPI dependencies reused across controllers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from voicecare.config.settings import settings
from voicecare.pipelines.analysis.orchestrator import AnalysisOrchestrator
from voicecare.pipelines.report import ReportJobRunner, ReportPipeline
from voicecare.services.job_store import get_job_store
from voicecare.services.llm_client import get_llm_client
from voicecare.services.transcribe import TranscriptionGateway, get_transcription_gateway


def build_report_pipeline() -> ReportPipeline:
    """Assemble a pipeline wired to the configured providers and repositories."""

    transcripts = reports = doctors = None
    if settings.persistence_enabled:
        from voicecare.database import session_scope
        from voicecare.infrastructure.persistence.repositories_sqlalchemy import (
            SQLAlchemyDoctorDirectory,
            SQLAlchemyReportRepository,
            SQLAlchemyTranscriptRepository,
        )

        transcripts = SQLAlchemyTranscriptRepository(session_scope)
        reports = SQLAlchemyReportRepository(session_scope)
        doctors = SQLAlchemyDoctorDirectory(session_scope)

    return ReportPipeline(
        gateway=get_transcription_gateway(),
        orchestrator=AnalysisOrchestrator(get_llm_client()),
        transcripts=transcripts,
        reports=reports,
        doctors=doctors,
    )


_RUNNER: ReportJobRunner | None = None


def get_report_runner() -> ReportJobRunner:
    """Return the process-wide job runner."""

    global _RUNNER
    if _RUNNER is None:
        _RUNNER = ReportJobRunner(get_job_store(), build_report_pipeline)
    return _RUNNER


ReportRunnerDep = Annotated[ReportJobRunner, Depends(get_report_runner)]
TranscriptionGatewayDep = Annotated[TranscriptionGateway, Depends(get_transcription_gateway)]


__all__ = [
    "ReportRunnerDep",
    "TranscriptionGatewayDep",
    "build_report_pipeline",
    "get_report_runner",
]
