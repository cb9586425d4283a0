"""SQLAlchemy implementations of the report pipeline collaborators.

Runs execute outside the request that started them, so each repository opens
its own short-lived session from a session factory instead of borrowing the
request's session.
"""

from __future__ import annotations

import uuid
from contextlib import AbstractAsyncContextManager
from datetime import datetime, timezone
from typing import Callable, List, Optional

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from voicecare.application.interfaces import (
    DoctorDirectoryInterface,
    ReportRepositoryInterface,
    TranscriptRepositoryInterface,
)
from voicecare.models import Doctor, Report, ReportStage, TimeSlot, VoiceNote
from voicecare.pipelines.analysis.types import DoctorForMatching, FullAnalysisResult

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class SQLAlchemyTranscriptRepository(TranscriptRepositoryInterface):
    """Stores transcripts as ``voice_notes`` rows"""

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    async def save(self, patient_id: str, transcript: str, duration_seconds: float) -> str:
        async with self._session_factory() as session:
            note = VoiceNote(
                patient_id=patient_id,
                transcript=transcript,
                duration_seconds=duration_seconds,
            )
            session.add(note)
            await session.commit()
            await session.refresh(note)
            return str(note.id)


class SQLAlchemyReportRepository(ReportRepositoryInterface):
    """Stores the full analysis document plus one row per stage"""

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    async def save(
        self,
        patient_id: str,
        voice_note_id: Optional[str],
        analysis: FullAnalysisResult,
    ) -> str:
        recommended = None
        if analysis.doctor_matching is not None:
            recommended = analysis.doctor_matching.recommended_specialty
        elif analysis.next_steps.specialist_type_recommended:
            recommended = analysis.next_steps.specialist_type_recommended

        async with self._session_factory() as session:
            report = Report(
                patient_id=patient_id,
                voice_note_id=uuid.UUID(voice_note_id) if voice_note_id else None,
                analysis_id=analysis.metadata.analysis_id,
                acuity=analysis.risk_assessment.overall_acuity,
                chief_complaint=analysis.clinical_summary.chief_complaint,
                recommended_specialty=recommended,
                model_used=analysis.metadata.model_used,
                total_tokens=analysis.metadata.total_tokens_used,
                estimated_cost=analysis.metadata.estimated_cost,
                analysis=analysis.model_dump(by_alias=True, mode="json"),
            )
            report.stages = [
                ReportStage(
                    position=index,
                    stage=stage.stage.value,
                    tokens_used=stage.tokens_used,
                    duration_ms=stage.duration_ms,
                    success=stage.success,
                    error=stage.error,
                )
                for index, stage in enumerate(analysis.metadata.stages)
            ]
            session.add(report)
            await session.commit()
            await session.refresh(report)
            return str(report.id)


class SQLAlchemyDoctorDirectory(DoctorDirectoryInterface):
    """Active doctors with their count of future open slots"""

    def __init__(self, session_factory: SessionFactory, clock: Callable[[], datetime] | None = None):
        self._session_factory = session_factory
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def list_available_doctors(self) -> List[DoctorForMatching]:
        now = self._clock()
        open_slot = and_(
            TimeSlot.doctor_id == Doctor.id,
            TimeSlot.is_booked.is_(False),
            TimeSlot.starts_at >= now,
        )
        statement = (
            select(
                Doctor,
                func.count(TimeSlot.id).label("open_slots"),
                func.min(TimeSlot.starts_at).label("next_available_at"),
            )
            .outerjoin(TimeSlot, open_slot)
            .where(Doctor.is_active.is_(True))
            .group_by(Doctor.id)
            .order_by(Doctor.name)
        )

        async with self._session_factory() as session:
            result = await session.execute(statement)
            rows = result.all()

        return [
            DoctorForMatching(
                id=str(doctor.id),
                name=doctor.name,
                specialty=doctor.specialty,
                years_experience=doctor.years_experience or 0,
                rating=doctor.rating or 0.0,
                available_slots=int(open_slots or 0),
                next_available_at=next_available_at,
                location=doctor.location,
                languages=tuple(doctor.languages or ()),
            )
            for doctor, open_slots, next_available_at in rows
        ]


__all__ = [
    "SQLAlchemyDoctorDirectory",
    "SQLAlchemyReportRepository",
    "SQLAlchemyTranscriptRepository",
]
