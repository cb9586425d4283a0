"""SQLAlchemy models for generated reports and their stage records."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import relationship

from .base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Report(Base):
    """Clinical report produced from one voice note."""

    __tablename__ = "reports"

    id = Column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )
    patient_id = Column(String(128), nullable=False, index=True)
    voice_note_id = Column(
        ForeignKey("voice_notes.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    analysis_id = Column(String(64), nullable=False, unique=True)
    acuity = Column(String(16), nullable=False, index=True)
    chief_complaint = Column(Text, nullable=False)
    recommended_specialty = Column(String(64), nullable=True)
    model_used = Column(String(128), nullable=False)
    total_tokens = Column(Integer, nullable=False, default=0)
    estimated_cost = Column(Float, nullable=False, default=0.0)
    analysis = Column(JSONB, nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    stages = relationship(
        "ReportStage",
        back_populates="report",
        cascade="all, delete-orphan",
        order_by="ReportStage.position",
    )


class ReportStage(Base):
    """Outcome of one analysis stage for a report."""

    __tablename__ = "report_stages"

    id = Column(Integer, primary_key=True, index=True)
    report_id = Column(
        ForeignKey("reports.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False)
    stage = Column(String(32), nullable=False)
    tokens_used = Column(Integer, nullable=False, default=0)
    duration_ms = Column(Integer, nullable=False, default=0)
    success = Column(Boolean, nullable=False)
    error = Column(Text, nullable=True)

    report = relationship("Report", back_populates="stages")


__all__ = ["Report", "ReportStage"]
