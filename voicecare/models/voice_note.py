"""SQLAlchemy model for transcribed voice notes."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, String, Text
from sqlalchemy.dialects.postgresql import UUID

from .base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VoiceNote(Base):
    """Transcript of one patient recording."""

    __tablename__ = "voice_notes"

    id = Column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )
    patient_id = Column(String(128), nullable=False, index=True)
    transcript = Column(Text, nullable=False)
    duration_seconds = Column(Float, nullable=False, default=0.0)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )


__all__ = ["VoiceNote"]
