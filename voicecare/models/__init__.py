"""SQLAlchemy models for the report service."""

from .base import Base
from .doctor import Doctor  # noqa: F401
from .report import Report, ReportStage  # noqa: F401
from .time_slot import TimeSlot  # noqa: F401
from .voice_note import VoiceNote  # noqa: F401

__all__ = [
    "Base",
    "Doctor",
    "Report",
    "ReportStage",
    "TimeSlot",
    "VoiceNote",
]
