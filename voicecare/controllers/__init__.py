"""FastAPI routers acting as controllers."""

from . import reports, transcription

__all__ = ["reports", "transcription"]
