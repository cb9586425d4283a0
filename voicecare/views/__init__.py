"""Pydantic schemas used as views."""

from .common import ErrorEnvelope, SuccessEnvelope, envelope, error_envelope
from .reports import ReportJobAccepted, ReportJobCancelled, StageCatalog, StageDescriptor
from .transcription import TranscribedWordView, TranscriptionHealthView, TranscriptionView

__all__ = [
    "ErrorEnvelope",
    "SuccessEnvelope",
    "envelope",
    "error_envelope",
    "ReportJobAccepted",
    "ReportJobCancelled",
    "StageCatalog",
    "StageDescriptor",
    "TranscribedWordView",
    "TranscriptionHealthView",
    "TranscriptionView",
]
