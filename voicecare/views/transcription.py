"""Schemas for the direct transcription endpoints."""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class TranscribedWordView(_CamelModel):
    word: str
    start: float
    end: float
    confidence: float


class TranscriptionView(_CamelModel):
    transcript: str
    confidence: float
    duration: float
    provider: str
    words: List[TranscribedWordView] = Field(default_factory=list)


class TranscriptionHealthView(_CamelModel):
    healthy: bool
    primary: str
    fallback: Optional[str] = None
    providers: Dict[str, bool]
