"""Typed containers shared across the analysis pipeline.

These live in their own module so ``prompts``, ``stage_runner``, ``matching``
and ``orchestrator`` can import them without creating circular dependencies.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Generic, List, Optional, Sequence, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from voicecare.services.response_contract import (
    AcuityLevel,
    ClinicalSummaryResult,
    NextStepsResult,
    RiskAssessmentResult,
)

T = TypeVar("T")


class AnalysisStage(str, Enum):
    RISK_ASSESSMENT = "risk-assessment"
    CLINICAL_SUMMARY = "clinical-summary"
    NEXT_STEPS = "next-steps"
    DOCTOR_MATCHING = "doctor-matching"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class Medication(_CamelModel):
    name: str
    dosage: Optional[str] = None
    frequency: Optional[str] = None


class PatientContext(_CamelModel):
    """Optional background the patient supplied alongside the recording."""

    name: Optional[str] = None
    age: Optional[int] = Field(default=None, ge=0, le=150)
    sex: Optional[str] = None
    known_conditions: List[str] = Field(default_factory=list, alias="knownConditions")
    current_medications: List[Medication] = Field(
        default_factory=list, alias="currentMedications"
    )


@dataclass(frozen=True)
class DoctorForMatching:
    """Candidate doctor as handed to the scorer by the directory."""

    id: str
    name: str
    specialty: str
    years_experience: int
    rating: float
    available_slots: int = 0
    next_available_at: Optional[datetime] = None
    location: Optional[str] = None
    languages: tuple[str, ...] = ()


@dataclass(frozen=True)
class ClinicalProfile:
    """What the scorer needs to know about the patient."""

    acuity: AcuityLevel
    recommended_specialty: Optional[str] = None
    urgency_timeframe: Optional[str] = None
    confidence: float = 0.75


@dataclass(frozen=True)
class AnalysisInput:
    transcript: str
    patient_context: Optional[PatientContext] = None
    available_doctors: Sequence[DoctorForMatching] = field(default_factory=tuple)
    voice_note_id: Optional[str] = None


@dataclass(frozen=True)
class StageResult(Generic[T]):
    """Typed stage output plus the tokens it consumed."""

    value: T
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def tokens_used(self) -> int:
        return self.input_tokens + self.output_tokens


class DoctorMatch(_CamelModel):
    doctor_id: str = Field(alias="doctorId")
    match_score: float = Field(alias="matchScore", ge=0.0, le=1.0)
    match_reasons: List[str] = Field(default_factory=list, alias="matchReasons", max_length=3)
    specialty_relevance: str = Field(alias="specialtyRelevance")


class DoctorMatchingResult(_CamelModel):
    matches: List[DoctorMatch] = Field(default_factory=list)
    recommended_specialty: str = Field(alias="recommendedSpecialty")
    urgency_note: str = Field(alias="urgencyNote")
    confidence: float = 0.75


class StageMetadata(_CamelModel):
    stage: AnalysisStage
    tokens_used: int = Field(default=0, alias="tokensUsed")
    duration_ms: int = Field(default=0, alias="durationMs")
    success: bool
    error: Optional[str] = None


class AnalysisMetadata(_CamelModel):
    analysis_id: str = Field(alias="analysisId")
    timestamp: datetime
    model_used: str = Field(alias="modelUsed")
    total_tokens_used: int = Field(alias="totalTokensUsed")
    input_tokens: int = Field(alias="inputTokens")
    output_tokens: int = Field(alias="outputTokens")
    estimated_cost: float = Field(alias="estimatedCost")
    processing_time_ms: int = Field(alias="processingTimeMs")
    stages: List[StageMetadata] = Field(default_factory=list)


class FullAnalysisResult(_CamelModel):
    success: bool = True
    voice_note_id: Optional[str] = Field(default=None, alias="voiceNoteId")
    risk_assessment: RiskAssessmentResult = Field(alias="riskAssessment")
    clinical_summary: ClinicalSummaryResult = Field(alias="clinicalSummary")
    next_steps: NextStepsResult = Field(alias="nextSteps")
    doctor_matching: Optional[DoctorMatchingResult] = Field(default=None, alias="doctorMatching")
    metadata: AnalysisMetadata
    disclaimer: str


__all__ = [
    "AnalysisInput",
    "AnalysisMetadata",
    "AnalysisStage",
    "ClinicalProfile",
    "DoctorForMatching",
    "DoctorMatch",
    "DoctorMatchingResult",
    "FullAnalysisResult",
    "Medication",
    "PatientContext",
    "StageMetadata",
    "StageResult",
]
