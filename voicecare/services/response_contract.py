"""Pydantic models for validating LLM JSON responses.

Every analysis stage runs its raw completion through one of these schemas so
that downstream code receives normalized, type-safe objects: required fields
are enforced, enumerated values are checked against their vocabulary, and every
optional field has an explicit default.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    ValidationError,
    field_validator,
    model_validator,
)

AcuityLevel = Literal["routine", "urgent", "emergent"]
RiskSeverity = Literal["low", "moderate", "high", "critical"]

DEFAULT_CONFIDENCE = 0.75

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class ResponseContractError(RuntimeError):
    """Raised when the LLM response contract cannot be validated."""

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        self.stage = stage


class ContractModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    contract_label: ClassVar[str] = "response"

    @classmethod
    def from_json(cls, payload: str):
        """Extract the JSON object from ``payload`` and validate it against the schema."""

        label = cls.contract_label
        cleaned = _clean_json_payload(payload)
        if not cleaned.startswith("{"):
            raise ResponseContractError(f"No valid JSON found in {label} response", stage=label)
        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as exc:
            raise ResponseContractError(
                f"Malformed JSON in {label} response: {exc.msg} (line {exc.lineno}, column {exc.colno})",
                stage=label,
            ) from exc
        if not isinstance(data, dict):
            raise ResponseContractError(f"Expected a JSON object in {label} response", stage=label)
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ResponseContractError(
                f"Invalid {label}: {_describe_errors(exc)}",
                stage=label,
            ) from exc


def _lowercase(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    return value


def _normalize_confidence(value: Optional[float]) -> float:
    if value is None:
        return DEFAULT_CONFIDENCE
    return max(0.0, min(1.0, float(value)))


class RiskFlag(ContractModel):
    flag: NonEmptyStr
    severity: RiskSeverity
    description: str = ""
    clinical_rationale: str = Field(default="", alias="clinicalRationale")

    @field_validator("severity", mode="before")
    @classmethod
    def normalize_severity(cls, value: Any) -> Any:
        return _lowercase(value)

    @field_validator("description", "clinical_rationale", mode="before")
    @classmethod
    def default_text(cls, value: Any) -> Any:
        return "" if value is None else value


class ExtractedSymptom(ContractModel):
    symptom: NonEmptyStr
    duration: Optional[str] = None
    severity: Optional[str] = None
    location: Optional[str] = None
    frequency: Optional[str] = None
    aggravating_factors: List[str] = Field(default_factory=list, alias="aggravatingFactors")
    relieving_factors: List[str] = Field(default_factory=list, alias="relievingFactors")

    @field_validator("aggravating_factors", "relieving_factors", mode="before")
    @classmethod
    def default_lists(cls, value: Any) -> Any:
        return [] if value is None else value


class VitalsMentioned(ContractModel):
    blood_pressure: Optional[str] = Field(default=None, alias="bloodPressure")
    heart_rate: Optional[str] = Field(default=None, alias="heartRate")
    temperature: Optional[str] = None
    respiratory_rate: Optional[str] = Field(default=None, alias="respiratoryRate")
    oxygen_saturation: Optional[str] = Field(default=None, alias="oxygenSaturation")
    blood_sugar: Optional[str] = Field(default=None, alias="bloodSugar")
    weight: Optional[str] = None
    other: Dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def stringify_readings(cls, data: Any) -> Any:
        # Models report readings as numbers or the literal string "null".
        if not isinstance(data, dict):
            return data
        cleaned: dict[str, Any] = {}
        for key, value in data.items():
            if key == "other":
                if isinstance(value, dict):
                    cleaned[key] = {str(k): str(v) for k, v in value.items() if v is not None}
                continue
            if value is None or (isinstance(value, str) and value.strip().lower() in ("", "null", "none")):
                continue
            cleaned[key] = str(value) if isinstance(value, (int, float)) else value
        return cleaned

    def is_empty(self) -> bool:
        return not any(self.model_dump(exclude={"other"}).values()) and not self.other


class RiskAssessmentResult(ContractModel):
    contract_label: ClassVar[str] = "risk assessment"

    risk_flags: List[RiskFlag] = Field(alias="riskFlags")
    symptoms_extracted: List[ExtractedSymptom] = Field(alias="symptomsExtracted")
    vitals_mentioned: Optional[VitalsMentioned] = Field(default=None, alias="vitalsMentioned")
    overall_acuity: AcuityLevel = Field(alias="overallAcuity")
    red_flags: List[str] = Field(default_factory=list, alias="redFlags")
    confidence: Optional[float] = None
    reasoning: str = ""

    @field_validator("overall_acuity", mode="before")
    @classmethod
    def normalize_acuity(cls, value: Any) -> Any:
        return _lowercase(value)

    @field_validator("red_flags", mode="before")
    @classmethod
    def default_lists(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("reasoning", mode="before")
    @classmethod
    def default_text(cls, value: Any) -> Any:
        return "" if value is None else value

    @model_validator(mode="after")
    def normalize(self) -> "RiskAssessmentResult":
        self.confidence = _normalize_confidence(self.confidence)
        if self.vitals_mentioned is not None and self.vitals_mentioned.is_empty():
            self.vitals_mentioned = None
        return self


class ClinicalSummaryResult(ContractModel):
    contract_label: ClassVar[str] = "clinical summary"

    chief_complaint: NonEmptyStr = Field(alias="chiefComplaint")
    summary_text: NonEmptyStr = Field(alias="summaryText")
    key_findings: List[str] = Field(default_factory=list, alias="keyFindings")
    timeline: str = ""
    pertinent_negatives: List[str] = Field(default_factory=list, alias="pertinentNegatives")
    differential_considerations: List[str] = Field(
        default_factory=list, alias="differentialConsiderations"
    )
    confidence: Optional[float] = None

    @field_validator(
        "key_findings", "pertinent_negatives", "differential_considerations", mode="before"
    )
    @classmethod
    def default_lists(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("timeline", mode="before")
    @classmethod
    def default_text(cls, value: Any) -> Any:
        return "" if value is None else value

    @model_validator(mode="after")
    def normalize(self) -> "ClinicalSummaryResult":
        self.confidence = _normalize_confidence(self.confidence)
        return self


class NextStepsResult(ContractModel):
    contract_label: ClassVar[str] = "next steps"

    recommended_action: NonEmptyStr = Field(alias="recommendedAction")
    urgency_timeframe: NonEmptyStr = Field(alias="urgencyTimeframe")
    reasoning: str = ""
    patient_instructions: List[str] = Field(default_factory=list, alias="patientInstructions")
    warning_signs: List[str] = Field(default_factory=list, alias="warningSigns")
    self_care_recommendations: List[str] = Field(
        default_factory=list, alias="selfCareRecommendations"
    )
    specialist_type_recommended: Optional[str] = Field(
        default=None, alias="specialistTypeRecommended"
    )
    follow_up_recommendation: str = Field(default="", alias="followUpRecommendation")
    confidence: Optional[float] = None

    @field_validator(
        "patient_instructions", "warning_signs", "self_care_recommendations", mode="before"
    )
    @classmethod
    def default_lists(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("reasoning", "follow_up_recommendation", mode="before")
    @classmethod
    def default_text(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("specialist_type_recommended", mode="before")
    @classmethod
    def normalize_specialist(cls, value: Any) -> Any:
        if isinstance(value, str):
            cleaned = value.strip().lower()
            if cleaned in ("", "null", "none", "n/a"):
                return None
            return cleaned.replace(" ", "-")
        return value

    @model_validator(mode="after")
    def normalize(self) -> "NextStepsResult":
        self.confidence = _normalize_confidence(self.confidence)
        return self


def parse_risk_assessment(payload: str) -> RiskAssessmentResult:
    return RiskAssessmentResult.from_json(payload)


def parse_clinical_summary(payload: str) -> ClinicalSummaryResult:
    return ClinicalSummaryResult.from_json(payload)


def parse_next_steps(payload: str) -> NextStepsResult:
    return NextStepsResult.from_json(payload)


def _describe_errors(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "<root>"
        if error.get("type") == "missing":
            parts.append(f"missing {location}")
        else:
            parts.append(f"{location}: {error.get('msg')}")
    return "; ".join(parts)


def _clean_json_payload(payload: str) -> str:
    """Strip Markdown code blocks and find the first/last brace to extract JSON."""
    if not payload:
        return ""

    # Remove markdown code blocks if present
    cleaned = payload.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]

    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]

    cleaned = cleaned.strip()

    # Find the first '{' and last '}'
    start = cleaned.find("{")
    end = cleaned.rfind("}")

    if start != -1 and end != -1 and end > start:
        cleaned = cleaned[start : end + 1]

    return cleaned


__all__ = [
    "AcuityLevel",
    "ClinicalSummaryResult",
    "DEFAULT_CONFIDENCE",
    "ExtractedSymptom",
    "NextStepsResult",
    "ResponseContractError",
    "RiskAssessmentResult",
    "RiskFlag",
    "RiskSeverity",
    "VitalsMentioned",
    "parse_clinical_summary",
    "parse_next_steps",
    "parse_risk_assessment",
]
