"""Analysis pipeline package.

Modules are organised by the order in which an analysis executes:

1. `prompts` - system/user prompts for each model stage.
2. `stage_runner` - one completion request with bounded retries.
3. `matching` - deterministic doctor scoring and ranking.
4. `orchestrator` - sequences the stages and assembles the result.
5. `flow` - human-readable description of the end-to-end stages.
"""

from .flow import PipelineStage, ReportGenerationPipeline
from .matching import match_doctors, rank_doctors, score_doctor, urgency_narrative
from .orchestrator import (
    AnalysisOrchestrator,
    AnalysisStageError,
    DEFAULT_WARNING_SIGNS,
    MEDICAL_DISCLAIMER,
    StageListener,
    estimate_cost,
)
from .stage_runner import run_stage
from .types import (
    AnalysisInput,
    AnalysisMetadata,
    AnalysisStage,
    ClinicalProfile,
    DoctorForMatching,
    DoctorMatch,
    DoctorMatchingResult,
    FullAnalysisResult,
    PatientContext,
    StageMetadata,
    StageResult,
)

__all__ = [
    "AnalysisInput",
    "AnalysisMetadata",
    "AnalysisOrchestrator",
    "AnalysisStage",
    "AnalysisStageError",
    "ClinicalProfile",
    "DEFAULT_WARNING_SIGNS",
    "DoctorForMatching",
    "DoctorMatch",
    "DoctorMatchingResult",
    "FullAnalysisResult",
    "MEDICAL_DISCLAIMER",
    "PatientContext",
    "PipelineStage",
    "ReportGenerationPipeline",
    "StageListener",
    "StageMetadata",
    "StageResult",
    "estimate_cost",
    "match_doctors",
    "rank_doctors",
    "run_stage",
    "score_doctor",
    "urgency_narrative",
]
