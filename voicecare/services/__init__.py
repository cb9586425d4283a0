"""Service layer helpers for external integrations."""

from .job_store import (
    InMemoryJobStore,
    Job,
    JobStatus,
    JobStore,
    RedisJobStore,
    STAGE_LABELS,
    STAGE_ORDER,
    get_job_store,
)
from .llm_client import BedrockLlmClient, LlmCompletion, LlmInvocationError, get_llm_client
from .provider_errors import ProviderError, ProviderErrorKind
from .response_contract import (
    ClinicalSummaryResult,
    NextStepsResult,
    ResponseContractError,
    RiskAssessmentResult,
)
from .transcribe import (
    TranscriptionGateway,
    get_transcription_gateway,
    validate_audio_payload,
)
from .transcription_types import TranscriptionResult

__all__ = [
    "BedrockLlmClient",
    "LlmCompletion",
    "LlmInvocationError",
    "get_llm_client",
    "ProviderError",
    "ProviderErrorKind",
    "ClinicalSummaryResult",
    "NextStepsResult",
    "ResponseContractError",
    "RiskAssessmentResult",
    "TranscriptionGateway",
    "TranscriptionResult",
    "get_transcription_gateway",
    "validate_audio_payload",
    "InMemoryJobStore",
    "Job",
    "JobStatus",
    "JobStore",
    "RedisJobStore",
    "STAGE_LABELS",
    "STAGE_ORDER",
    "get_job_store",
]
