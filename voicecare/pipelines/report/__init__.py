"""Report generation pipeline package.

1. `supervisor` - audio to persisted report with progress updates.
2. `runner` - detached execution, job progress and cancellation.
"""

from .runner import ReportJobRunner
from .supervisor import (
    CANCELLED_MESSAGE,
    PipelineFailure,
    PipelineResult,
    ProgressCallback,
    ProgressUpdate,
    ReportPipeline,
)

__all__ = [
    "CANCELLED_MESSAGE",
    "PipelineFailure",
    "PipelineResult",
    "ProgressCallback",
    "ProgressUpdate",
    "ReportJobRunner",
    "ReportPipeline",
]
