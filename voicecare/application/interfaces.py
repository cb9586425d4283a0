from abc import ABC, abstractmethod
from typing import List, Optional

from voicecare.pipelines.analysis.types import DoctorForMatching, FullAnalysisResult


class TranscriptRepositoryInterface(ABC):
    """Persistence contract for transcribed voice notes"""

    @abstractmethod
    async def save(self, patient_id: str, transcript: str, duration_seconds: float) -> str:
        """Store the transcript and return the voice note id."""


class ReportRepositoryInterface(ABC):
    """Persistence contract for generated reports"""

    @abstractmethod
    async def save(
        self,
        patient_id: str,
        voice_note_id: Optional[str],
        analysis: FullAnalysisResult,
    ) -> str:
        """Store the analysis and return the report id."""


class DoctorDirectoryInterface(ABC):
    """Read-only view of doctors that can still be booked"""

    @abstractmethod
    async def list_available_doctors(self) -> List[DoctorForMatching]:
        ...
