"""Shared fakes for the report pipeline tests."""

from __future__ import annotations

import json
from pathlib import Path
import sys
from typing import Any, Iterable, List, Optional, Sequence, Union

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from voicecare.config.settings import AnalysisConfig, TranscriptionConfig  # noqa: E402
from voicecare.services.llm_client import LlmCompletion  # noqa: E402
from voicecare.services.transcription_types import TranscriptionResult  # noqa: E402


RISK_PAYLOAD = {
    "riskFlags": [
        {
            "flag": "Chest discomfort",
            "severity": "Moderate",
            "description": "Intermittent pressure on exertion",
            "clinicalRationale": "Exertional chest symptoms warrant cardiac evaluation",
        }
    ],
    "symptomsExtracted": [
        {
            "symptom": "chest pressure",
            "duration": "3 days",
            "severity": "moderate",
            "aggravatingFactors": ["climbing stairs"],
            "relievingFactors": None,
        }
    ],
    "vitalsMentioned": {"heartRate": 96, "bloodPressure": "null"},
    "overallAcuity": "Urgent",
    "redFlags": ["exertional chest pain"],
    "confidence": 0.8,
    "reasoning": "Exertional symptoms in an adult",
}

SUMMARY_PAYLOAD = {
    "chiefComplaint": "Chest pressure for three days",
    "summaryText": "Adult reporting exertional chest pressure relieved by rest.",
    "keyFindings": ["Exertional chest pressure"],
    "timeline": "Began three days ago",
    "pertinentNegatives": ["No fainting"],
    "differentialConsiderations": ["Stable angina"],
    "confidence": 0.7,
}

NEXT_STEPS_PAYLOAD = {
    "recommendedAction": "See a cardiologist",
    "urgencyTimeframe": "within 24 hours",
    "reasoning": "Exertional chest symptoms",
    "patientInstructions": ["Avoid strenuous activity"],
    "warningSigns": ["Pain at rest"],
    "selfCareRecommendations": [],
    "specialistTypeRecommended": "Cardiology",
    "followUpRecommendation": "Review results with primary care",
    "confidence": 0.9,
}


def as_json(payload: dict, **overrides: Any) -> str:
    data = dict(payload)
    data.update(overrides)
    return json.dumps(data)


Scripted = Union[str, Exception]


class FakeLlmClient:
    """Replays scripted completions in order and records every prompt."""

    model_id = "test-model"

    def __init__(self, responses: Iterable[Scripted], *, input_tokens: int = 100, output_tokens: int = 50) -> None:
        self._responses: List[Scripted] = list(responses)
        self._input_tokens = input_tokens
        self._output_tokens = output_tokens
        self.calls: List[dict] = []

    async def complete(self, *, system_prompt: str, user_prompt: str) -> LlmCompletion:
        self.calls.append({"system_prompt": system_prompt, "user_prompt": user_prompt})
        if not self._responses:
            raise AssertionError("FakeLlmClient ran out of scripted responses")
        item = self._responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return LlmCompletion(
            text=item,
            input_tokens=self._input_tokens,
            output_tokens=self._output_tokens,
            model_id=self.model_id,
        )


class FakeProvider:
    """Transcription provider returning queued results."""

    def __init__(self, name: str, results: Sequence[TranscriptionResult], *, configured: bool = True) -> None:
        self.name = name
        self._results = list(results)
        self._configured = configured
        self.calls = 0

    @property
    def configured(self) -> bool:
        return self._configured

    async def transcribe(self, audio: bytes, mime_type: str, language: Optional[str] = None) -> TranscriptionResult:
        self.calls += 1
        return self._results.pop(0)


def transcript_ok(provider: str, text: str = "I have had chest pressure for three days") -> TranscriptionResult:
    return TranscriptionResult(
        success=True,
        transcript=text,
        confidence=0.93,
        duration_seconds=12.5,
        provider=provider,
    )


class FakeTranscriptRepository:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.saved: List[tuple] = []

    async def save(self, patient_id: str, transcript: str, duration_seconds: float) -> str:
        if self.fail:
            raise RuntimeError("database unavailable")
        self.saved.append((patient_id, transcript, duration_seconds))
        return "voice-note-1"


class FakeReportRepository:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.saved: List[tuple] = []

    async def save(self, patient_id: str, voice_note_id: Optional[str], analysis: Any) -> str:
        if self.fail:
            raise RuntimeError("database unavailable")
        self.saved.append((patient_id, voice_note_id, analysis))
        return "report-1"


class FakeDoctorDirectory:
    def __init__(self, doctors: Sequence[Any] = (), *, fail: bool = False) -> None:
        self._doctors = list(doctors)
        self.fail = fail

    async def list_available_doctors(self):
        if self.fail:
            raise RuntimeError("database unavailable")
        return list(self._doctors)


@pytest.fixture
def transcription_config() -> TranscriptionConfig:
    return TranscriptionConfig(
        max_retries=2,
        retry_delay_seconds=0.0,
        timeout_seconds=5.0,
        min_audio_bytes=10,
        max_audio_bytes=1000,
    )


@pytest.fixture
def analysis_config() -> AnalysisConfig:
    return AnalysisConfig(
        stage_retries=2,
        retry_base_delay_seconds=1.0,
        input_cost_per_1k=0.003,
        output_cost_per_1k=0.015,
    )


@pytest.fixture
def no_sleep():
    """Record requested delays instead of waiting."""

    delays: List[float] = []

    async def _sleep(seconds: float) -> None:
        delays.append(seconds)

    _sleep.delays = delays
    return _sleep


@pytest.fixture
def scripted_responses() -> List[str]:
    return [as_json(RISK_PAYLOAD), as_json(SUMMARY_PAYLOAD), as_json(NEXT_STEPS_PAYLOAD)]
