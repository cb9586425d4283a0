"""Stage sequencing, metadata and failure handling of the analysis orchestrator."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from conftest import NEXT_STEPS_PAYLOAD, RISK_PAYLOAD, FakeLlmClient, as_json
from voicecare.config.settings import AnalysisConfig
from voicecare.pipelines.analysis import (
    AnalysisInput,
    AnalysisOrchestrator,
    AnalysisStage,
    AnalysisStageError,
    DEFAULT_WARNING_SIGNS,
    DoctorForMatching,
    MEDICAL_DISCLAIMER,
    PatientContext,
    estimate_cost,
)

NOW = datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)

DOCTORS = (
    DoctorForMatching(
        id="cardio-1",
        name="Dr. Heart",
        specialty="cardiology",
        years_experience=12,
        rating=4.8,
        available_slots=3,
        next_available_at=NOW + timedelta(hours=20),
    ),
    DoctorForMatching(
        id="gp-1",
        name="Dr. General",
        specialty="primary-care",
        years_experience=8,
        rating=4.2,
        available_slots=6,
        next_available_at=NOW + timedelta(days=2),
    ),
)


class RecordingListener:
    def __init__(self) -> None:
        self.events = []

    async def stage_started(self, stage):
        self.events.append(("started", stage))

    async def stage_finished(self, metadata):
        self.events.append(("finished", metadata.stage, metadata.success))


def _orchestrator(client, config, no_sleep, **kwargs):
    return AnalysisOrchestrator(client, config=config, sleep=no_sleep, clock=lambda: NOW, **kwargs)


@pytest.mark.asyncio
async def test_full_analysis_with_doctor_matching(analysis_config, no_sleep, scripted_responses):
    client = FakeLlmClient(scripted_responses)
    listener = RecordingListener()
    orchestrator = _orchestrator(client, analysis_config, no_sleep)

    result = await orchestrator.run(
        AnalysisInput(
            transcript="I have had chest pressure for three days",
            patient_context=PatientContext(age=54, known_conditions=["hypertension"]),
            available_doctors=DOCTORS,
            voice_note_id="voice-note-1",
        ),
        listener=listener,
    )

    assert result.success
    assert result.voice_note_id == "voice-note-1"
    assert result.risk_assessment.overall_acuity == "urgent"
    assert result.next_steps.specialist_type_recommended == "cardiology"
    assert result.disclaimer == MEDICAL_DISCLAIMER

    matching = result.doctor_matching
    assert matching.recommended_specialty == "cardiology"
    assert matching.matches[0].doctor_id == "cardio-1"
    assert matching.urgency_note == "Schedule an appointment. Recommended timeframe: within 24 hours."
    assert matching.confidence == 0.8

    metadata = result.metadata
    assert metadata.model_used == "test-model"
    assert metadata.analysis_id.startswith("analysis_")
    assert metadata.timestamp == NOW
    assert metadata.input_tokens == 300
    assert metadata.output_tokens == 150
    assert metadata.total_tokens_used == 450
    assert metadata.estimated_cost == estimate_cost(300, 150, analysis_config)
    assert [stage.stage for stage in metadata.stages] == [
        AnalysisStage.RISK_ASSESSMENT,
        AnalysisStage.CLINICAL_SUMMARY,
        AnalysisStage.NEXT_STEPS,
        AnalysisStage.DOCTOR_MATCHING,
    ]
    assert all(stage.success for stage in metadata.stages)
    assert metadata.stages[0].tokens_used == 150
    assert metadata.stages[3].tokens_used == 0

    assert listener.events[0] == ("started", AnalysisStage.RISK_ASSESSMENT)
    assert listener.events[-1] == ("finished", AnalysisStage.DOCTOR_MATCHING, True)


@pytest.mark.asyncio
async def test_prompts_chain_previous_outputs(analysis_config, no_sleep, scripted_responses):
    client = FakeLlmClient(scripted_responses)
    orchestrator = _orchestrator(client, analysis_config, no_sleep)

    await orchestrator.run(
        AnalysisInput(
            transcript="I have had chest pressure for three days",
            patient_context=PatientContext(age=54, known_conditions=["hypertension"]),
        )
    )

    risk_prompt, summary_prompt, next_steps_prompt = (call["user_prompt"] for call in client.calls)
    assert "PATIENT CONTEXT" in risk_prompt
    assert "Known conditions: hypertension" in risk_prompt
    assert "I have had chest pressure for three days" in summary_prompt
    assert "Chest discomfort (moderate)" in summary_prompt
    assert "CHIEF COMPLAINT: Chest pressure for three days" in next_steps_prompt
    assert "OVERALL ACUITY: urgent" in next_steps_prompt


@pytest.mark.asyncio
async def test_no_doctors_skips_matching(analysis_config, no_sleep, scripted_responses):
    client = FakeLlmClient(scripted_responses)
    orchestrator = _orchestrator(client, analysis_config, no_sleep)

    result = await orchestrator.run(AnalysisInput(transcript="Mild headache since this morning"))

    assert result.doctor_matching is None
    assert len(result.metadata.stages) == 3


@pytest.mark.asyncio
async def test_mandatory_stage_failure_aborts(analysis_config, no_sleep):
    client = FakeLlmClient([as_json(RISK_PAYLOAD), "Sorry, I can't produce JSON right now."])
    listener = RecordingListener()
    orchestrator = _orchestrator(client, analysis_config, no_sleep)

    with pytest.raises(AnalysisStageError) as excinfo:
        await orchestrator.run(AnalysisInput(transcript="Chest pressure"), listener=listener)

    error = excinfo.value
    assert error.stage is AnalysisStage.CLINICAL_SUMMARY
    assert "No valid JSON found in clinical summary response" in str(error)
    assert [(stage.stage, stage.success) for stage in error.stages] == [
        (AnalysisStage.RISK_ASSESSMENT, True),
        (AnalysisStage.CLINICAL_SUMMARY, False),
    ]
    assert error.stages[1].error == str(error)
    assert len(client.calls) == 2
    assert ("finished", AnalysisStage.CLINICAL_SUMMARY, False) in listener.events


@pytest.mark.asyncio
async def test_doctor_matching_failure_is_suppressed(analysis_config, no_sleep, scripted_responses):
    def broken_matcher(doctors, profile, now):
        raise ValueError("directory returned malformed data")

    client = FakeLlmClient(scripted_responses)
    orchestrator = _orchestrator(client, analysis_config, no_sleep, doctor_matcher=broken_matcher)

    result = await orchestrator.run(AnalysisInput(transcript="Chest pressure", available_doctors=DOCTORS))

    assert result.success
    assert result.doctor_matching is None
    last = result.metadata.stages[-1]
    assert last.stage is AnalysisStage.DOCTOR_MATCHING
    assert not last.success
    assert last.error == "directory returned malformed data"


@pytest.mark.asyncio
async def test_urgent_cases_always_carry_warning_signs(analysis_config, no_sleep):
    client = FakeLlmClient(
        [
            as_json(RISK_PAYLOAD, overallAcuity="emergent"),
            as_json(
                {
                    "chiefComplaint": "Crushing chest pain",
                    "summaryText": "Sudden onset chest pain radiating to the arm.",
                }
            ),
            as_json(NEXT_STEPS_PAYLOAD, warningSigns=[]),
        ]
    )
    orchestrator = _orchestrator(client, analysis_config, no_sleep)

    result = await orchestrator.run(AnalysisInput(transcript="Crushing chest pain"))

    assert result.next_steps.warning_signs == list(DEFAULT_WARNING_SIGNS)


@pytest.mark.asyncio
async def test_routine_cases_keep_model_warning_signs(analysis_config, no_sleep):
    client = FakeLlmClient(
        [
            as_json(RISK_PAYLOAD, overallAcuity="routine"),
            as_json({"chiefComplaint": "Seasonal sniffles", "summaryText": "Runny nose for a week."}),
            as_json(NEXT_STEPS_PAYLOAD, warningSigns=None),
        ]
    )
    orchestrator = _orchestrator(client, analysis_config, no_sleep)

    result = await orchestrator.run(AnalysisInput(transcript="Runny nose"))

    assert result.next_steps.warning_signs == []


def test_cost_is_rounded_to_four_places():
    config = AnalysisConfig(input_cost_per_1k=0.003, output_cost_per_1k=0.015)

    assert estimate_cost(1000, 1000, config) == 0.018
    assert estimate_cost(1234, 567, config) == 0.0122
    assert estimate_cost(0, 0, config) == 0.0


@pytest.mark.asyncio
async def test_same_replies_give_same_analysis(analysis_config, no_sleep, scripted_responses):
    request = AnalysisInput(transcript="I have had chest pressure for three days", available_doctors=DOCTORS)

    first = await _orchestrator(FakeLlmClient(list(scripted_responses)), analysis_config, no_sleep).run(request)
    second = await _orchestrator(FakeLlmClient(list(scripted_responses)), analysis_config, no_sleep).run(request)

    def stage_outline(result):
        return [(stage.stage, stage.tokens_used, stage.success) for stage in result.metadata.stages]

    assert stage_outline(first) == stage_outline(second)
    assert first.metadata.total_tokens_used == second.metadata.total_tokens_used
    assert first.metadata.estimated_cost == second.metadata.estimated_cost
    assert first.risk_assessment == second.risk_assessment
    assert first.next_steps == second.next_steps
    assert [match.doctor_id for match in first.doctor_matching.matches] == [
        match.doctor_id for match in second.doctor_matching.matches
    ]
    assert first.metadata.analysis_id != second.metadata.analysis_id
