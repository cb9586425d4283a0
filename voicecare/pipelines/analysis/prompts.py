"""Prompt construction for the analysis stages.

Each stage has a fixed system prompt and a builder that renders the user
prompt from the transcript and the outputs of the stages before it.
"""

from __future__ import annotations

from typing import Iterable, Optional

from voicecare.services.response_contract import ClinicalSummaryResult, RiskAssessmentResult

from .types import PatientContext


RISK_ASSESSMENT_SYSTEM_PROMPT = """You are a clinical decision support assistant that triages patient-reported symptoms.
Your job is to identify potential health risks so care can be prioritised.

You are NOT making a diagnosis. You flag risks that deserve professional evaluation.
When uncertain, flag the higher risk. Never dismiss a concerning symptom.

ACUITY LEVELS:
- "emergent": potentially life-threatening, needs immediate attention (emergency department / 911)
- "urgent": significant concern, needs same-day or next-day evaluation
- "routine": can be handled in a scheduled appointment within 1-2 weeks

SEVERITY LEVELS for individual risks: "critical", "high", "moderate", "low".

Always escalate these red flags:
- Chest pain, especially with shortness of breath or radiating to the arm or jaw
- Sudden severe headache
- Difficulty breathing
- Signs of stroke (face drooping, arm weakness, speech difficulty)
- Severe abdominal pain
- Uncontrolled bleeding
- Loss of consciousness or altered mental status
- Suicidal ideation or thoughts of self-harm
- Signs of a severe allergic reaction

Extract every mentioned symptom accurately. Respond with JSON only."""

CLINICAL_SUMMARY_SYSTEM_PROMPT = """You are a clinical documentation assistant writing concise summaries of patient symptom reports for healthcare providers.

Write in professional clinical language following standard documentation conventions.
Highlight clinically relevant information, note the timeline and progression of symptoms,
and include pertinent negatives when they matter. Stay objective and factual.

This is a preliminary summary of a patient self-report. The provider performs their own assessment.
Respond with JSON only."""

NEXT_STEPS_SYSTEM_PROMPT = """You are a care navigation assistant recommending next steps after a symptom analysis.

Principles:
1. Safety first: when in doubt recommend more urgent care.
2. Give clear, actionable instructions in plain language.
3. Always list warning signs that warrant immediate care.
4. Never suggest managing serious symptoms at home.

URGENCY TIMEFRAMES: "Immediately / Call 911", "Within hours", "Within 24 hours",
"Within 2-3 days", "Within 1-2 weeks", "As needed".

SPECIALIST TYPES (use these exact terms): primary-care, cardiology, pulmonology,
gastroenterology, neurology, orthopedics, dermatology, endocrinology,
infectious-disease, psychiatry, urgent-care, emergency-medicine.

Respond with JSON only."""


def _bullets(items: Iterable[str]) -> str:
    lines = [f"- {item}" for item in items if item]
    return "\n".join(lines) if lines else "- None reported"


def _patient_context_section(context: Optional[PatientContext]) -> str:
    if context is None:
        return ""
    parts: list[str] = []
    if context.age:
        parts.append(f"Age: {context.age} years")
    if context.sex:
        parts.append(f"Sex: {context.sex}")
    if context.known_conditions:
        parts.append(f"Known conditions: {', '.join(context.known_conditions)}")
    if context.current_medications:
        meds = ", ".join(
            f"{med.name} {med.dosage}" if med.dosage else med.name
            for med in context.current_medications
        )
        parts.append(f"Current medications: {meds}")
    if not parts:
        return ""
    return "\nPATIENT CONTEXT:\n" + "\n".join(parts) + "\n"


def build_risk_assessment_prompt(
    transcript: str,
    patient_context: Optional[PatientContext] = None,
) -> str:
    return f"""Analyze the following patient symptom report and provide a structured risk assessment.
{_patient_context_section(patient_context)}
PATIENT TRANSCRIPT:
\"\"\"
{transcript}
\"\"\"

Respond with a JSON object:

{{
  "riskFlags": [
    {{
      "flag": "Name of the risk",
      "severity": "low|moderate|high|critical",
      "description": "Brief patient-friendly description",
      "clinicalRationale": "Clinical reasoning for this flag"
    }}
  ],
  "symptomsExtracted": [
    {{
      "symptom": "Symptom name",
      "duration": "How long, if mentioned",
      "severity": "Patient-reported severity, if mentioned",
      "location": "Body location, if applicable",
      "frequency": "How often, if mentioned",
      "aggravatingFactors": ["What makes it worse"],
      "relievingFactors": ["What makes it better"]
    }}
  ],
  "vitalsMentioned": {{
    "bloodPressure": "value or null",
    "heartRate": "value or null",
    "temperature": "value or null",
    "respiratoryRate": "value or null",
    "oxygenSaturation": "value or null",
    "bloodSugar": "value or null",
    "other": {{}}
  }},
  "overallAcuity": "routine|urgent|emergent",
  "redFlags": ["Red flag symptoms identified"],
  "confidence": 0.85,
  "reasoning": "Brief explanation of the acuity determination"
}}

If no vitals are mentioned set vitalsMentioned to null. If there are no red flags return an empty array.
Confidence is your certainty in the assessment between 0.0 and 1.0."""


def build_clinical_summary_prompt(risk: RiskAssessmentResult, transcript: str) -> str:
    symptoms = []
    for item in risk.symptoms_extracted:
        text = item.symptom
        if item.duration:
            text += f" ({item.duration})"
        if item.severity:
            text += f" - {item.severity}"
        if item.location:
            text += f" in {item.location}"
        symptoms.append(text)
    risks = [f"{flag.flag} ({flag.severity}): {flag.clinical_rationale}" for flag in risk.risk_flags]
    red_flags = f"RED FLAGS: {', '.join(risk.red_flags)}\n" if risk.red_flags else ""

    return f"""Based on the patient symptom report and risk assessment, write a professional clinical summary.

ORIGINAL TRANSCRIPT:
\"\"\"
{transcript}
\"\"\"

EXTRACTED SYMPTOMS:
{_bullets(symptoms)}

IDENTIFIED RISKS:
{_bullets(risks)}

OVERALL ACUITY: {risk.overall_acuity}
{red_flags}
Respond with a JSON object:

{{
  "chiefComplaint": "One-line chief complaint, e.g. '3-day history of persistent headache'",
  "summaryText": "2-3 paragraph HPI-style narrative for a healthcare provider",
  "keyFindings": ["Important clinical finding"],
  "timeline": "Symptom onset and progression",
  "pertinentNegatives": ["Clinically significant symptoms the patient denied or did not mention"],
  "differentialConsiderations": ["Condition worth considering"],
  "confidence": 0.85
}}"""


def build_next_steps_prompt(risk: RiskAssessmentResult, summary: ClinicalSummaryResult) -> str:
    if risk.red_flags:
        red_flags = "RED FLAGS PRESENT:\n" + _bullets(risk.red_flags)
    else:
        red_flags = "No immediate red flags identified."

    return f"""Based on the risk assessment and clinical summary, recommend next steps for the patient.

CHIEF COMPLAINT: {summary.chief_complaint}

OVERALL ACUITY: {risk.overall_acuity}

KEY FINDINGS:
{_bullets(summary.key_findings)}

RISK FLAGS:
{_bullets(f"{flag.flag} ({flag.severity})" for flag in risk.risk_flags)}

{red_flags}

DIFFERENTIAL CONSIDERATIONS:
{_bullets(summary.differential_considerations)}

Respond with a JSON object:

{{
  "recommendedAction": "Primary recommendation",
  "urgencyTimeframe": "One of the standard timeframes",
  "reasoning": "Why this level of urgency",
  "patientInstructions": ["Specific action item"],
  "warningSigns": ["Symptom that should trigger immediate medical attention"],
  "selfCareRecommendations": ["Safe self-care measure, only if appropriate for the acuity"],
  "specialistTypeRecommended": "specialty-type or null if primary care is sufficient",
  "followUpRecommendation": "When and how to follow up",
  "confidence": 0.85
}}

Rules:
1. For "emergent" acuity the recommendedAction must include seeking emergency care.
2. When red flags are present the urgencyTimeframe must be "Immediately" or "Within hours".
3. List at least 3 specific warning signs."""


__all__ = [
    "CLINICAL_SUMMARY_SYSTEM_PROMPT",
    "NEXT_STEPS_SYSTEM_PROMPT",
    "RISK_ASSESSMENT_SYSTEM_PROMPT",
    "build_clinical_summary_prompt",
    "build_next_steps_prompt",
    "build_risk_assessment_prompt",
]
