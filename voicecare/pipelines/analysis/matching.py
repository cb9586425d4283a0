"""Deterministic doctor matching.

Each candidate is scored from five weighted components:

* specialty alignment: +0.40 exact match, +0.20 primary care otherwise
* rating: ``rating / 5 * 0.20``
* experience: ``min(years / 20, 1) * 0.15``
* availability: +0.15 within a day, +0.10 within 3 days, +0.05 within a week
* open slots: +0.10 for five or more, +0.05 for at least one

Scores are capped at 1.0. Candidates under 0.30 are dropped and the rest are
ranked best first, ties broken by doctor id.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, List, Optional

from voicecare.services.response_contract import NextStepsResult, RiskAssessmentResult

from .types import ClinicalProfile, DoctorForMatching, DoctorMatch, DoctorMatchingResult

PRIMARY_CARE = "primary-care"
SCORE_FLOOR = 0.30
MAX_MATCHES = 10
MAX_REASONS = 3

EMERGENT_NOTE = (
    "Seek immediate medical care: call emergency services (911) "
    "or go to the nearest emergency department."
)
_DEFAULT_TIMEFRAMES = {
    "urgent": "within 24 hours",
    "routine": "within 1-2 weeks",
}


def normalize_specialty(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = "-".join(value.strip().lower().split())
    return cleaned or None


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _days_until(moment: Optional[datetime], now: datetime) -> Optional[float]:
    if moment is None:
        return None
    return (_as_utc(moment) - _as_utc(now)).total_seconds() / 86400


def _availability_points(days: Optional[float]) -> tuple[float, Optional[str]]:
    if days is None:
        return 0.0, None
    if days <= 1:
        return 0.15, "Available within 24 hours"
    if days <= 3:
        return 0.10, "Available within 3 days"
    if days <= 7:
        return 0.05, "Available this week"
    return 0.0, None


def score_doctor(
    doctor: DoctorForMatching,
    profile: ClinicalProfile,
    now: datetime,
) -> DoctorMatch:
    """Score a single candidate against the patient's clinical profile."""

    specialty = normalize_specialty(doctor.specialty) or ""
    target = normalize_specialty(profile.recommended_specialty)
    reasons: List[str] = []
    total = 0.0

    if target and specialty == target:
        total += 0.40
        reasons.append(f"Specializes in {doctor.specialty}")
        relevance = f"Direct match for the recommended {target} care"
    elif specialty == PRIMARY_CARE:
        total += 0.20
        reasons.append("Primary care physician who can evaluate and refer")
        if target:
            relevance = f"Primary care can assess first and coordinate a {target} referral"
        else:
            relevance = "Primary care is appropriate for the initial evaluation"
    else:
        relevance = f"{doctor.specialty} is outside the recommended {target or PRIMARY_CARE} care"

    rating = max(0.0, min(5.0, float(doctor.rating)))
    if rating > 0:
        total += rating / 5 * 0.20
        reasons.append(f"Rated {rating:.1f}/5 by patients")

    years = max(0, int(doctor.years_experience))
    if years > 0:
        total += min(years / 20, 1.0) * 0.15
        reasons.append(f"{years} years of experience")

    points, availability_reason = _availability_points(_days_until(doctor.next_available_at, now))
    if points:
        total += points
        reasons.append(availability_reason)

    slots = max(0, int(doctor.available_slots))
    if slots >= 5:
        total += 0.10
        reasons.append(f"{slots} open appointment slots")
    elif slots > 0:
        total += 0.05
        reasons.append("1 open appointment slot" if slots == 1 else f"{slots} open appointment slots")

    return DoctorMatch(
        doctor_id=doctor.id,
        match_score=round(min(total, 1.0), 4),
        match_reasons=reasons[:MAX_REASONS],
        specialty_relevance=relevance,
    )


def rank_doctors(
    doctors: Iterable[DoctorForMatching],
    profile: ClinicalProfile,
    now: datetime,
) -> List[DoctorMatch]:
    """Score every candidate, drop those below the floor and keep the best ten."""

    scored = [score_doctor(doctor, profile, now) for doctor in doctors]
    eligible = [match for match in scored if match.match_score >= SCORE_FLOOR]
    eligible.sort(key=lambda match: (-match.match_score, match.doctor_id))
    return eligible[:MAX_MATCHES]


def urgency_narrative(profile: ClinicalProfile) -> str:
    if profile.acuity == "emergent":
        return EMERGENT_NOTE
    timeframe = (profile.urgency_timeframe or "").strip()
    if not timeframe:
        timeframe = _DEFAULT_TIMEFRAMES[profile.acuity]
    return f"Schedule an appointment. Recommended timeframe: {timeframe}."


def profile_from_analysis(
    risk: RiskAssessmentResult,
    next_steps: NextStepsResult,
) -> ClinicalProfile:
    return ClinicalProfile(
        acuity=risk.overall_acuity,
        recommended_specialty=normalize_specialty(next_steps.specialist_type_recommended),
        urgency_timeframe=next_steps.urgency_timeframe,
        confidence=min(risk.confidence, next_steps.confidence),
    )


def match_doctors(
    doctors: Iterable[DoctorForMatching],
    profile: ClinicalProfile,
    now: Optional[datetime] = None,
) -> DoctorMatchingResult:
    """Build the doctor matching stage output from the ranked shortlist."""

    moment = now or datetime.now(timezone.utc)
    return DoctorMatchingResult(
        matches=rank_doctors(doctors, profile, moment),
        recommended_specialty=profile.recommended_specialty or PRIMARY_CARE,
        urgency_note=urgency_narrative(profile),
        confidence=profile.confidence,
    )


__all__ = [
    "EMERGENT_NOTE",
    "MAX_MATCHES",
    "PRIMARY_CARE",
    "SCORE_FLOOR",
    "match_doctors",
    "normalize_specialty",
    "profile_from_analysis",
    "rank_doctors",
    "score_doctor",
    "urgency_narrative",
]
