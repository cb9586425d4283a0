"""Report generation endpoints.

For a stage-by-stage map see
`voicecare.pipelines.analysis.flow.ReportGenerationPipeline`. The POST
`/reports/generate` endpoint only accepts the upload and registers a job;
the pipeline itself runs in the background and clients poll the GET
endpoint for progress.
"""

import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, File, Form, HTTPException, Query, UploadFile, status
from pydantic import ValidationError

from voicecare.controllers.dependencies import ReportRunnerDep
from voicecare.pipelines.analysis.types import PatientContext
from voicecare.pipelines.report.ingestion import read_audio_bytes, resolve_mime_type
from voicecare.services.job_store import STAGE_LABELS, STAGE_ORDER
from voicecare.views import (
    ReportJobAccepted,
    ReportJobCancelled,
    StageCatalog,
    StageDescriptor,
    envelope,
)

router = APIRouter(prefix="/reports", tags=["reports"])

logger = logging.getLogger(__name__)

_AUDIO_FILE_UPLOAD = File(None)
_PATIENT_ID_FORM = Form(None, alias="patientId")
_PATIENT_CONTEXT_FORM = Form(None, alias="patientContext")
_JOB_ID_QUERY = Query(None, alias="jobId")


def _parse_patient_context(raw: Optional[str]) -> Optional[PatientContext]:
    if not raw:
        return None
    try:
        return PatientContext.model_validate(json.loads(raw))
    except (ValueError, ValidationError) as exc:
        logger.warning("Ignoring invalid patientContext: %s", exc)
        return None


def _require_job_id(job_id: Optional[str]) -> str:
    if not job_id or not job_id.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Job ID required")
    return job_id.strip()


@router.post("/generate")
async def start_report_generation(
    background_tasks: BackgroundTasks,
    runner: ReportRunnerDep,
    audio: Optional[UploadFile] = _AUDIO_FILE_UPLOAD,
    patient_id: Optional[str] = _PATIENT_ID_FORM,
    patient_context: Optional[str] = _PATIENT_CONTEXT_FORM,
) -> dict[str, Any]:
    """Accept a recording and start generating its report in the background."""

    if audio is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No audio file provided")

    mime_type = resolve_mime_type(audio)
    audio_bytes = await read_audio_bytes(audio)

    context = _parse_patient_context(patient_context)
    job_id = await runner.store.create()
    background_tasks.add_task(
        runner.run,
        job_id,
        audio_bytes,
        mime_type,
        patient_id or None,
        context,
    )
    logger.info("Accepted report job %s bytes=%s mime=%s", job_id, len(audio_bytes), mime_type)

    accepted = ReportJobAccepted(job_id=job_id)
    return envelope(accepted)


@router.get("/generate")
async def get_report_job(
    runner: ReportRunnerDep,
    job_id: Optional[str] = _JOB_ID_QUERY,
) -> dict[str, Any]:
    """Return the current progress of a report job."""

    job = await runner.store.get(_require_job_id(job_id))
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return envelope(job.to_response())


@router.delete("/generate")
async def cancel_report_job(
    runner: ReportRunnerDep,
    job_id: Optional[str] = _JOB_ID_QUERY,
) -> dict[str, Any]:
    """Cancel a running report job."""

    resolved = _require_job_id(job_id)
    job = await runner.store.get(resolved)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")

    cancelled = runner.cancel(resolved)
    message = "Job cancelled" if cancelled else "Job is not running"
    payload = ReportJobCancelled(job_id=resolved, cancelled=cancelled, message=message)
    return envelope(payload)


@router.get("/stages")
async def list_report_stages() -> dict[str, Any]:
    """Expose stage labels and their display order for progress UIs."""

    order = {stage: index for index, stage in enumerate(STAGE_ORDER)}
    catalog = StageCatalog(
        stages=[
            StageDescriptor(stage=stage.value, label=label, order=order.get(stage))
            for stage, label in STAGE_LABELS.items()
        ]
    )
    return envelope(catalog)
