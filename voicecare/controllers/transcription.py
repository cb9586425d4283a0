"""Direct speech-to-text endpoints."""

import logging
from typing import Any, Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status

from voicecare.controllers.dependencies import TranscriptionGatewayDep
from voicecare.pipelines.report.ingestion import read_audio_bytes, resolve_mime_type
from voicecare.services.provider_errors import ProviderErrorKind
from voicecare.services.transcribe import validate_audio_payload
from voicecare.views import (
    TranscribedWordView,
    TranscriptionHealthView,
    TranscriptionView,
    envelope,
)

router = APIRouter(prefix="/transcribe", tags=["transcription"])

logger = logging.getLogger(__name__)
transcript_logger = logging.getLogger("voicecare.logs.transcript")

_AUDIO_FILE_UPLOAD = File(None)
_LANGUAGE_FORM = Form(None)


@router.post("")
async def transcribe_recording(
    gateway: TranscriptionGatewayDep,
    audio: Optional[UploadFile] = _AUDIO_FILE_UPLOAD,
    language: Optional[str] = _LANGUAGE_FORM,
) -> dict[str, Any]:
    """Transcribe an uploaded recording and return the text with word timings."""

    if audio is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No audio file provided")

    mime_type = resolve_mime_type(audio)
    audio_bytes = await read_audio_bytes(audio)

    validation_error = validate_audio_payload(audio_bytes, mime_type)
    if validation_error:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=validation_error)

    result = await gateway.transcribe(audio_bytes, mime_type, language)
    if not result.success:
        logger.warning("Transcription failed provider=%s kind=%s: %s", result.provider, result.error_kind, result.error)
        status_code = (
            status.HTTP_400_BAD_REQUEST
            if result.error_kind is ProviderErrorKind.INVALID_INPUT
            else status.HTTP_502_BAD_GATEWAY
        )
        raise HTTPException(status_code=status_code, detail=result.error or "Transcription failed")

    transcript_logger.info("direct | provider=%s | text=%s", result.provider, result.transcript)
    view = TranscriptionView(
        transcript=result.transcript,
        confidence=result.confidence,
        duration=result.duration_seconds,
        provider=result.provider,
        words=[
            TranscribedWordView(
                word=word.word,
                start=word.start,
                end=word.end,
                confidence=word.confidence,
            )
            for word in result.words
        ],
    )
    return envelope(view)


@router.get("/health")
async def transcription_health(gateway: TranscriptionGatewayDep) -> dict[str, Any]:
    """Report which speech-to-text providers have credentials configured."""

    providers = gateway.health()
    view = TranscriptionHealthView(
        healthy=any(providers.values()),
        primary=gateway.primary,
        fallback=gateway.secondary,
        providers=providers,
    )
    return envelope(view)
