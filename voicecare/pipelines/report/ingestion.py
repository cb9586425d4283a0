"""Request ingestion helpers for uploaded recordings."""

from __future__ import annotations

from pathlib import PurePath
from typing import Final

from fastapi import UploadFile

from voicecare.config.settings import settings

DEFAULT_MIME_TYPE: Final[str] = "audio/webm"

_READ_CHUNK_BYTES: Final[int] = 64 * 1024

# Extensions map onto the accepted audio/* types, not the registry's video/* or x-wav guesses.
AUDIO_EXTENSION_TYPES: Final[dict[str, str]] = {
    ".webm": "audio/webm",
    ".weba": "audio/webm",
    ".wav": "audio/wav",
    ".wave": "audio/wav",
    ".mp3": "audio/mpeg",
    ".mp4": "audio/mp4",
    ".m4a": "audio/mp4",
    ".ogg": "audio/ogg",
    ".oga": "audio/ogg",
    ".opus": "audio/ogg",
    ".flac": "audio/flac",
}


def resolve_mime_type(audio_file: UploadFile) -> str:
    """Use the declared content type, falling back to the file extension."""

    content_type = audio_file.content_type
    if content_type and content_type != "application/octet-stream":
        return content_type

    if audio_file.filename:
        by_extension = AUDIO_EXTENSION_TYPES.get(PurePath(audio_file.filename).suffix.lower())
        if by_extension:
            return by_extension

    return DEFAULT_MIME_TYPE


async def read_audio_bytes(audio_file: UploadFile, limit: int | None = None) -> bytes:
    """Read the upload, stopping one byte past ``limit``.

    An oversized upload therefore still fails the size check downstream, but
    never more than ``limit + 1`` bytes are held for the job.
    """

    cap = (limit if limit is not None else settings.transcription.max_audio_bytes) + 1
    chunks: list[bytes] = []
    received = 0
    try:
        while received < cap:
            chunk = await audio_file.read(min(_READ_CHUNK_BYTES, cap - received))
            if not chunk:
                break
            chunks.append(chunk)
            received += len(chunk)
    finally:
        await audio_file.close()
    return b"".join(chunks)


__all__ = ["AUDIO_EXTENSION_TYPES", "DEFAULT_MIME_TYPE", "read_audio_bytes", "resolve_mime_type"]
