"""Progress tracking for detached report generation runs.

Each run owns a single job record that the supervisor mutates at every
milestone while clients poll it. Two backends share one async interface: a
lock-guarded in-process map (default) and a Redis key-value store for
deployments with more than one worker.
"""

from __future__ import annotations

import json
import logging
import secrets
import string
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Final, Optional

from pydantic import BaseModel, ConfigDict, Field
from redis import asyncio as redis_asyncio

from voicecare.config.settings import JobStoreConfig, settings

logger = logging.getLogger("voicecare.pipelines.jobs")

_ID_ALPHABET: Final[str] = string.ascii_lowercase + string.digits


class JobStatus(str, Enum):
    UPLOADING = "uploading"
    TRANSCRIBING = "transcribing"
    ANALYZING_RISKS = "analyzing-risks"
    GENERATING_SUMMARY = "generating-summary"
    GENERATING_RECOMMENDATIONS = "generating-recommendations"
    SAVING = "saving"
    COMPLETE = "complete"
    ERROR = "error"


STAGE_LABELS: Final[dict[JobStatus, str]] = {
    JobStatus.UPLOADING: "Uploading voice note",
    JobStatus.TRANSCRIBING: "Transcribing audio",
    JobStatus.ANALYZING_RISKS: "Analyzing symptoms",
    JobStatus.GENERATING_SUMMARY: "Generating clinical summary",
    JobStatus.GENERATING_RECOMMENDATIONS: "Creating recommendations",
    JobStatus.SAVING: "Saving report",
    JobStatus.COMPLETE: "Complete",
    JobStatus.ERROR: "Error",
}

STAGE_ORDER: Final[tuple[JobStatus, ...]] = (
    JobStatus.UPLOADING,
    JobStatus.TRANSCRIBING,
    JobStatus.ANALYZING_RISKS,
    JobStatus.GENERATING_SUMMARY,
    JobStatus.GENERATING_RECOMMENDATIONS,
    JobStatus.SAVING,
    JobStatus.COMPLETE,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_job_id() -> str:
    """Return an opaque ``job_<ms-timestamp>_<random6>`` token."""

    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(6))
    return f"job_{int(time.time() * 1000)}_{suffix}"


class Job(BaseModel):
    """Snapshot of a report generation run."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)

    id: str
    status: JobStatus = JobStatus.UPLOADING
    progress: int = Field(default=0, ge=0, le=100)
    message: str = "Starting..."
    details: Optional[str] = None
    report_id: Optional[str] = Field(default=None, alias="reportId")
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=_utcnow, alias="updatedAt")

    def merged(self, fields: dict[str, Any]) -> "Job":
        """Return a copy with ``fields`` applied and ``updated_at`` refreshed."""

        payload = self.model_dump()
        payload.update(fields)
        payload["id"] = self.id
        payload["created_at"] = self.created_at
        payload["updated_at"] = _utcnow()
        return Job.model_validate(payload)

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class JobStore(ABC):
    """Keyed job progress store."""

    @abstractmethod
    async def create(self) -> str:
        """Register a new job and return its id."""

    @abstractmethod
    async def update(self, job_id: str, **fields: Any) -> Optional[Job]:
        """Merge ``fields`` into the job. Unknown ids are ignored."""

    @abstractmethod
    async def get(self, job_id: str) -> Optional[Job]:
        """Return the job or ``None``."""

    @abstractmethod
    async def delete(self, job_id: str) -> bool:
        """Evict the job. Returns ``True`` if it existed."""


class InMemoryJobStore(JobStore):
    """Mutex-guarded in-process job map."""

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}
        self._lock = threading.Lock()

    async def create(self) -> str:
        job = Job(id=new_job_id())
        with self._lock:
            self._jobs[job.id] = job
        return job.id

    async def update(self, job_id: str, **fields: Any) -> Optional[Job]:
        with self._lock:
            current = self._jobs.get(job_id)
            if current is None:
                logger.debug("Ignoring update for unknown job %s", job_id)
                return None
            updated = current.merged(fields)
            self._jobs[job_id] = updated
            return updated

    async def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            return self._jobs.get(job_id)

    async def delete(self, job_id: str) -> bool:
        with self._lock:
            return self._jobs.pop(job_id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)


class RedisJobStore(JobStore):
    """Job records stored as JSON documents in Redis."""

    def __init__(
        self,
        client: Any = None,
        *,
        config: JobStoreConfig | None = None,
    ) -> None:
        self._config = config or settings.jobs
        self._client = client or redis_asyncio.Redis.from_url(
            self._config.redis_url, decode_responses=True
        )
        self._prefix = self._config.key_prefix
        self._ttl = self._config.ttl_seconds

    def _key(self, job_id: str) -> str:
        return f"{self._prefix}{job_id}"

    async def _write(self, job: Job) -> None:
        await self._client.set(self._key(job.id), job.model_dump_json(), ex=self._ttl)

    async def create(self) -> str:
        job = Job(id=new_job_id())
        await self._write(job)
        return job.id

    async def update(self, job_id: str, **fields: Any) -> Optional[Job]:
        current = await self.get(job_id)
        if current is None:
            logger.debug("Ignoring update for unknown job %s", job_id)
            return None
        updated = current.merged(fields)
        await self._write(updated)
        return updated

    async def get(self, job_id: str) -> Optional[Job]:
        raw = await self._client.get(self._key(job_id))
        if not raw:
            return None
        try:
            return Job.model_validate(json.loads(raw))
        except (ValueError, TypeError) as exc:
            logger.warning("Discarding unreadable job record %s: %s", job_id, exc)
            return None

    async def delete(self, job_id: str) -> bool:
        removed = await self._client.delete(self._key(job_id))
        return bool(removed)


_DEFAULT_STORE: JobStore | None = None


def build_job_store(config: JobStoreConfig | None = None) -> JobStore:
    cfg = config or settings.jobs
    if cfg.backend == "redis":
        logger.info("Tracking report jobs in Redis at %s", cfg.redis_url)
        return RedisJobStore(config=cfg)
    return InMemoryJobStore()


def get_job_store() -> JobStore:
    """Return the process-wide job store."""

    global _DEFAULT_STORE
    if _DEFAULT_STORE is None:
        _DEFAULT_STORE = build_job_store()
    return _DEFAULT_STORE


__all__ = [
    "InMemoryJobStore",
    "Job",
    "JobStatus",
    "JobStore",
    "RedisJobStore",
    "STAGE_LABELS",
    "STAGE_ORDER",
    "build_job_store",
    "get_job_store",
    "new_job_id",
]
