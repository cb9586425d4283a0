"""Job progress tracking in memory and in Redis."""

from __future__ import annotations

import re

import pytest

from voicecare.config.settings import JobStoreConfig
from voicecare.services.job_store import (
    InMemoryJobStore,
    JobStatus,
    RedisJobStore,
    build_job_store,
    new_job_id,
)


class FakeRedis:
    """Minimal async stand-in for the redis client commands the store uses."""

    def __init__(self) -> None:
        self.values = {}
        self.expiry = {}

    async def set(self, key, value, ex=None):
        self.values[key] = value
        self.expiry[key] = ex
        return True

    async def get(self, key):
        return self.values.get(key)

    async def delete(self, key):
        return 1 if self.values.pop(key, None) is not None else 0


def test_job_ids_are_opaque_tokens():
    assert re.fullmatch(r"job_\d{13}_[a-z0-9]{6}", new_job_id())
    assert new_job_id() != new_job_id()


@pytest.mark.asyncio
async def test_new_job_starts_uploading():
    store = InMemoryJobStore()

    job_id = await store.create()
    job = await store.get(job_id)

    assert job.status is JobStatus.UPLOADING
    assert job.progress == 0
    assert job.message == "Starting..."
    assert len(store) == 1


@pytest.mark.asyncio
async def test_update_merges_fields_and_keeps_identity():
    store = InMemoryJobStore()
    job_id = await store.create()
    created = await store.get(job_id)

    await store.update(job_id, status=JobStatus.TRANSCRIBING, progress=15, message="Transcribing your voice note...")
    job = await store.update(job_id, progress=30, details="42 words detected")

    assert job.id == job_id
    assert job.status is JobStatus.TRANSCRIBING
    assert job.progress == 30
    assert job.message == "Transcribing your voice note..."
    assert job.details == "42 words detected"
    assert job.created_at == created.created_at
    assert job.updated_at >= created.updated_at


@pytest.mark.asyncio
async def test_unknown_job_updates_are_ignored():
    store = InMemoryJobStore()

    assert await store.update("job_missing", progress=50) is None
    assert await store.get("job_missing") is None
    assert len(store) == 0


@pytest.mark.asyncio
async def test_delete_evicts_job():
    store = InMemoryJobStore()
    job_id = await store.create()

    assert await store.delete(job_id) is True
    assert await store.delete(job_id) is False
    assert await store.get(job_id) is None


@pytest.mark.asyncio
async def test_response_uses_client_field_names():
    store = InMemoryJobStore()
    job_id = await store.create()
    job = await store.update(job_id, status=JobStatus.COMPLETE, progress=100, report_id="report-1")

    payload = job.to_response()

    assert payload["status"] == "complete"
    assert payload["reportId"] == "report-1"
    assert {"createdAt", "updatedAt", "id", "message", "progress"} <= set(payload)


@pytest.mark.asyncio
async def test_redis_store_round_trips_with_ttl():
    client = FakeRedis()
    store = RedisJobStore(client, config=JobStoreConfig(key_prefix="test:job:", ttl_seconds=600))

    job_id = await store.create()
    await store.update(job_id, status=JobStatus.ERROR, progress=0, error="Job cancelled")
    job = await store.get(job_id)

    assert f"test:job:{job_id}" in client.values
    assert client.expiry[f"test:job:{job_id}"] == 600
    assert job.status is JobStatus.ERROR
    assert job.error == "Job cancelled"


@pytest.mark.asyncio
async def test_redis_store_ignores_unknown_and_unreadable_records():
    client = FakeRedis()
    store = RedisJobStore(client, config=JobStoreConfig(key_prefix="test:job:"))
    client.values["test:job:broken"] = "{not json"

    assert await store.update("job_missing", progress=10) is None
    assert await store.get("broken") is None
    assert await store.delete("job_missing") is False


def test_backend_selection():
    assert isinstance(build_job_store(JobStoreConfig(backend="memory")), InMemoryJobStore)
    assert isinstance(build_job_store(JobStoreConfig(backend="redis")), RedisJobStore)
