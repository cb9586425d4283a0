"""Detached execution of report generation runs."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from voicecare.pipelines.analysis.types import PatientContext
from voicecare.services.job_store import JobStore

from .supervisor import PipelineResult, ProgressUpdate, ReportPipeline

logger = logging.getLogger("voicecare.pipelines.report")


class ReportJobRunner:
    """Run pipelines as asyncio tasks keyed by job id.

    Progress from each run is merged into the job store. Holding the task
    handle lets a later request cancel a run that is still in flight.
    """

    def __init__(self, store: JobStore, pipeline_factory: Callable[[], ReportPipeline]) -> None:
        self._store = store
        self._pipeline_factory = pipeline_factory
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def store(self) -> JobStore:
        return self._store

    def is_running(self, job_id: str) -> bool:
        task = self._tasks.get(job_id)
        return task is not None and not task.done()

    async def run(
        self,
        job_id: str,
        audio: bytes,
        mime_type: str,
        patient_id: Optional[str] = None,
        patient_context: Optional[PatientContext] = None,
    ) -> Optional[PipelineResult]:
        """Execute the pipeline for ``job_id`` and wait for it to finish."""

        async def on_progress(update: ProgressUpdate) -> None:
            await self._store.update(job_id, **update.as_job_fields())

        pipeline = self._pipeline_factory()
        task = asyncio.create_task(
            pipeline.generate_full_report(
                audio,
                mime_type,
                patient_id=patient_id,
                patient_context=patient_context,
                on_progress=on_progress,
            ),
            name=f"report-{job_id}",
        )
        self._tasks[job_id] = task
        logger.info("Started report job %s bytes=%s mime=%s", job_id, len(audio), mime_type)
        try:
            return await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise
            logger.info("Report job %s was cancelled", job_id)
            return None
        finally:
            self._tasks.pop(job_id, None)

    def cancel(self, job_id: str) -> bool:
        """Cancel a running job. Returns ``False`` when nothing was running."""

        task = self._tasks.get(job_id)
        if task is None or task.done():
            return False
        logger.info("Cancelling report job %s", job_id)
        return task.cancel()


__all__ = ["ReportJobRunner"]
