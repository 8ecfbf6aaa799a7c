"""
In-process job store and queue.

Used when JOB_STORE_BACKEND=local: jobs are visible only to workers of the
same process and are lost on restart.
"""

from __future__ import annotations

import asyncio
from typing import Dict, Optional

from schoolhub_service_libs.logging_utils import create_service_logger

from services.result_computation_service.job_models import ComputationJob
from services.result_computation_service.protocols import JobStoreProtocol

logger = create_service_logger("result_computation_service.local_job_store")


class LocalJobStoreImpl(JobStoreProtocol):
    """Jobs in a dict, job ids in an asyncio.Queue."""

    def __init__(self) -> None:
        self._jobs: Dict[str, ComputationJob] = {}
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._cancelled: set[str] = set()

    async def save(self, job: ComputationJob) -> None:
        # Stored as a copy so callers cannot mutate state without saving
        self._jobs[job.job_id] = job.model_copy(deep=True)

    async def get(self, job_id: str) -> Optional[ComputationJob]:
        job = self._jobs.get(job_id)
        return job.model_copy(deep=True) if job is not None else None

    async def enqueue(self, job_id: str) -> None:
        await self._queue.put(job_id)
        logger.debug("Job queued", job_id=job_id, queue_size=self._queue.qsize())

    async def dequeue(self, timeout: float) -> Optional[str]:
        try:
            return await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    async def request_cancel(self, job_id: str) -> None:
        self._cancelled.add(job_id)

    async def is_cancel_requested(self, job_id: str) -> bool:
        return job_id in self._cancelled

