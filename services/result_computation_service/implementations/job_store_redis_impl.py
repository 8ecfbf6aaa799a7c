"""Redis job store: job state as JSON strings with a TTL, job ids in a list."""

from __future__ import annotations

from typing import Optional

from schoolhub_service_libs.logging_utils import create_service_logger
from schoolhub_service_libs.protocols import RedisClientProtocol

from services.result_computation_service.job_models import ComputationJob
from services.result_computation_service.protocols import JobStoreProtocol

logger = create_service_logger("result_computation_service.redis_job_store")

JOB_KEY_PREFIX = "result_jobs:job"
QUEUE_KEY = "result_jobs:queue"
CANCEL_KEY_PREFIX = "result_jobs:cancel"


class RedisJobStoreImpl(JobStoreProtocol):
    """Shared job store so any worker process can pick up and report on a job."""

    def __init__(self, redis_client: RedisClientProtocol, state_ttl_seconds: int):
        self.redis = redis_client
        self.state_ttl_seconds = state_ttl_seconds

    @staticmethod
    def job_key(job_id: str) -> str:
        return f"{JOB_KEY_PREFIX}:{job_id}"

    async def save(self, job: ComputationJob) -> None:
        await self.redis.setex(
            self.job_key(job.job_id), self.state_ttl_seconds, job.model_dump_json()
        )

    async def get(self, job_id: str) -> Optional[ComputationJob]:
        data = await self.redis.get(self.job_key(job_id))
        if data is None:
            return None
        return ComputationJob.model_validate_json(data)

    async def enqueue(self, job_id: str) -> None:
        queue_length = await self.redis.rpush(QUEUE_KEY, job_id)
        logger.debug("Job queued", job_id=job_id, queue_length=queue_length)

    async def dequeue(self, timeout: float) -> Optional[str]:
        popped = await self.redis.blpop([QUEUE_KEY], timeout=timeout)
        if popped is None:
            return None
        _, job_id = popped
        return job_id

    async def request_cancel(self, job_id: str) -> None:
        await self.redis.setex(f"{CANCEL_KEY_PREFIX}:{job_id}", self.state_ttl_seconds, "1")

    async def is_cancel_requested(self, job_id: str) -> bool:
        return await self.redis.get(f"{CANCEL_KEY_PREFIX}:{job_id}") is not None

