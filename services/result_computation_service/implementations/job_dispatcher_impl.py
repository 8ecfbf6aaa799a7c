"""Job dispatcher: the request-path side of asynchronous result computation."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Optional
from uuid import UUID, uuid4

from schoolhub_core.error_enums import ResultComputationErrorCode
from schoolhub_core.status_enums import ComputationJobStatus
from schoolhub_service_libs.error_handling import raise_conflict_error, raise_resource_not_found
from schoolhub_service_libs.logging_utils import create_service_logger

from services.result_computation_service.config import Settings
from services.result_computation_service.job_models import ComputationJob
from services.result_computation_service.metrics import ResultComputationMetrics
from services.result_computation_service.models_api import ComputationProgress, ComputationRequest
from services.result_computation_service.protocols import JobDispatcherProtocol, JobStoreProtocol

logger = create_service_logger("result_computation_service.job_dispatcher")


class JobDispatcherImpl(JobDispatcherProtocol):
    """Queues computation jobs and reports their progress; never runs them itself."""

    def __init__(
        self,
        job_store: JobStoreProtocol,
        settings: Settings,
        metrics: ResultComputationMetrics,
    ):
        self.job_store = job_store
        self.settings = settings
        self.metrics = metrics

    async def submit(
        self, request: ComputationRequest, correlation_id: Optional[UUID] = None
    ) -> str:
        job = ComputationJob(
            request=request,
            correlation_id=correlation_id or uuid4(),
            max_attempts=self.settings.JOB_MAX_ATTEMPTS,
        )
        await self.job_store.save(job)
        await self.job_store.enqueue(job.job_id)
        self.metrics.jobs_submitted_total.inc()

        logger.info(
            "Computation job submitted",
            job_id=job.job_id,
            tenant_id=request.tenant_id,
            term_id=request.term_id,
            class_id=request.class_id,
            subset_size=len(request.student_ids) if request.student_ids is not None else None,
            correlation_id=str(job.correlation_id),
        )
        return job.job_id

    async def get_progress(self, job_id: str) -> ComputationProgress:
        job = await self._require_job(job_id, "get_progress")
        return job.to_progress()

    async def cancel(self, job_id: str) -> ComputationProgress:
        """
        Request cancellation of a job.

        A pending job is cancelled at once; an active job stops at the next
        student boundary and writes nothing.

        Raises:
            SchoolHubError: RESOURCE_NOT_FOUND for an unknown job, CONFLICT if
                the job already reached a terminal state
        """
        job = await self._require_job(job_id, "cancel")
        if job.is_terminal:
            raise_conflict_error(
                service=self.settings.SERVICE_NAME,
                operation="cancel",
                resource_type="ComputationJob",
                resource_id=job_id,
                message=f"Job {job_id} already finished with status {job.status.value}",
                correlation_id=job.correlation_id,
                status=job.status.value,
            )

        await self.job_store.request_cancel(job_id)
        if job.status == ComputationJobStatus.PENDING:
            job.status = ComputationJobStatus.CANCELLED
            job.completed_at = datetime.now(UTC)
            await self.job_store.save(job)

        logger.info(
            "Cancellation requested",
            job_id=job_id,
            status=job.status.value,
            correlation_id=str(job.correlation_id),
        )
        return job.to_progress()

    async def _require_job(self, job_id: str, operation: str) -> ComputationJob:
        job = await self.job_store.get(job_id)
        if job is None:
            raise_resource_not_found(
                service=self.settings.SERVICE_NAME,
                operation=operation,
                resource_type="ComputationJob",
                resource_id=job_id,
                correlation_id=uuid4(),
                reason=ResultComputationErrorCode.JOB_NOT_FOUND.value,
            )
        return job
