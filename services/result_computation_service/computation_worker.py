"""
Computation worker: consumes queued jobs and runs them with retries.

Each attempt holds the (tenant, term, class) advisory lock, runs the
orchestrator, and releases the lock. Attempts that raise are retried with
exponential backoff up to the job's max_attempts; a cancelled attempt is
never retried.
"""

from __future__ import annotations

import asyncio
import time
from datetime import UTC, datetime
from typing import Optional

from schoolhub_core.error_enums import ResultComputationErrorCode
from schoolhub_core.events.result_events import ResultComputationCompletedV1
from schoolhub_core.status_enums import ComputationJobStatus
from schoolhub_service_libs.error_handling import SchoolHubError, raise_conflict_error
from schoolhub_service_libs.logging_utils import bind_request_context, create_service_logger
from structlog.contextvars import clear_contextvars
from tenacity import (
    AsyncRetrying,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from services.result_computation_service.computation_core.cohort import ComputationCancelledError
from services.result_computation_service.config import Settings
from services.result_computation_service.implementations.computation_lock_impl import (
    computation_lock_key,
)
from services.result_computation_service.job_models import ComputationJob
from services.result_computation_service.metrics import ResultComputationMetrics
from services.result_computation_service.models_api import ComputationProgress
from services.result_computation_service.protocols import (
    CancellationTokenProtocol,
    ComputationLockProtocol,
    JobStoreProtocol,
    ResultComputationOrchestratorProtocol,
    ResultEventPublisherProtocol,
)

logger = create_service_logger("result_computation_service.worker")

# Job state is saved every N students and when the last student is done
PROGRESS_SAVE_INTERVAL = 25


class JobCancellationToken(CancellationTokenProtocol):
    def __init__(self, job_store: JobStoreProtocol, job_id: str):
        self.job_store = job_store
        self.job_id = job_id

    async def is_cancelled(self) -> bool:
        return await self.job_store.is_cancel_requested(self.job_id)


class ComputationWorker:
    """One consumer of the computation queue; run several for a worker pool."""

    def __init__(
        self,
        job_store: JobStoreProtocol,
        orchestrator: ResultComputationOrchestratorProtocol,
        lock: ComputationLockProtocol,
        event_publisher: ResultEventPublisherProtocol,
        settings: Settings,
        metrics: ResultComputationMetrics,
        worker_id: str = "worker-0",
    ):
        self.job_store = job_store
        self.orchestrator = orchestrator
        self.lock = lock
        self.event_publisher = event_publisher
        self.settings = settings
        self.metrics = metrics
        self.worker_id = worker_id

    async def run(self, shutdown_event: asyncio.Event) -> None:
        """Consume jobs until ``shutdown_event`` is set; a job in flight is finished first."""
        logger.info("Computation worker started", worker_id=self.worker_id)
        while not shutdown_event.is_set():
            job_id = await self.job_store.dequeue(timeout=self.settings.JOB_POLL_INTERVAL_SECONDS)
            if job_id is None:
                continue
            try:
                await self.process_job(job_id)
            except Exception as e:
                # Job bookkeeping itself failed (e.g. job store unavailable)
                logger.error(
                    "Unexpected error while processing job",
                    worker_id=self.worker_id,
                    job_id=job_id,
                    error=str(e),
                    exc_info=True,
                )
        logger.info("Computation worker stopped", worker_id=self.worker_id)

    async def process_job(self, job_id: str) -> Optional[ComputationJob]:
        """Run one job to a terminal state and return it; None if the job expired."""
        job = await self.job_store.get(job_id)
        if job is None:
            logger.warning("Dequeued job no longer exists", job_id=job_id)
            return None
        if job.is_terminal:
            logger.info("Skipping job already in terminal state", job_id=job_id, status=job.status)
            return job

        request = job.request
        bind_request_context(
            job_id=job.job_id,
            tenant_id=request.tenant_id,
            term_id=request.term_id,
            class_id=request.class_id,
            correlation_id=job.correlation_id,
        )
        try:
            if await self.job_store.is_cancel_requested(job_id):
                job.status = ComputationJobStatus.CANCELLED
                return await self._finish(job, started=None)

            job.status = ComputationJobStatus.ACTIVE
            job.started_at = datetime.now(UTC)
            await self.job_store.save(job)
            started = time.monotonic()

            try:
                progress = await self._run_with_retries(job)
            except ComputationCancelledError as e:
                job.status = ComputationJobStatus.CANCELLED
                job.processed, job.failed = e.processed, e.failed
                self.metrics.job_attempts_total.labels(outcome="cancelled").inc()
            except Exception as e:
                job.status = ComputationJobStatus.FAILED
                job.last_error = str(e)
                job.errors.append(f"Computation failed after {job.attempts} attempts: {e}")
            else:
                job.status = ComputationJobStatus.COMPLETED
                job.total = progress.total
                job.processed = progress.processed
                job.failed = progress.failed
                job.errors = list(progress.errors)
                job.warnings = list(progress.warnings)
                self.metrics.job_attempts_total.labels(outcome="succeeded").inc()

            return await self._finish(job, started=started)
        finally:
            clear_contextvars()

    async def _run_with_retries(self, job: ComputationJob) -> ComputationProgress:
        token = JobCancellationToken(self.job_store, job.job_id)
        retrying = AsyncRetrying(
            stop=stop_after_attempt(job.max_attempts),
            wait=wait_exponential(
                multiplier=self.settings.JOB_RETRY_BASE_DELAY_SECONDS,
                max=self.settings.JOB_RETRY_MAX_DELAY_SECONDS,
            ),
            retry=retry_if_not_exception_type(ComputationCancelledError),
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                job.attempts += 1
                await self.job_store.save(job)
                if job.attempts > 1:
                    logger.warning(
                        f"Retrying computation (attempt {job.attempts}/{job.max_attempts})",
                        last_error=job.last_error,
                    )
                try:
                    return await self._attempt(job, token)
                except ComputationCancelledError:
                    raise
                except Exception as e:
                    job.last_error = str(e)
                    final = job.attempts >= job.max_attempts
                    self.metrics.job_attempts_total.labels(
                        outcome="failed" if final else "retried"
                    ).inc()
                    logger.error(
                        "Computation attempt failed",
                        attempt=job.attempts,
                        max_attempts=job.max_attempts,
                        will_retry=not final,
                        error=str(e),
                        exc_info=True,
                    )
                    await self.job_store.save(job)
                    raise

        # reraise=True means the loop either returns or raises
        raise RuntimeError(f"Retry loop exited without outcome for job {job.job_id}")

    async def _attempt(
        self, job: ComputationJob, token: CancellationTokenProtocol
    ) -> ComputationProgress:
        request = job.request
        lock_key = computation_lock_key(request.tenant_id, request.term_id, request.class_id)
        lock_token = f"{job.job_id}:{job.attempts}"
        acquired = await self.lock.acquire(
            lock_key, lock_token, self.settings.COMPUTATION_LOCK_TTL_SECONDS
        )
        if not acquired:
            raise_conflict_error(
                service=self.settings.SERVICE_NAME,
                operation="compute_results",
                resource_type="ClassTermResults",
                resource_id=f"{request.term_id}:{request.class_id}",
                message="Another computation is running for this class and term",
                correlation_id=job.correlation_id,
                reason=ResultComputationErrorCode.COMPUTATION_IN_PROGRESS.value,
            )

        async def on_progress(total: int, processed: int, failed: int) -> None:
            job.total, job.processed, job.failed = total, processed, failed
            done = processed + failed
            if done == total or done % PROGRESS_SAVE_INTERVAL == 0:
                await self.job_store.save(job)

        try:
            return await self.orchestrator.compute_results(
                request, cancellation=token, on_progress=on_progress
            )
        finally:
            await self.lock.release(lock_key, lock_token)

    async def _finish(self, job: ComputationJob, started: Optional[float]) -> ComputationJob:
        job.completed_at = datetime.now(UTC)
        await self.job_store.save(job)
        if started is not None:
            self.metrics.job_duration_seconds.labels(status=job.status.value).observe(
                time.monotonic() - started
            )

        logger.info(
            "Computation job finished",
            status=job.status.value,
            attempts=job.attempts,
            total=job.total,
            processed=job.processed,
            failed=job.failed,
        )

        event = ResultComputationCompletedV1(
            job_id=job.job_id,
            tenant_id=job.request.tenant_id,
            term_id=job.request.term_id,
            class_id=job.request.class_id,
            status=job.status,
            total=job.total,
            processed=job.processed,
            failed=job.failed,
            errors=job.errors,
        )
        try:
            await self.event_publisher.publish_computation_completed(event, job.correlation_id)
        except SchoolHubError as e:
            # Job state is already final; consumers can still poll it
            logger.error("Completion event not published", error=str(e))
        return job
