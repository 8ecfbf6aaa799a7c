"""Unit tests for job submission, progress and cancellation."""

from __future__ import annotations

from uuid import uuid4

import pytest
from prometheus_client import CollectorRegistry
from schoolhub_core.status_enums import ComputationJobStatus
from schoolhub_service_libs.error_handling import SchoolHubError

from services.result_computation_service.config import Settings
from services.result_computation_service.implementations.job_dispatcher_impl import (
    JobDispatcherImpl,
)
from services.result_computation_service.implementations.job_store_local_impl import (
    LocalJobStoreImpl,
)
from services.result_computation_service.metrics import ResultComputationMetrics
from services.result_computation_service.models_api import ComputationRequest
from services.result_computation_service.tests.conftest import CLASS_ID, TENANT_ID, TERM_ID

REQUEST = ComputationRequest(tenant_id=TENANT_ID, term_id=TERM_ID, class_id=CLASS_ID)


@pytest.fixture
def job_store() -> LocalJobStoreImpl:
    return LocalJobStoreImpl()


@pytest.fixture
def dispatcher(
    job_store: LocalJobStoreImpl, settings: Settings, metrics: ResultComputationMetrics
) -> JobDispatcherImpl:
    return JobDispatcherImpl(job_store, settings, metrics)


class TestSubmit:
    @pytest.mark.asyncio
    async def test_submit_queues_pending_job(
        self, dispatcher: JobDispatcherImpl, job_store: LocalJobStoreImpl
    ) -> None:
        correlation_id = uuid4()

        job_id = await dispatcher.submit(REQUEST, correlation_id=correlation_id)

        job = await job_store.get(job_id)
        assert job is not None
        assert job.status == ComputationJobStatus.PENDING
        assert job.max_attempts == 3
        assert job.correlation_id == correlation_id
        assert await job_store.dequeue(timeout=0.1) == job_id

    @pytest.mark.asyncio
    async def test_submit_counts_jobs(
        self, dispatcher: JobDispatcherImpl, registry: CollectorRegistry
    ) -> None:
        await dispatcher.submit(REQUEST)
        await dispatcher.submit(REQUEST)

        assert registry.get_sample_value("rcs_jobs_submitted_total") == 2.0

    @pytest.mark.asyncio
    async def test_each_submission_gets_its_own_job(self, dispatcher: JobDispatcherImpl) -> None:
        first = await dispatcher.submit(REQUEST)
        second = await dispatcher.submit(REQUEST)

        assert first != second


class TestProgressAndCancel:
    @pytest.mark.asyncio
    async def test_progress_of_new_job(self, dispatcher: JobDispatcherImpl) -> None:
        job_id = await dispatcher.submit(REQUEST)

        progress = await dispatcher.get_progress(job_id)

        assert progress.job_id == job_id
        assert progress.status == ComputationJobStatus.PENDING
        assert (progress.total, progress.processed, progress.failed) == (0, 0, 0)

    @pytest.mark.asyncio
    async def test_unknown_job_is_not_found(self, dispatcher: JobDispatcherImpl) -> None:
        with pytest.raises(SchoolHubError) as exc_info:
            await dispatcher.get_progress("no-such-job")

        assert exc_info.value.error_code == "RESOURCE_NOT_FOUND"
        assert exc_info.value.reason == "JOB_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_cancel_pending_job_is_immediate(
        self, dispatcher: JobDispatcherImpl, job_store: LocalJobStoreImpl
    ) -> None:
        job_id = await dispatcher.submit(REQUEST)

        progress = await dispatcher.cancel(job_id)

        assert progress.status == ComputationJobStatus.CANCELLED
        assert await job_store.is_cancel_requested(job_id)
        stored = await job_store.get(job_id)
        assert stored is not None
        assert stored.completed_at is not None

    @pytest.mark.asyncio
    async def test_cancel_active_job_only_flags_it(
        self, dispatcher: JobDispatcherImpl, job_store: LocalJobStoreImpl
    ) -> None:
        job_id = await dispatcher.submit(REQUEST)
        job = await job_store.get(job_id)
        assert job is not None
        job.status = ComputationJobStatus.ACTIVE
        await job_store.save(job)

        progress = await dispatcher.cancel(job_id)

        # the worker moves it to CANCELLED at the next student boundary
        assert progress.status == ComputationJobStatus.ACTIVE
        assert await job_store.is_cancel_requested(job_id)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status",
        [
            ComputationJobStatus.COMPLETED,
            ComputationJobStatus.FAILED,
            ComputationJobStatus.CANCELLED,
        ],
    )
    async def test_cancel_terminal_job_conflicts(
        self,
        dispatcher: JobDispatcherImpl,
        job_store: LocalJobStoreImpl,
        status: ComputationJobStatus,
    ) -> None:
        job_id = await dispatcher.submit(REQUEST)
        job = await job_store.get(job_id)
        assert job is not None
        job.status = status
        await job_store.save(job)

        with pytest.raises(SchoolHubError) as exc_info:
            await dispatcher.cancel(job_id)

        assert exc_info.value.error_code == "CONFLICT"
        assert not await job_store.is_cancel_requested(job_id)
