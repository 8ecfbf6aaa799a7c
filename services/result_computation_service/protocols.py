"""Service protocols for Result Computation Service."""

from __future__ import annotations

from datetime import datetime
from typing import Awaitable, Callable, Optional, Protocol, Sequence
from uuid import UUID

from schoolhub_core.events.result_events import (
    ResultComputationCompletedV1,
    ResultNotificationRequestedV1,
    ResultsPublishedV1,
)
from schoolhub_core.grading_schemes import GradingScheme
from schoolhub_core.status_enums import ScoreReviewStatus

from services.result_computation_service.computation_core.result_records import (
    PublicationChange,
    SaveOutcome,
    ScoreRecord,
    StoredSnapshot,
    StoredTermResult,
    SubjectResultValues,
    TermResultValues,
)
from services.result_computation_service.job_models import ComputationJob
from services.result_computation_service.models_api import (
    BroadsheetResponse,
    BulkScoreEntryRequest,
    ClassStatisticsResponse,
    ComputationProgress,
    ComputationRequest,
    PublicationResult,
    ScoreEntryInput,
    ScoreEntryResult,
    TermStatisticsResponse,
)

ProgressCallback = Callable[[int, int, int], Awaitable[None]]
"""Called as (total, processed, failed) while a computation runs."""


class ScoreRepositoryProtocol(Protocol):
    """Protocol for the score store, keyed by tenant."""

    async def get_class_scores(
        self, tenant_id: str, term_id: str, class_id: str
    ) -> list[ScoreRecord]:
        """All scores of a class for a term (every subject offering)."""
        ...

    async def get_student_scores(
        self, tenant_id: str, student_id: str, term_id: str, class_id: Optional[str] = None
    ) -> list[ScoreRecord]:
        ...

    async def upsert_scores(
        self,
        tenant_id: str,
        term_id: str,
        class_id: str,
        entries: Sequence[ScoreEntryInput],
        entered_by: str,
    ) -> int:
        """Create or overwrite entries; overwritten entries return to PENDING review."""
        ...

    async def update_review_status(
        self,
        tenant_id: str,
        term_id: str,
        class_id: str,
        from_statuses: Sequence[ScoreReviewStatus],
        to_status: ScoreReviewStatus,
        subject_id: Optional[str] = None,
    ) -> int:
        """Move matching entries to ``to_status``; returns the number moved."""
        ...


class ResultRepositoryProtocol(Protocol):
    """Protocol for ResultSnapshot and TermResult persistence, keyed by tenant."""

    async def save_results(
        self,
        tenant_id: str,
        snapshots: Sequence[SubjectResultValues],
        term_results: Sequence[TermResultValues],
        computed_at: datetime,
    ) -> SaveOutcome:
        """
        Upsert computed rows in one transaction.

        Rows whose computed values are unchanged are left untouched; changed
        rows are overwritten and return to COMPUTED.
        """
        ...

    async def get_term_results(
        self, tenant_id: str, term_id: str, class_id: str
    ) -> list[StoredTermResult]:
        ...

    async def get_snapshots(
        self, tenant_id: str, term_id: str, class_id: str, subject_id: Optional[str] = None
    ) -> list[StoredSnapshot]:
        ...

    async def mark_published(
        self, tenant_id: str, term_id: str, class_id: str, published_at: datetime
    ) -> PublicationChange:
        """
        Publish every COMPUTED term result and snapshot of the class.

        The class's PENDING and VERIFIED score entries move to PUBLISHED in
        the same transaction. No student ids in the returned change means
        nothing was written.
        """
        ...

    async def mark_unpublished(
        self, tenant_id: str, term_id: str, class_id: str
    ) -> PublicationChange:
        """
        Return every PUBLISHED row of the class to COMPUTED, clearing published_at.

        PUBLISHED score entries go back to VERIFIED in the same transaction.
        """
        ...


class GradingSchemeProviderProtocol(Protocol):
    async def get_scheme(self, tenant_id: str) -> GradingScheme:
        """The tenant's configured scheme, or the platform default."""
        ...


class ClassDirectoryProtocol(Protocol):
    """Protocol for the class management collaborator."""

    async def students_in_class(self, tenant_id: str, class_id: str) -> list[str]: ...

    async def subjects_in_class(self, tenant_id: str, class_id: str) -> list[str]: ...


class CancellationTokenProtocol(Protocol):
    async def is_cancelled(self) -> bool: ...


class ResultComputationOrchestratorProtocol(Protocol):
    async def compute_results(
        self,
        request: ComputationRequest,
        cancellation: Optional[CancellationTokenProtocol] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ComputationProgress:
        """
        Compute and upsert results for a (term, class).

        Raises:
            ComputationCancelledError: If cancellation was requested mid-run
        """
        ...


class JobStoreProtocol(Protocol):
    """Bookkeeping and queue for computation jobs."""

    async def save(self, job: ComputationJob) -> None: ...

    async def get(self, job_id: str) -> Optional[ComputationJob]: ...

    async def enqueue(self, job_id: str) -> None: ...

    async def dequeue(self, timeout: float) -> Optional[str]:
        """Next job id, or None if nothing arrived within ``timeout`` seconds."""
        ...

    async def request_cancel(self, job_id: str) -> None:
        """Flag a job for cancellation; workers check the flag between students."""
        ...

    async def is_cancel_requested(self, job_id: str) -> bool: ...


class ComputationLockProtocol(Protocol):
    """Advisory lock per (tenant, term, class)."""

    async def acquire(self, key: str, token: str, ttl_seconds: int) -> bool: ...

    async def release(self, key: str, token: str) -> None:
        """Release only if still held by ``token``."""
        ...

    async def is_locked(self, key: str) -> bool: ...


class JobDispatcherProtocol(Protocol):
    async def submit(
        self, request: ComputationRequest, correlation_id: Optional[UUID] = None
    ) -> str:
        """Queue a computation and return its job id without waiting."""
        ...

    async def get_progress(self, job_id: str) -> ComputationProgress: ...

    async def cancel(self, job_id: str) -> ComputationProgress: ...


class ResultEventPublisherProtocol(Protocol):
    async def publish_results_published(
        self, event_data: ResultsPublishedV1, correlation_id: UUID
    ) -> None: ...

    async def publish_notifications_requested(
        self, events: Sequence[ResultNotificationRequestedV1], correlation_id: UUID
    ) -> int:
        """Returns the number delivered; KAFKA_PUBLISH_ERROR details carry ``delivered``."""
        ...

    async def publish_computation_completed(
        self, event_data: ResultComputationCompletedV1, correlation_id: UUID
    ) -> None: ...


class PublishWorkflowProtocol(Protocol):
    async def publish(
        self, tenant_id: str, term_id: str, class_id: str, correlation_id: Optional[UUID] = None
    ) -> PublicationResult: ...

    async def unpublish(
        self, tenant_id: str, term_id: str, class_id: str, correlation_id: Optional[UUID] = None
    ) -> PublicationResult: ...


class ScoreEntryServiceProtocol(Protocol):
    async def record_scores(
        self,
        tenant_id: str,
        request: BulkScoreEntryRequest,
        entered_by: str,
        correlation_id: Optional[UUID] = None,
    ) -> ScoreEntryResult: ...

    async def verify_scores(
        self,
        tenant_id: str,
        term_id: str,
        class_id: str,
        subject_id: Optional[str] = None,
    ) -> int: ...

    async def get_student_scores(
        self, tenant_id: str, student_id: str, term_id: str, class_id: Optional[str] = None
    ) -> list[ScoreRecord]: ...


class ResultQueryServiceProtocol(Protocol):
    async def class_statistics(
        self, tenant_id: str, term_id: str, class_id: str, subject_id: str
    ) -> ClassStatisticsResponse: ...

    async def positions(self, tenant_id: str, term_id: str, class_id: str) -> dict[str, int]: ...

    async def subject_positions(
        self, tenant_id: str, term_id: str, class_id: str, subject_id: str
    ) -> dict[str, int]: ...

    async def term_statistics(
        self, tenant_id: str, term_id: str, class_id: str
    ) -> TermStatisticsResponse: ...

    async def broadsheet(
        self, tenant_id: str, term_id: str, class_id: str
    ) -> BroadsheetResponse: ...
