"""Score entry: validated, all-or-nothing bulk upserts into the score store."""

from __future__ import annotations

from typing import Optional
from uuid import UUID, uuid4

from schoolhub_core.error_enums import ResultComputationErrorCode
from schoolhub_core.status_enums import ScoreReviewStatus
from schoolhub_service_libs.error_handling import raise_conflict_error, raise_validation_error
from schoolhub_service_libs.logging_utils import create_service_logger

from services.result_computation_service.computation_core.grade_calculator import validate_score
from services.result_computation_service.computation_core.result_records import ScoreRecord
from services.result_computation_service.config import Settings
from services.result_computation_service.implementations.computation_lock_impl import (
    computation_lock_key,
)
from services.result_computation_service.metrics import ResultComputationMetrics
from services.result_computation_service.models_api import (
    BulkScoreEntryRequest,
    ScoreEntryInput,
    ScoreEntryResult,
)
from services.result_computation_service.protocols import (
    ComputationLockProtocol,
    ScoreEntryServiceProtocol,
    ScoreRepositoryProtocol,
)

logger = create_service_logger("result_computation_service.score_entry")


class ScoreEntryServiceImpl(ScoreEntryServiceProtocol):
    def __init__(
        self,
        score_repository: ScoreRepositoryProtocol,
        lock: ComputationLockProtocol,
        settings: Settings,
        metrics: ResultComputationMetrics,
    ):
        self.score_repository = score_repository
        self.lock = lock
        self.settings = settings
        self.metrics = metrics

    async def record_scores(
        self,
        tenant_id: str,
        request: BulkScoreEntryRequest,
        entered_by: str,
        correlation_id: Optional[UUID] = None,
    ) -> ScoreEntryResult:
        """
        Create or overwrite a batch of scores for one class and term.

        Every entry is validated before anything is written; the first
        invalid entry rejects the whole batch. Overwritten entries go back
        to PENDING review.

        Raises:
            SchoolHubError: VALIDATION_ERROR for an invalid score, CONFLICT
                while a computation holds the class lock
        """
        correlation_id = correlation_id or uuid4()

        for entry in request.entries:
            issue = validate_score(entry.score, entry.max_score)
            if issue is None:
                continue
            self.metrics.score_entry_rejections_total.labels(reason=issue.value).inc()
            raise_validation_error(
                service=self.settings.SERVICE_NAME,
                operation="record_scores",
                field="score",
                message=(
                    f"Score {entry.score} for student {entry.student_id}, subject "
                    f"{entry.subject_id} ({entry.assessment_type}) must be an integer "
                    f"between 0 and {entry.max_score}"
                ),
                correlation_id=correlation_id,
                value=entry.score,
                reason=issue.value,
                student_id=entry.student_id,
                subject_id=entry.subject_id,
            )

        lock_key = computation_lock_key(tenant_id, request.term_id, request.class_id)
        if await self.lock.is_locked(lock_key):
            reason = ResultComputationErrorCode.COMPUTATION_IN_PROGRESS.value
            self.metrics.score_entry_rejections_total.labels(reason=reason).inc()
            raise_conflict_error(
                service=self.settings.SERVICE_NAME,
                operation="record_scores",
                resource_type="ClassTermScores",
                resource_id=f"{request.term_id}:{request.class_id}",
                message="Results are being computed for this class; retry when the job finishes",
                correlation_id=correlation_id,
                reason=reason,
            )

        # One row per (student, subject, assessment type); the last entry wins
        latest: dict[tuple[str, str, str], ScoreEntryInput] = {}
        for entry in request.entries:
            latest[(entry.student_id, entry.subject_id, entry.assessment_type)] = entry

        recorded = await self.score_repository.upsert_scores(
            tenant_id, request.term_id, request.class_id, list(latest.values()), entered_by
        )
        self.metrics.scores_recorded_total.inc(recorded)
        logger.info(
            "Scores recorded",
            tenant_id=tenant_id,
            term_id=request.term_id,
            class_id=request.class_id,
            recorded=recorded,
            entered_by=entered_by,
            correlation_id=str(correlation_id),
        )
        return ScoreEntryResult(
            recorded=recorded, term_id=request.term_id, class_id=request.class_id
        )

    async def verify_scores(
        self,
        tenant_id: str,
        term_id: str,
        class_id: str,
        subject_id: Optional[str] = None,
    ) -> int:
        """Move PENDING entries of the class (optionally one subject) to VERIFIED."""
        verified = await self.score_repository.update_review_status(
            tenant_id,
            term_id,
            class_id,
            from_statuses=[ScoreReviewStatus.PENDING],
            to_status=ScoreReviewStatus.VERIFIED,
            subject_id=subject_id,
        )
        logger.info(
            "Scores verified",
            tenant_id=tenant_id,
            term_id=term_id,
            class_id=class_id,
            subject_id=subject_id,
            verified=verified,
        )
        return verified

    async def get_student_scores(
        self, tenant_id: str, student_id: str, term_id: str, class_id: Optional[str] = None
    ) -> list[ScoreRecord]:
        return await self.score_repository.get_student_scores(
            tenant_id, student_id, term_id, class_id
        )
