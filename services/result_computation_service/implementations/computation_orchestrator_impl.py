"""
Result computation orchestrator for Result Computation Service.

One invocation computes a (term, class) result set in three phases:

1. Read: grading scheme, class roster and every score of the class, once.
2. Compute: build the class cohort (rankings and statistics) and then each
   target student's snapshots and term aggregate, in memory.
3. Write: a single ``save_results`` call upserts all successful students.

A failure confined to one student is recorded in ``errors`` and skipped; the
write still commits for everybody else. Anything raised outside the
per-student step propagates and fails the attempt.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Optional

from schoolhub_core.error_enums import ResultComputationErrorCode
from schoolhub_core.status_enums import ComputationJobStatus
from schoolhub_service_libs.logging_utils import create_service_logger

from services.result_computation_service.computation_core.cohort import (
    ComputationCancelledError,
    StudentComputationError,
    build_cohort,
)
from services.result_computation_service.computation_core.result_records import (
    SubjectResultValues,
    TermResultValues,
)
from services.result_computation_service.metrics import ResultComputationMetrics
from services.result_computation_service.models_api import ComputationProgress, ComputationRequest
from services.result_computation_service.protocols import (
    CancellationTokenProtocol,
    ClassDirectoryProtocol,
    GradingSchemeProviderProtocol,
    ProgressCallback,
    ResultComputationOrchestratorProtocol,
    ResultRepositoryProtocol,
    ScoreRepositoryProtocol,
)

logger = create_service_logger("result_computation_service.orchestrator")


class ResultComputationOrchestratorImpl(ResultComputationOrchestratorProtocol):
    """Computes and upserts ResultSnapshot and TermResult rows for one class."""

    def __init__(
        self,
        score_repository: ScoreRepositoryProtocol,
        result_repository: ResultRepositoryProtocol,
        scheme_provider: GradingSchemeProviderProtocol,
        class_directory: ClassDirectoryProtocol,
        metrics: ResultComputationMetrics,
    ) -> None:
        self.score_repository = score_repository
        self.result_repository = result_repository
        self.scheme_provider = scheme_provider
        self.class_directory = class_directory
        self.metrics = metrics

    async def compute_results(
        self,
        request: ComputationRequest,
        cancellation: Optional[CancellationTokenProtocol] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ComputationProgress:
        tenant_id, term_id, class_id = request.tenant_id, request.term_id, request.class_id

        scheme = await self.scheme_provider.get_scheme(tenant_id)
        roster = await self.class_directory.students_in_class(tenant_id, class_id)
        scores = await self.score_repository.get_class_scores(tenant_id, term_id, class_id)
        cohort = build_cohort(term_id, class_id, scores, scheme)

        class_members = set(roster) | cohort.scored_students
        errors: list[str] = []
        warnings: list[str] = []
        failed = 0

        if request.student_ids is None:
            targets = sorted(class_members)
        else:
            requested = list(dict.fromkeys(request.student_ids))
            targets = [s for s in requested if s in class_members]
            for student_id in requested:
                if student_id in class_members:
                    continue
                error = StudentComputationError(
                    student_id,
                    ResultComputationErrorCode.STUDENT_NOT_IN_CLASS.value,
                    f"not a member of class {class_id}",
                )
                errors.append(str(error))
                failed += 1

        total = len(targets) + failed
        logger.info(
            "Starting result computation",
            tenant_id=tenant_id,
            term_id=term_id,
            class_id=class_id,
            scheme_id=scheme.scheme_id,
            total_students=total,
            cohort_size=cohort.cohort_size,
        )

        snapshots: list[SubjectResultValues] = []
        term_results: list[TermResultValues] = []
        processed = 0

        for student_id in targets:
            if cancellation is not None and await cancellation.is_cancelled():
                logger.info(
                    "Computation cancelled, discarding results",
                    class_id=class_id,
                    processed=processed,
                    failed=failed,
                )
                raise ComputationCancelledError(processed, failed)

            try:
                subject_rows, term_row, integrity_warnings = cohort.compute_student(student_id)
            except StudentComputationError as e:
                failed += 1
                errors.append(str(e))
                logger.warning(
                    "Student result computation failed",
                    student_id=student_id,
                    reason=e.reason,
                    error=str(e),
                )
            else:
                snapshots.extend(subject_rows)
                term_results.append(term_row)
                processed += 1
                for warning in integrity_warnings:
                    message = f"Student {student_id}: {warning.message}"
                    warnings.append(message)
                    logger.warning("Data integrity warning", student_id=student_id, detail=message)

            if on_progress is not None:
                await on_progress(total, processed, failed)

        if cancellation is not None and await cancellation.is_cancelled():
            raise ComputationCancelledError(processed, failed)

        if term_results:
            outcome = await self.result_repository.save_results(
                tenant_id, snapshots, term_results, computed_at=datetime.now(UTC)
            )
            logger.info(
                "Saved computed results",
                class_id=class_id,
                inserted=outcome.inserted,
                updated=outcome.updated,
                unchanged=outcome.unchanged,
            )

        self.metrics.students_computed_total.labels(outcome="processed").inc(processed)
        self.metrics.students_computed_total.labels(outcome="failed").inc(failed)
        if warnings:
            self.metrics.data_integrity_warnings_total.inc(len(warnings))

        logger.info(
            "Result computation finished",
            tenant_id=tenant_id,
            term_id=term_id,
            class_id=class_id,
            processed=processed,
            failed=failed,
        )
        return ComputationProgress(
            status=ComputationJobStatus.COMPLETED,
            total=total,
            processed=processed,
            failed=failed,
            errors=errors,
            warnings=warnings,
        )
