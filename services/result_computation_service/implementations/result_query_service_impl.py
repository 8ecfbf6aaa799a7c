"""Read-side queries over persisted ResultSnapshot and TermResult rows."""

from __future__ import annotations

from uuid import uuid4

from schoolhub_core.error_enums import ResultComputationErrorCode
from schoolhub_service_libs.error_handling import raise_resource_not_found

from services.result_computation_service.computation_core.grade_calculator import (
    class_statistics,
)
from services.result_computation_service.computation_core.result_records import (
    StoredSnapshot,
    StoredTermResult,
)
from services.result_computation_service.config import Settings
from services.result_computation_service.models_api import (
    BroadsheetResponse,
    BroadsheetRow,
    BroadsheetSubjectCell,
    ClassStatisticsResponse,
    TermStatisticsResponse,
)
from services.result_computation_service.protocols import (
    ResultQueryServiceProtocol,
    ResultRepositoryProtocol,
)


class ResultQueryServiceImpl(ResultQueryServiceProtocol):
    """Answers statistics, position and broadsheet queries from the last computation."""

    def __init__(self, result_repository: ResultRepositoryProtocol, settings: Settings):
        self.result_repository = result_repository
        self.settings = settings

    async def class_statistics(
        self, tenant_id: str, term_id: str, class_id: str, subject_id: str
    ) -> ClassStatisticsResponse:
        snapshots = await self._require_snapshots(
            tenant_id, term_id, class_id, subject_id, "class_statistics"
        )
        stats = class_statistics([s.values.total_score for s in snapshots])
        return ClassStatisticsResponse(
            subject_id=subject_id,
            average=stats.average,
            highest=stats.highest,
            lowest=stats.lowest,
            student_count=len(snapshots),
        )

    async def positions(self, tenant_id: str, term_id: str, class_id: str) -> dict[str, int]:
        term_results = await self._require_term_results(tenant_id, term_id, class_id, "positions")
        return {r.values.student_id: r.values.position for r in term_results}

    async def subject_positions(
        self, tenant_id: str, term_id: str, class_id: str, subject_id: str
    ) -> dict[str, int]:
        snapshots = await self._require_snapshots(
            tenant_id, term_id, class_id, subject_id, "subject_positions"
        )
        return {s.values.student_id: s.values.position for s in snapshots}

    async def term_statistics(
        self, tenant_id: str, term_id: str, class_id: str
    ) -> TermStatisticsResponse:
        term_results = await self._require_term_results(
            tenant_id, term_id, class_id, "term_statistics"
        )
        stats = class_statistics([r.values.average for r in term_results])
        return TermStatisticsResponse(
            total_students=len(term_results),
            average=stats.average,
            highest=stats.highest,
            lowest=stats.lowest,
        )

    async def broadsheet(self, tenant_id: str, term_id: str, class_id: str) -> BroadsheetResponse:
        """One row per student, ordered by overall position, with a cell per subject taken."""
        term_results = await self._require_term_results(tenant_id, term_id, class_id, "broadsheet")
        snapshots = await self.result_repository.get_snapshots(tenant_id, term_id, class_id)

        cells: dict[str, dict[str, BroadsheetSubjectCell]] = {}
        for snapshot in snapshots:
            values = snapshot.values
            cells.setdefault(values.student_id, {})[values.subject_id] = BroadsheetSubjectCell(
                ca=values.ca_total,
                exam=values.exam_score,
                total=values.total_score,
                grade=values.grade,
                position=values.position,
            )

        ordered = sorted(term_results, key=lambda r: (r.values.position, r.values.student_id))
        rows = [
            BroadsheetRow(
                student_id=r.values.student_id,
                subjects=cells.get(r.values.student_id, {}),
                total_score=r.values.total_score,
                average=r.values.average,
                position=r.values.position,
                grade=r.values.grade,
                promotion_status=r.values.promotion_status,
            )
            for r in ordered
        ]
        return BroadsheetResponse(
            term_id=term_id,
            class_id=class_id,
            subjects=sorted({s.values.subject_id for s in snapshots}),
            rows=rows,
        )

    async def _require_term_results(
        self, tenant_id: str, term_id: str, class_id: str, operation: str
    ) -> list[StoredTermResult]:
        term_results = await self.result_repository.get_term_results(tenant_id, term_id, class_id)
        if not term_results:
            self._raise_no_results(operation, f"{term_id}:{class_id}")
        return term_results

    async def _require_snapshots(
        self, tenant_id: str, term_id: str, class_id: str, subject_id: str, operation: str
    ) -> list[StoredSnapshot]:
        snapshots = await self.result_repository.get_snapshots(
            tenant_id, term_id, class_id, subject_id
        )
        if not snapshots:
            self._raise_no_results(operation, f"{term_id}:{class_id}:{subject_id}")
        return snapshots

    def _raise_no_results(self, operation: str, resource_id: str) -> None:
        raise_resource_not_found(
            service=self.settings.SERVICE_NAME,
            operation=operation,
            resource_type="ComputedResults",
            resource_id=resource_id,
            correlation_id=uuid4(),
            reason=ResultComputationErrorCode.NO_COMPUTED_RESULTS.value,
        )
