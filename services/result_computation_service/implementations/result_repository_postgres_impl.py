"""PostgreSQL implementation of result snapshot and term result persistence."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional, Sequence

from schoolhub_core.status_enums import ResultStatus, ScoreReviewStatus, TermResultStatus
from schoolhub_service_libs.logging_utils import create_service_logger
from sqlalchemy import select, update

from services.result_computation_service.computation_core.result_records import (
    PublicationChange,
    SaveOutcome,
    StoredSnapshot,
    StoredTermResult,
    SubjectResultValues,
    TermResultValues,
)
from services.result_computation_service.implementations.result_record_mappers import (
    ResultRecordMappers,
)
from services.result_computation_service.models_db import ResultSnapshot, ScoreEntry, TermResult
from services.result_computation_service.protocols import ResultRepositoryProtocol

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = create_service_logger("result_computation_service.result_repository")


class ResultRepositoryPostgresImpl(ResultRepositoryProtocol):
    """Result store backed by ``result_snapshots`` and ``term_results``."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory
        self.mappers = ResultRecordMappers()

    async def save_results(
        self,
        tenant_id: str,
        snapshots: Sequence[SubjectResultValues],
        term_results: Sequence[TermResultValues],
        computed_at: datetime,
    ) -> SaveOutcome:
        student_ids = {v.student_id for v in snapshots} | {v.student_id for v in term_results}
        term_ids = {v.term_id for v in snapshots} | {v.term_id for v in term_results}
        if not student_ids:
            return SaveOutcome()

        inserted = updated = unchanged = 0
        async with self.session_factory() as session:
            async with session.begin():
                existing_snapshots = await self._load_snapshots(
                    session, tenant_id, term_ids, student_ids
                )
                for values in snapshots:
                    key = (values.student_id, values.term_id, values.subject_id)
                    row = existing_snapshots.get(key)
                    if row is None:
                        row = ResultSnapshot(
                            tenant_id=tenant_id,
                            student_id=values.student_id,
                            term_id=values.term_id,
                            subject_id=values.subject_id,
                        )
                        self.mappers.apply_snapshot_values(row, values)
                        row.status = ResultStatus.COMPUTED
                        row.computed_at = computed_at
                        session.add(row)
                        inserted += 1
                    elif self.mappers.snapshot_values(row) == values:
                        unchanged += 1
                    else:
                        self.mappers.apply_snapshot_values(row, values)
                        row.status = ResultStatus.COMPUTED
                        row.computed_at = computed_at
                        row.published_at = None
                        updated += 1

                existing_terms = await self._load_term_results(
                    session, tenant_id, term_ids, student_ids
                )
                for term_values in term_results:
                    term_row = existing_terms.get((term_values.student_id, term_values.term_id))
                    if term_row is None:
                        term_row = TermResult(
                            tenant_id=tenant_id,
                            student_id=term_values.student_id,
                            term_id=term_values.term_id,
                        )
                        self.mappers.apply_term_result_values(term_row, term_values)
                        term_row.status = TermResultStatus.COMPUTED
                        term_row.computed_at = computed_at
                        session.add(term_row)
                        inserted += 1
                    elif (
                        term_row.status != TermResultStatus.DRAFT
                        and self.mappers.term_result_values(term_row) == term_values
                    ):
                        unchanged += 1
                    else:
                        self.mappers.apply_term_result_values(term_row, term_values)
                        term_row.status = TermResultStatus.COMPUTED
                        term_row.computed_at = computed_at
                        term_row.published_at = None
                        updated += 1

        outcome = SaveOutcome(inserted=inserted, updated=updated, unchanged=unchanged)
        logger.info(
            "Computed results saved",
            tenant_id=tenant_id,
            inserted=outcome.inserted,
            updated=outcome.updated,
            unchanged=outcome.unchanged,
        )
        return outcome

    async def _load_snapshots(
        self,
        session: AsyncSession,
        tenant_id: str,
        term_ids: set[str],
        student_ids: set[str],
    ) -> dict[tuple[str, str, str], ResultSnapshot]:
        result = await session.execute(
            select(ResultSnapshot).where(
                ResultSnapshot.tenant_id == tenant_id,
                ResultSnapshot.term_id.in_(term_ids),
                ResultSnapshot.student_id.in_(student_ids),
            )
        )
        return {
            (row.student_id, row.term_id, row.subject_id): row for row in result.scalars().all()
        }

    async def _load_term_results(
        self,
        session: AsyncSession,
        tenant_id: str,
        term_ids: set[str],
        student_ids: set[str],
    ) -> dict[tuple[str, str], TermResult]:
        result = await session.execute(
            select(TermResult).where(
                TermResult.tenant_id == tenant_id,
                TermResult.term_id.in_(term_ids),
                TermResult.student_id.in_(student_ids),
            )
        )
        return {(row.student_id, row.term_id): row for row in result.scalars().all()}

    async def get_term_results(
        self, tenant_id: str, term_id: str, class_id: str
    ) -> list[StoredTermResult]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(TermResult)
                .where(
                    TermResult.tenant_id == tenant_id,
                    TermResult.term_id == term_id,
                    TermResult.class_id == class_id,
                )
                .order_by(TermResult.position, TermResult.student_id)
            )
            return [self.mappers.stored_term_result(row) for row in result.scalars().all()]

    async def get_snapshots(
        self, tenant_id: str, term_id: str, class_id: str, subject_id: Optional[str] = None
    ) -> list[StoredSnapshot]:
        stmt = select(ResultSnapshot).where(
            ResultSnapshot.tenant_id == tenant_id,
            ResultSnapshot.term_id == term_id,
            ResultSnapshot.class_id == class_id,
        )
        if subject_id is not None:
            stmt = stmt.where(ResultSnapshot.subject_id == subject_id)
        async with self.session_factory() as session:
            result = await session.execute(
                stmt.order_by(ResultSnapshot.subject_id, ResultSnapshot.student_id)
            )
            return [self.mappers.stored_snapshot(row) for row in result.scalars().all()]

    async def mark_published(
        self, tenant_id: str, term_id: str, class_id: str, published_at: datetime
    ) -> PublicationChange:
        return await self._transition(
            tenant_id,
            term_id,
            class_id,
            term_from=TermResultStatus.COMPUTED,
            term_to=TermResultStatus.PUBLISHED,
            snapshot_from=ResultStatus.COMPUTED,
            snapshot_to=ResultStatus.PUBLISHED,
            scores_from=[ScoreReviewStatus.PENDING, ScoreReviewStatus.VERIFIED],
            scores_to=ScoreReviewStatus.PUBLISHED,
            published_at=published_at,
        )

    async def mark_unpublished(
        self, tenant_id: str, term_id: str, class_id: str
    ) -> PublicationChange:
        return await self._transition(
            tenant_id,
            term_id,
            class_id,
            term_from=TermResultStatus.PUBLISHED,
            term_to=TermResultStatus.COMPUTED,
            snapshot_from=ResultStatus.PUBLISHED,
            snapshot_to=ResultStatus.COMPUTED,
            scores_from=[ScoreReviewStatus.PUBLISHED],
            scores_to=ScoreReviewStatus.VERIFIED,
            published_at=None,
        )

    async def _transition(
        self,
        tenant_id: str,
        term_id: str,
        class_id: str,
        term_from: TermResultStatus,
        term_to: TermResultStatus,
        snapshot_from: ResultStatus,
        snapshot_to: ResultStatus,
        scores_from: list[ScoreReviewStatus],
        scores_to: ScoreReviewStatus,
        published_at: Optional[datetime],
    ) -> PublicationChange:
        """Move term results, snapshots and score entries of a class in one transaction."""
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(TermResult)
                    .where(
                        TermResult.tenant_id == tenant_id,
                        TermResult.term_id == term_id,
                        TermResult.class_id == class_id,
                        TermResult.status == term_from,
                    )
                    .values(status=term_to, published_at=published_at)
                    .returning(TermResult.student_id)
                )
                student_ids = sorted(result.scalars().all())
                if not student_ids:
                    return PublicationChange()
                await session.execute(
                    update(ResultSnapshot)
                    .where(
                        ResultSnapshot.tenant_id == tenant_id,
                        ResultSnapshot.term_id == term_id,
                        ResultSnapshot.class_id == class_id,
                        ResultSnapshot.status == snapshot_from,
                    )
                    .values(status=snapshot_to, published_at=published_at)
                )
                scores = await session.execute(
                    update(ScoreEntry)
                    .where(
                        ScoreEntry.tenant_id == tenant_id,
                        ScoreEntry.term_id == term_id,
                        ScoreEntry.class_id == class_id,
                        ScoreEntry.review_status.in_(scores_from),
                    )
                    .values(review_status=scores_to)
                )
        return PublicationChange(student_ids=student_ids, scores_changed=int(scores.rowcount or 0))
