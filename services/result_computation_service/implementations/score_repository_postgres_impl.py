"""PostgreSQL implementation of the score store."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Optional, Sequence

from schoolhub_core.status_enums import ScoreReviewStatus
from schoolhub_service_libs.logging_utils import create_service_logger
from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert

from services.result_computation_service.computation_core.result_records import ScoreRecord
from services.result_computation_service.implementations.result_record_mappers import (
    ResultRecordMappers,
)
from services.result_computation_service.models_api import ScoreEntryInput
from services.result_computation_service.models_db import ScoreEntry
from services.result_computation_service.protocols import ScoreRepositoryProtocol

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import async_sessionmaker

logger = create_service_logger("result_computation_service.score_repository")

_CONFLICT_COLUMNS = [
    "tenant_id",
    "student_id",
    "class_id",
    "subject_id",
    "term_id",
    "assessment_type",
]


class ScoreRepositoryPostgresImpl(ScoreRepositoryProtocol):
    """Score store backed by the ``score_entries`` table."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory
        self.mappers = ResultRecordMappers()

    async def get_class_scores(
        self, tenant_id: str, term_id: str, class_id: str
    ) -> list[ScoreRecord]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ScoreEntry).where(
                    ScoreEntry.tenant_id == tenant_id,
                    ScoreEntry.term_id == term_id,
                    ScoreEntry.class_id == class_id,
                )
            )
            return [self.mappers.score_record(row) for row in result.scalars().all()]

    async def get_student_scores(
        self, tenant_id: str, student_id: str, term_id: str, class_id: Optional[str] = None
    ) -> list[ScoreRecord]:
        stmt = select(ScoreEntry).where(
            ScoreEntry.tenant_id == tenant_id,
            ScoreEntry.student_id == student_id,
            ScoreEntry.term_id == term_id,
        )
        if class_id is not None:
            stmt = stmt.where(ScoreEntry.class_id == class_id)
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [self.mappers.score_record(row) for row in result.scalars().all()]

    async def upsert_scores(
        self,
        tenant_id: str,
        term_id: str,
        class_id: str,
        entries: Sequence[ScoreEntryInput],
        entered_by: str,
    ) -> int:
        if not entries:
            return 0
        entered_at = datetime.now(UTC)
        rows = [
            {
                "tenant_id": tenant_id,
                "student_id": entry.student_id,
                "class_id": class_id,
                "subject_id": entry.subject_id,
                "term_id": term_id,
                "assessment_type": entry.assessment_type,
                "score": int(entry.score),
                "max_score": entry.max_score,
                "entered_by": entered_by,
                "entered_at": entered_at,
                "review_status": ScoreReviewStatus.PENDING,
            }
            for entry in entries
        ]
        stmt = insert(ScoreEntry).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=_CONFLICT_COLUMNS,
            set_={
                "score": stmt.excluded.score,
                "max_score": stmt.excluded.max_score,
                "entered_by": stmt.excluded.entered_by,
                "entered_at": stmt.excluded.entered_at,
                "review_status": stmt.excluded.review_status,
            },
        )
        async with self.session_factory() as session:
            async with session.begin():
                await session.execute(stmt)

        logger.info(
            "Score entries upserted",
            tenant_id=tenant_id,
            term_id=term_id,
            class_id=class_id,
            count=len(rows),
        )
        return len(rows)

    async def update_review_status(
        self,
        tenant_id: str,
        term_id: str,
        class_id: str,
        from_statuses: Sequence[ScoreReviewStatus],
        to_status: ScoreReviewStatus,
        subject_id: Optional[str] = None,
    ) -> int:
        stmt = update(ScoreEntry).where(
            ScoreEntry.tenant_id == tenant_id,
            ScoreEntry.term_id == term_id,
            ScoreEntry.class_id == class_id,
            ScoreEntry.review_status.in_(list(from_statuses)),
        )
        if subject_id is not None:
            stmt = stmt.where(ScoreEntry.subject_id == subject_id)
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(stmt.values(review_status=to_status))
        return int(result.rowcount or 0)
