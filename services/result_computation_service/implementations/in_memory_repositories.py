"""
In-memory score and result stores.

Selected by USE_MOCK_REPOSITORY (and in the testing environment) and used
by the unit tests. They follow the same semantics as the PostgreSQL repositories: upserts keyed
by the same unique columns, unchanged rows left untouched, and publication
transitions that write nothing when no row qualifies and move score entries
along with the results.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime
from typing import Optional, Sequence

from schoolhub_core.status_enums import ResultStatus, ScoreReviewStatus, TermResultStatus

from services.result_computation_service.computation_core.result_records import (
    PublicationChange,
    SaveOutcome,
    ScoreRecord,
    StoredSnapshot,
    StoredTermResult,
    SubjectResultValues,
    TermResultValues,
)
from services.result_computation_service.models_api import ScoreEntryInput
from services.result_computation_service.protocols import (
    ResultRepositoryProtocol,
    ScoreRepositoryProtocol,
)

ScoreKey = tuple[str, str, str, str, str, str]
SnapshotKey = tuple[str, str, str, str]
TermKey = tuple[str, str, str]


class InMemoryScoreRepository(ScoreRepositoryProtocol):
    """Score store held in a dict keyed by the score uniqueness columns."""

    def __init__(self) -> None:
        self.entries: dict[ScoreKey, ScoreRecord] = {}
        self.entered_by: dict[ScoreKey, str] = {}
        self._lock = asyncio.Lock()

    def add(self, tenant_id: str, record: ScoreRecord) -> None:
        """Seed a score directly, bypassing validation."""
        self.entries[self._key(tenant_id, record)] = record

    @staticmethod
    def _key(tenant_id: str, record: ScoreRecord) -> ScoreKey:
        return (
            tenant_id,
            record.student_id,
            record.class_id,
            record.subject_id,
            record.term_id,
            record.assessment_type,
        )

    async def get_class_scores(
        self, tenant_id: str, term_id: str, class_id: str
    ) -> list[ScoreRecord]:
        return [
            record
            for key, record in self.entries.items()
            if key[0] == tenant_id and record.term_id == term_id and record.class_id == class_id
        ]

    async def get_student_scores(
        self, tenant_id: str, student_id: str, term_id: str, class_id: Optional[str] = None
    ) -> list[ScoreRecord]:
        return [
            record
            for key, record in self.entries.items()
            if key[0] == tenant_id
            and record.student_id == student_id
            and record.term_id == term_id
            and (class_id is None or record.class_id == class_id)
        ]

    async def upsert_scores(
        self,
        tenant_id: str,
        term_id: str,
        class_id: str,
        entries: Sequence[ScoreEntryInput],
        entered_by: str,
    ) -> int:
        async with self._lock:
            for entry in entries:
                record = ScoreRecord(
                    student_id=entry.student_id,
                    class_id=class_id,
                    subject_id=entry.subject_id,
                    term_id=term_id,
                    assessment_type=entry.assessment_type,
                    score=int(entry.score),
                    max_score=entry.max_score,
                    review_status=ScoreReviewStatus.PENDING,
                )
                key = self._key(tenant_id, record)
                self.entries[key] = record
                self.entered_by[key] = entered_by
        return len(entries)

    async def update_review_status(
        self,
        tenant_id: str,
        term_id: str,
        class_id: str,
        from_statuses: Sequence[ScoreReviewStatus],
        to_status: ScoreReviewStatus,
        subject_id: Optional[str] = None,
    ) -> int:
        moved = 0
        async with self._lock:
            for key, record in list(self.entries.items()):
                if (
                    key[0] == tenant_id
                    and record.term_id == term_id
                    and record.class_id == class_id
                    and record.review_status in from_statuses
                    and (subject_id is None or record.subject_id == subject_id)
                ):
                    self.entries[key] = replace(record, review_status=to_status)
                    moved += 1
        return moved


class InMemoryResultRepository(ResultRepositoryProtocol):
    """Result store held in dicts keyed by the snapshot and term result uniqueness columns."""

    def __init__(self, score_repository: Optional[ScoreRepositoryProtocol] = None) -> None:
        self.snapshots: dict[SnapshotKey, StoredSnapshot] = {}
        self.term_results: dict[TermKey, StoredTermResult] = {}
        self.score_repository = score_repository
        self._lock = asyncio.Lock()

    async def save_results(
        self,
        tenant_id: str,
        snapshots: Sequence[SubjectResultValues],
        term_results: Sequence[TermResultValues],
        computed_at: datetime,
    ) -> SaveOutcome:
        inserted = updated = unchanged = 0
        async with self._lock:
            for values in snapshots:
                key = (tenant_id, values.student_id, values.term_id, values.subject_id)
                existing = self.snapshots.get(key)
                if existing is not None and existing.values == values:
                    unchanged += 1
                    continue
                if existing is None:
                    inserted += 1
                else:
                    updated += 1
                self.snapshots[key] = StoredSnapshot(
                    values=values, status=ResultStatus.COMPUTED, computed_at=computed_at
                )

            for term_values in term_results:
                term_key = (tenant_id, term_values.student_id, term_values.term_id)
                current = self.term_results.get(term_key)
                if (
                    current is not None
                    and current.status != TermResultStatus.DRAFT
                    and current.values == term_values
                ):
                    unchanged += 1
                    continue
                if current is None:
                    inserted += 1
                else:
                    updated += 1
                self.term_results[term_key] = StoredTermResult(
                    values=term_values, status=TermResultStatus.COMPUTED, computed_at=computed_at
                )
        return SaveOutcome(inserted=inserted, updated=updated, unchanged=unchanged)

    async def get_term_results(
        self, tenant_id: str, term_id: str, class_id: str
    ) -> list[StoredTermResult]:
        rows = [
            row
            for key, row in self.term_results.items()
            if key[0] == tenant_id
            and row.values.term_id == term_id
            and row.values.class_id == class_id
        ]
        return sorted(rows, key=lambda r: (r.values.position, r.values.student_id))

    async def get_snapshots(
        self, tenant_id: str, term_id: str, class_id: str, subject_id: Optional[str] = None
    ) -> list[StoredSnapshot]:
        rows = [
            row
            for key, row in self.snapshots.items()
            if key[0] == tenant_id
            and row.values.term_id == term_id
            and row.values.class_id == class_id
            and (subject_id is None or row.values.subject_id == subject_id)
        ]
        return sorted(rows, key=lambda r: (r.values.subject_id, r.values.student_id))

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
        async with self._lock:
            term_keys = self._class_term_keys(tenant_id, term_id, class_id, term_from)
            if not term_keys:
                return PublicationChange()

            saved_terms = dict(self.term_results)
            saved_snapshots = dict(self.snapshots)
            try:
                for key in term_keys:
                    self.term_results[key] = replace(
                        self.term_results[key], status=term_to, published_at=published_at
                    )
                for snap_key in self._class_snapshot_keys(
                    tenant_id, term_id, class_id, snapshot_from
                ):
                    self.snapshots[snap_key] = replace(
                        self.snapshots[snap_key], status=snapshot_to, published_at=published_at
                    )
                scores_changed = 0
                if self.score_repository is not None:
                    scores_changed = await self.score_repository.update_review_status(
                        tenant_id,
                        term_id,
                        class_id,
                        from_statuses=scores_from,
                        to_status=scores_to,
                    )
            except Exception:
                # Rolled back as a single database transaction would be
                self.term_results = saved_terms
                self.snapshots = saved_snapshots
                raise
            return PublicationChange(
                student_ids=sorted(key[1] for key in term_keys), scores_changed=scores_changed
            )

    def _class_term_keys(
        self, tenant_id: str, term_id: str, class_id: str, status: TermResultStatus
    ) -> list[TermKey]:
        return [
            key
            for key, row in self.term_results.items()
            if key[0] == tenant_id
            and row.values.term_id == term_id
            and row.values.class_id == class_id
            and row.status == status
        ]

    def _class_snapshot_keys(
        self, tenant_id: str, term_id: str, class_id: str, status: ResultStatus
    ) -> list[SnapshotKey]:
        return [
            key
            for key, row in self.snapshots.items()
            if key[0] == tenant_id
            and row.values.term_id == term_id
            and row.values.class_id == class_id
            and row.status == status
        ]
