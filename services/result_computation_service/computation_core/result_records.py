"""
Value records exchanged between the computation core and the repositories.

These are storage-agnostic: the PostgreSQL repositories map them to and from
ORM rows, the in-memory repositories keep them as-is.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from schoolhub_core.status_enums import (
    PromotionStatus,
    ResultStatus,
    ScoreReviewStatus,
    TermResultStatus,
)

EXAM_ASSESSMENT_TYPE = "EXAM"


@dataclass(frozen=True)
class ScoreRecord:
    """One raw assessment score as stored by score entry."""

    student_id: str
    class_id: str
    subject_id: str
    term_id: str
    assessment_type: str
    score: int
    max_score: int
    review_status: ScoreReviewStatus = ScoreReviewStatus.PENDING

    @property
    def is_exam(self) -> bool:
        return self.assessment_type.upper() == EXAM_ASSESSMENT_TYPE


@dataclass(frozen=True)
class SubjectResultValues:
    """Computed per-subject result for one student; the content of a ResultSnapshot."""

    student_id: str
    term_id: str
    class_id: str
    subject_id: str
    ca_total: int
    exam_score: int
    total_score: int
    grade: str
    remark: str
    grade_points: float
    class_average: float
    highest: float
    lowest: float
    position: int


@dataclass(frozen=True)
class TermResultValues:
    """Computed term aggregate for one student; the content of a TermResult."""

    student_id: str
    term_id: str
    class_id: str
    total_score: int
    total_obtainable: int
    subject_count: int
    average: float
    position: int
    grade: str
    promotion_status: PromotionStatus
    remark: str
    total_students: int


@dataclass(frozen=True)
class StoredSnapshot:
    values: SubjectResultValues
    status: ResultStatus
    computed_at: datetime
    published_at: datetime | None = None


@dataclass(frozen=True)
class StoredTermResult:
    values: TermResultValues
    status: TermResultStatus
    computed_at: datetime
    published_at: datetime | None = None


@dataclass(frozen=True)
class SaveOutcome:
    """Row counts written by one save of computed results."""

    inserted: int = 0
    updated: int = 0
    unchanged: int = 0


@dataclass(frozen=True)
class PublicationChange:
    """What one publish or unpublish transition wrote."""

    student_ids: list[str] = field(default_factory=list)
    scores_changed: int = 0
