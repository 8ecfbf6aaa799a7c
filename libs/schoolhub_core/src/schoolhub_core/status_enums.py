"""Status enums for score review, result visibility, and computation jobs.

ScoreReviewStatus: Review lifecycle of a teacher-entered score.
ResultStatus: Visibility of a per-subject snapshot.
TermResultStatus: Visibility of a student's term aggregate.
ComputationJobStatus: Lifecycle of an asynchronous computation job.
PromotionStatus: End-of-term promotion decision.
"""

from __future__ import annotations

from enum import Enum


class ScoreReviewStatus(str, Enum):
    """Review lifecycle of a score entry: PENDING → VERIFIED → PUBLISHED.

    Re-submitting a score resets it to PENDING.
    """

    PENDING = "pending"
    VERIFIED = "verified"
    PUBLISHED = "published"


class ResultStatus(str, Enum):
    """Visibility of a ResultSnapshot."""

    COMPUTED = "computed"
    PUBLISHED = "published"


class TermResultStatus(str, Enum):
    """Visibility of a TermResult.

    DRAFT → COMPUTED by the computation job, COMPUTED → PUBLISHED by publish,
    PUBLISHED → COMPUTED by unpublish. Recomputation never moves a row to PUBLISHED.
    """

    DRAFT = "draft"
    COMPUTED = "computed"
    PUBLISHED = "published"


class ComputationJobStatus(str, Enum):
    """Lifecycle of a computation job: PENDING → ACTIVE → terminal."""

    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @classmethod
    def terminal(cls) -> set[ComputationJobStatus]:
        """Return terminal states (no further processing)."""
        return {cls.COMPLETED, cls.FAILED, cls.CANCELLED}


class PromotionStatus(str, Enum):
    """Promotion decision derived from the term average and failed subjects."""

    PROMOTED = "promoted"
    PROMOTED_ON_TRIAL = "promoted_on_trial"
    REPEAT = "repeat"
