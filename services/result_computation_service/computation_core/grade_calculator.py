"""
Pure grading functions for result computation.

Every function here is side-effect free and takes the grading scheme as an
explicit argument, so the same inputs always produce the same grades,
positions and remarks.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

from schoolhub_core.error_enums import ResultComputationErrorCode
from schoolhub_core.grading_schemes import GradeRule, GradingScheme
from schoolhub_core.status_enums import PromotionStatus

PASS_AVERAGE = 50.0
TRIAL_AVERAGE = 45.0
TRIAL_MAX_FAILED_SUBJECTS = 2
TRIAL_MAX_FAILED_RATIO = 0.25
TOP_PERCENTILE = 0.1

# (minimum average, remark) from the highest tier down
_REMARK_TIERS: tuple[tuple[float, str], ...] = (
    (80.0, "An excellent result. Keep up the outstanding work."),
    (70.0, "A very good result. Well done."),
    (60.0, "A good result, with room to push further."),
    (50.0, "A fair result. More effort is needed in weaker subjects."),
    (40.0, "A weak result. Needs to work much harder."),
)
_POOR_REMARK = "A poor result. Requires close attention and support."
_TOP_CLAUSE = " Among the top performers in the class."


@dataclass(frozen=True)
class DataIntegrityWarning:
    """A total that no band of the scheme covers; graded with the lowest band."""

    total: float
    scheme_id: str
    fallback_grade: str

    @property
    def message(self) -> str:
        return (
            f"Total {self.total:g} matches no band of scheme '{self.scheme_id}'; "
            f"graded {self.fallback_grade}"
        )


@dataclass(frozen=True)
class GradeOutcome:
    """Result of mapping a total onto a grading scheme."""

    grade: str
    remark: str
    points: float
    warning: DataIntegrityWarning | None = None


@dataclass(frozen=True)
class ClassStatistics:
    average: float
    highest: float
    lowest: float


def validate_score(value: float, max_score: float) -> ResultComputationErrorCode | None:
    """
    Check a raw score against its maximum.

    Returns:
        None when the score is an integer in [0, max_score], otherwise the
        reason it was rejected (NON_INTEGRAL_SCORE or SCORE_OUT_OF_RANGE)
    """
    if isinstance(value, bool) or not _is_integral(value):
        return ResultComputationErrorCode.NON_INTEGRAL_SCORE
    if value < 0 or value > max_score:
        return ResultComputationErrorCode.SCORE_OUT_OF_RANGE
    return None


def _is_integral(value: float) -> bool:
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value) and value.is_integer()


def normalize_score(score: float, max_score: float) -> int:
    """Scale a score to a percentage, rounded to the nearest integer."""
    if max_score == 0:
        return 0
    return round(score / max_score * 100)


def grade_for(total: float, scheme: GradingScheme) -> GradeOutcome:
    """
    Map a total onto the scheme's bands.

    A total outside every band (only possible for totals outside [0, 100])
    is graded with the lowest band and flagged with a DataIntegrityWarning.
    """
    for rule in scheme.rules:
        if rule.contains(total):
            return _outcome(rule)
    fallback = scheme.lowest_rule
    return _outcome(
        fallback,
        DataIntegrityWarning(
            total=total, scheme_id=scheme.scheme_id, fallback_grade=fallback.grade
        ),
    )


def _outcome(rule: GradeRule, warning: DataIntegrityWarning | None = None) -> GradeOutcome:
    return GradeOutcome(grade=rule.grade, remark=rule.remark, points=rule.points, warning=warning)


def rank_within(scores: Iterable[tuple[str, float]]) -> dict[str, int]:
    """
    Competition ranking: tied entities share a position and the next lower
    score skips by the size of the tie group ([90, 90, 80] -> 1, 1, 3).
    """
    ordered = sorted(scores, key=lambda item: (-item[1], item[0]))
    positions: dict[str, int] = {}
    current_position = 1
    tie_count = 0
    previous: float | None = None
    for entity_id, score in ordered:
        if previous is not None and score < previous:
            current_position += tie_count
            tie_count = 1
        else:
            tie_count += 1
        positions[entity_id] = current_position
        previous = score
    return positions


def class_statistics(scores: Sequence[float]) -> ClassStatistics:
    """Average (2 dp), highest and lowest of a cohort; zeros for an empty cohort."""
    if not scores:
        return ClassStatistics(average=0.0, highest=0.0, lowest=0.0)
    return ClassStatistics(
        average=round(sum(scores) / len(scores), 2),
        highest=max(scores),
        lowest=min(scores),
    )


def promotion_status(
    average: float, failed_subject_count: int, total_subject_count: int
) -> PromotionStatus:
    """Promoted, promoted on trial, or repeat; checked in that order."""
    if average >= PASS_AVERAGE and failed_subject_count == 0:
        return PromotionStatus.PROMOTED
    if (
        average >= TRIAL_AVERAGE
        and failed_subject_count <= TRIAL_MAX_FAILED_SUBJECTS
        and total_subject_count > 0
        and failed_subject_count / total_subject_count <= TRIAL_MAX_FAILED_RATIO
    ):
        return PromotionStatus.PROMOTED_ON_TRIAL
    return PromotionStatus.REPEAT


def automated_remark(average: float, position: int, cohort_size: int) -> str:
    remark = _POOR_REMARK
    for threshold, text in _REMARK_TIERS:
        if average >= threshold:
            remark = text
            break
    if cohort_size > 0 and position <= math.ceil(cohort_size * TOP_PERCENTILE):
        remark += _TOP_CLAUSE
    return remark
