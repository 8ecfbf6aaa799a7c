"""Core result computation logic: pure grading functions and cohort precomputation."""

from .cohort import (
    ClassCohort,
    ComputationCancelledError,
    StudentComputationError,
    build_cohort,
)
from .grade_calculator import (
    ClassStatistics,
    DataIntegrityWarning,
    GradeOutcome,
    automated_remark,
    class_statistics,
    grade_for,
    normalize_score,
    promotion_status,
    rank_within,
    validate_score,
)

__all__ = [
    "ClassCohort",
    "ClassStatistics",
    "ComputationCancelledError",
    "DataIntegrityWarning",
    "GradeOutcome",
    "StudentComputationError",
    "automated_remark",
    "build_cohort",
    "class_statistics",
    "grade_for",
    "normalize_score",
    "promotion_status",
    "rank_within",
    "validate_score",
]
