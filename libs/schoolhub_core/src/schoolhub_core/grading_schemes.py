"""
Grading scheme registry for result computation.

Provides the rule-table definitions that map a subject total (0-100) to a
grade label, remark and point value. Tenants may configure their own table;
the WAEC nine-band table is the platform default.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

SCORE_FLOOR = 0
SCORE_CEILING = 100


@dataclass(frozen=True)
class GradeRule:
    """
    One band of a grading scheme.

    Attributes:
        min_score: Inclusive lower bound of the band
        max_score: Inclusive upper bound of the band
        grade: Grade label (e.g., "A1")
        remark: Remark attached to the grade (e.g., "Excellent")
        points: Point value used for grade-point aggregates
    """

    min_score: int
    max_score: int
    grade: str
    remark: str
    points: float

    def __post_init__(self) -> None:
        if not self.grade:
            msg = "grade cannot be empty"
            raise ValueError(msg)
        if self.min_score > self.max_score:
            msg = f"min_score {self.min_score} exceeds max_score {self.max_score} for {self.grade}"
            raise ValueError(msg)

    def contains(self, total: float) -> bool:
        """Whether a total falls into this band.

        Bands are integer ranges; a fractional total belongs to the band its
        integer part falls into (74.6 is graded with 70-74).
        """
        return self.min_score <= total < self.max_score + 1


@dataclass(frozen=True)
class GradingScheme:
    """
    An ordered, contiguous, non-overlapping rule table covering [0, 100].

    Attributes:
        scheme_id: Unique identifier for the scheme (e.g., "waec_9_band")
        display_name: Human-readable name
        rules: Rules ordered from the highest band to the lowest
        description: Purpose and context of this scheme
    """

    scheme_id: str
    display_name: str
    rules: tuple[GradeRule, ...]
    description: str = field(default="")

    def __post_init__(self) -> None:
        """Validate that the bands cover [0, 100] without gaps or overlaps."""
        if not self.scheme_id:
            msg = "scheme_id cannot be empty"
            raise ValueError(msg)
        if not self.rules:
            msg = "rules cannot be empty"
            raise ValueError(msg)

        ordered = sorted(self.rules, key=lambda r: r.min_score, reverse=True)
        object.__setattr__(self, "rules", tuple(ordered))

        grades = [r.grade for r in ordered]
        if len(grades) != len(set(grades)):
            msg = f"grades must be unique: {grades}"
            raise ValueError(msg)

        if ordered[-1].min_score != SCORE_FLOOR:
            msg = f"lowest band must start at {SCORE_FLOOR}, got {ordered[-1].min_score}"
            raise ValueError(msg)
        if ordered[0].max_score != SCORE_CEILING:
            msg = f"highest band must end at {SCORE_CEILING}, got {ordered[0].max_score}"
            raise ValueError(msg)

        for higher, lower in zip(ordered, ordered[1:]):
            if higher.min_score != lower.max_score + 1:
                msg = (
                    f"bands {lower.grade} ({lower.min_score}-{lower.max_score}) and "
                    f"{higher.grade} ({higher.min_score}-{higher.max_score}) "
                    "are not contiguous"
                )
                raise ValueError(msg)

    @property
    def lowest_rule(self) -> GradeRule:
        """The band with the lowest scores (the failing band)."""
        return self.rules[-1]


def build_scheme(
    rules: Iterable[GradeRule],
    scheme_id: str,
    display_name: str | None = None,
) -> GradingScheme:
    """Build and validate a scheme from tenant-configured rules."""
    return GradingScheme(
        scheme_id=scheme_id,
        display_name=display_name or scheme_id,
        rules=tuple(rules),
        description="Tenant-configured grading scheme",
    )


# WAEC/NECO senior secondary nine-band table (platform default)
_WAEC_9_BAND = GradingScheme(
    scheme_id="waec_9_band",
    display_name="WAEC Nine-Band (A1-F9)",
    rules=(
        GradeRule(min_score=75, max_score=100, grade="A1", remark="Excellent", points=4.0),
        GradeRule(min_score=70, max_score=74, grade="B2", remark="Very Good", points=3.5),
        GradeRule(min_score=65, max_score=69, grade="B3", remark="Good", points=3.0),
        GradeRule(min_score=60, max_score=64, grade="C4", remark="Credit", points=2.5),
        GradeRule(min_score=55, max_score=59, grade="C5", remark="Credit", points=2.0),
        GradeRule(min_score=50, max_score=54, grade="C6", remark="Credit", points=1.5),
        GradeRule(min_score=45, max_score=49, grade="D7", remark="Pass", points=1.0),
        GradeRule(min_score=40, max_score=44, grade="E8", remark="Pass", points=0.5),
        GradeRule(min_score=0, max_score=39, grade="F9", remark="Fail", points=0.0),
    ),
    description=(
        "West African Examinations Council nine-band scale. Bands are inclusive "
        "on both ends and cover 0-100; F9 is the failing band."
    ),
)

DEFAULT_SCHEME_ID = _WAEC_9_BAND.scheme_id

# Registry mapping scheme_id to scheme
GRADING_SCHEMES: dict[str, GradingScheme] = {
    _WAEC_9_BAND.scheme_id: _WAEC_9_BAND,
}


def get_scheme(scheme_id: str) -> GradingScheme:
    """
    Retrieve a registered grading scheme by ID.

    Raises:
        ValueError: If scheme_id is not registered
    """
    if scheme_id not in GRADING_SCHEMES:
        available = ", ".join(sorted(GRADING_SCHEMES.keys()))
        msg = f"Unknown grading scheme '{scheme_id}'. Available schemes: {available}"
        raise ValueError(msg)
    return GRADING_SCHEMES[scheme_id]


def default_scheme() -> GradingScheme:
    """The scheme used when a tenant has none configured."""
    return GRADING_SCHEMES[DEFAULT_SCHEME_ID]


def list_available_schemes() -> list[str]:
    """Sorted list of registered scheme identifiers."""
    return sorted(GRADING_SCHEMES.keys())
