"""
Cohort precomputation for a (term, class) computation run.

Builds everything that depends on the whole class before any per-student
result is produced: per-subject totals, rankings and statistics, and the
class-level ranking on term totals. Per-student computation then only reads
from the finished ClassCohort.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable

from schoolhub_core.error_enums import ResultComputationErrorCode
from schoolhub_core.grading_schemes import GradingScheme

from services.result_computation_service.computation_core.grade_calculator import (
    ClassStatistics,
    DataIntegrityWarning,
    automated_remark,
    class_statistics,
    grade_for,
    normalize_score,
    promotion_status,
    rank_within,
    validate_score,
)
from services.result_computation_service.computation_core.result_records import (
    ScoreRecord,
    SubjectResultValues,
    TermResultValues,
)


class StudentComputationError(Exception):
    """A failure confined to one student; recorded and skipped, never fatal to a run."""

    def __init__(self, student_id: str, reason: str, message: str) -> None:
        super().__init__(message)
        self.student_id = student_id
        self.reason = reason

    def __str__(self) -> str:
        return f"Student {self.student_id}: {self.args[0]}"


class ComputationCancelledError(Exception):
    """Raised between students when cancellation was requested; nothing is written."""

    def __init__(self, processed: int, failed: int) -> None:
        super().__init__(f"Computation cancelled after {processed + failed} students")
        self.processed = processed
        self.failed = failed


@dataclass(frozen=True)
class SubjectTotal:
    subject_id: str
    ca_total: int
    exam_score: int
    max_total: int

    @property
    def total(self) -> int:
        return self.ca_total + self.exam_score

    @property
    def percentage(self) -> int:
        """The total on a 100 scale; grade bands are defined against this."""
        return normalize_score(self.total, self.max_total)


@dataclass
class ClassCohort:
    """Snapshot-consistent view of one class's scores for one term."""

    term_id: str
    class_id: str
    scheme: GradingScheme
    subject_totals: dict[str, dict[str, SubjectTotal]] = field(default_factory=dict)
    invalid_students: dict[str, StudentComputationError] = field(default_factory=dict)
    subject_positions: dict[str, dict[str, int]] = field(default_factory=dict)
    subject_statistics: dict[str, ClassStatistics] = field(default_factory=dict)
    class_positions: dict[str, int] = field(default_factory=dict)

    @property
    def scored_students(self) -> set[str]:
        return set(self.subject_totals) | set(self.invalid_students)

    @property
    def cohort_size(self) -> int:
        return len(self.class_positions)

    def compute_student(
        self, student_id: str
    ) -> tuple[list[SubjectResultValues], TermResultValues, list[DataIntegrityWarning]]:
        """
        Produce one student's subject results and term aggregate.

        Raises:
            StudentComputationError: If the student has no usable scores
        """
        if student_id in self.invalid_students:
            raise self.invalid_students[student_id]
        totals = self.subject_totals.get(student_id)
        if not totals:
            raise StudentComputationError(
                student_id,
                ResultComputationErrorCode.NO_SCORES.value,
                f"no scores recorded for term {self.term_id}",
            )

        warnings: list[DataIntegrityWarning] = []
        subjects: list[SubjectResultValues] = []
        failed_subjects = 0
        lowest_grade = self.scheme.lowest_rule.grade

        for subject_id in sorted(totals):
            subject_total = totals[subject_id]
            outcome = grade_for(subject_total.percentage, self.scheme)
            if outcome.warning:
                warnings.append(outcome.warning)
            if outcome.grade == lowest_grade:
                failed_subjects += 1
            stats = self.subject_statistics[subject_id]
            subjects.append(
                SubjectResultValues(
                    student_id=student_id,
                    term_id=self.term_id,
                    class_id=self.class_id,
                    subject_id=subject_id,
                    ca_total=subject_total.ca_total,
                    exam_score=subject_total.exam_score,
                    total_score=subject_total.total,
                    grade=outcome.grade,
                    remark=outcome.remark,
                    grade_points=outcome.points,
                    class_average=stats.average,
                    highest=stats.highest,
                    lowest=stats.lowest,
                    position=self.subject_positions[subject_id][student_id],
                )
            )

        term_total = sum(s.total_score for s in subjects)
        # Equal to term_total / subject count when every subject is out of 100
        average = round(sum(t.percentage for t in totals.values()) / len(subjects), 2)
        overall = grade_for(average, self.scheme)
        if overall.warning:
            warnings.append(overall.warning)
        position = self.class_positions[student_id]

        term_result = TermResultValues(
            student_id=student_id,
            term_id=self.term_id,
            class_id=self.class_id,
            total_score=term_total,
            total_obtainable=sum(t.max_total for t in totals.values()),
            subject_count=len(subjects),
            average=average,
            position=position,
            grade=overall.grade,
            promotion_status=promotion_status(average, failed_subjects, len(subjects)),
            remark=automated_remark(average, position, self.cohort_size),
            total_students=self.cohort_size,
        )
        return subjects, term_result, warnings


def build_cohort(
    term_id: str,
    class_id: str,
    scores: Iterable[ScoreRecord],
    scheme: GradingScheme,
) -> ClassCohort:
    """
    Group a class's scores and precompute every class-relative figure.

    Students with a stored score that fails validation are excluded from the
    rankings and statistics and recorded in ``invalid_students``.
    """
    cohort = ClassCohort(term_id=term_id, class_id=class_id, scheme=scheme)
    by_student: dict[str, dict[str, list[ScoreRecord]]] = defaultdict(lambda: defaultdict(list))

    for record in scores:
        if record.term_id != term_id or record.class_id != class_id:
            continue
        if record.student_id in cohort.invalid_students:
            continue
        issue = validate_score(record.score, record.max_score)
        if issue is not None:
            cohort.invalid_students[record.student_id] = StudentComputationError(
                record.student_id,
                issue.value,
                f"invalid {record.assessment_type} score {record.score}/{record.max_score} "
                f"for subject {record.subject_id} ({issue.value})",
            )
            by_student.pop(record.student_id, None)
            continue
        by_student[record.student_id][record.subject_id].append(record)

    for student_id, subjects in by_student.items():
        cohort.subject_totals[student_id] = {
            subject_id: _subject_total(subject_id, records)
            for subject_id, records in subjects.items()
        }

    subject_scores: dict[str, list[tuple[str, float]]] = defaultdict(list)
    for student_id, totals in cohort.subject_totals.items():
        for subject_id, subject_total in totals.items():
            subject_scores[subject_id].append((student_id, subject_total.total))

    for subject_id, entries in subject_scores.items():
        cohort.subject_positions[subject_id] = rank_within(entries)
        cohort.subject_statistics[subject_id] = class_statistics([score for _, score in entries])

    cohort.class_positions = rank_within(
        (student_id, sum(t.total for t in totals.values()))
        for student_id, totals in cohort.subject_totals.items()
    )
    return cohort


def _subject_total(subject_id: str, records: list[ScoreRecord]) -> SubjectTotal:
    return SubjectTotal(
        subject_id=subject_id,
        ca_total=sum(r.score for r in records if not r.is_exam),
        exam_score=sum(r.score for r in records if r.is_exam),
        max_total=sum(r.max_score for r in records),
    )
