"""Unit tests for class cohort precomputation and per-student results."""

from __future__ import annotations

import pytest
from schoolhub_core.error_enums import ResultComputationErrorCode
from schoolhub_core.grading_schemes import default_scheme
from schoolhub_core.status_enums import PromotionStatus

from services.result_computation_service.computation_core.cohort import (
    StudentComputationError,
    build_cohort,
)
from services.result_computation_service.computation_core.result_records import ScoreRecord

TERM = "term-1"
CLASS = "class-a"


def score(
    student_id: str,
    subject_id: str,
    assessment_type: str,
    value: int,
    max_score: int = 100,
    term_id: str = TERM,
    class_id: str = CLASS,
) -> ScoreRecord:
    return ScoreRecord(
        student_id=student_id,
        class_id=class_id,
        subject_id=subject_id,
        term_id=term_id,
        assessment_type=assessment_type,
        score=value,
        max_score=max_score,
    )


@pytest.fixture
def scores() -> list[ScoreRecord]:
    return [
        # s1: math 20+15+50=85, english 30+40=70 -> 155
        score("s1", "math", "CA1", 20, 20),
        score("s1", "math", "CA2", 15, 20),
        score("s1", "math", "EXAM", 50, 60),
        score("s1", "english", "CA1", 30, 40),
        score("s1", "english", "exam", 40, 60),
        # s2: math 30+55=85, english 10+20=30 -> 115
        score("s2", "math", "CA1", 30, 40),
        score("s2", "math", "EXAM", 55, 60),
        score("s2", "english", "CA1", 10, 40),
        score("s2", "english", "EXAM", 20, 60),
        # s3: math 10+20=30 -> 30
        score("s3", "math", "CA1", 10, 40),
        score("s3", "math", "EXAM", 20, 60),
        # other class and other term are ignored
        score("x1", "math", "EXAM", 60, 60, class_id="class-b"),
        score("s1", "math", "EXAM", 1, 60, term_id="term-2"),
    ]


class TestBuildCohort:
    def test_splits_exam_from_continuous_assessment(self, scores: list[ScoreRecord]) -> None:
        cohort = build_cohort(TERM, CLASS, scores, default_scheme())

        math = cohort.subject_totals["s1"]["math"]
        assert (math.ca_total, math.exam_score, math.total) == (35, 50, 85)
        assert math.max_total == 100
        # assessment type match is case-insensitive
        assert cohort.subject_totals["s1"]["english"].exam_score == 40

    def test_ignores_other_classes_and_terms(self, scores: list[ScoreRecord]) -> None:
        cohort = build_cohort(TERM, CLASS, scores, default_scheme())

        assert cohort.scored_students == {"s1", "s2", "s3"}

    def test_subject_positions_share_ties(self, scores: list[ScoreRecord]) -> None:
        cohort = build_cohort(TERM, CLASS, scores, default_scheme())

        assert cohort.subject_positions["math"] == {"s1": 1, "s2": 1, "s3": 3}
        assert cohort.subject_positions["english"] == {"s1": 1, "s2": 2}

    def test_subject_statistics(self, scores: list[ScoreRecord]) -> None:
        cohort = build_cohort(TERM, CLASS, scores, default_scheme())

        math_stats = cohort.subject_statistics["math"]
        assert math_stats.average == 66.67
        assert math_stats.highest == 85
        assert math_stats.lowest == 30

    def test_class_positions_rank_on_term_total(self, scores: list[ScoreRecord]) -> None:
        cohort = build_cohort(TERM, CLASS, scores, default_scheme())

        assert cohort.class_positions == {"s1": 1, "s2": 2, "s3": 3}
        assert cohort.cohort_size == 3

    def test_invalid_stored_score_excludes_student_from_rankings(
        self, scores: list[ScoreRecord]
    ) -> None:
        scores.append(score("s4", "math", "CA1", 50, 40))
        scores.append(score("s4", "math", "EXAM", 60, 60))

        cohort = build_cohort(TERM, CLASS, scores, default_scheme())

        assert "s4" in cohort.invalid_students
        assert "s4" not in cohort.subject_totals
        assert "s4" not in cohort.subject_positions["math"]
        assert cohort.cohort_size == 3
        assert cohort.invalid_students["s4"].reason == (
            ResultComputationErrorCode.SCORE_OUT_OF_RANGE.value
        )


class TestComputeStudent:
    def test_subject_rows_and_term_aggregate(self, scores: list[ScoreRecord]) -> None:
        cohort = build_cohort(TERM, CLASS, scores, default_scheme())

        subjects, term_result, warnings = cohort.compute_student("s2")

        assert warnings == []
        by_subject = {s.subject_id: s for s in subjects}
        assert by_subject["math"].grade == "A1"
        assert by_subject["math"].position == 1
        assert by_subject["english"].grade == "F9"
        assert by_subject["english"].class_average == 50.0

        assert term_result.total_score == 115
        assert term_result.total_obtainable == 200
        assert term_result.subject_count == 2
        assert term_result.average == 57.5
        assert term_result.grade == "C5"
        assert term_result.position == 2
        assert term_result.total_students == 3
        # one failed subject out of two is above the trial ratio
        assert term_result.promotion_status == PromotionStatus.REPEAT

    def test_top_student_is_promoted_with_top_remark(self, scores: list[ScoreRecord]) -> None:
        cohort = build_cohort(TERM, CLASS, scores, default_scheme())

        _, term_result, _ = cohort.compute_student("s1")

        assert term_result.average == 77.5
        assert term_result.promotion_status == PromotionStatus.PROMOTED
        assert "top performers" in term_result.remark

    def test_student_without_scores_fails(self, scores: list[ScoreRecord]) -> None:
        cohort = build_cohort(TERM, CLASS, scores, default_scheme())

        with pytest.raises(StudentComputationError) as exc_info:
            cohort.compute_student("s9")

        assert exc_info.value.reason == ResultComputationErrorCode.NO_SCORES.value
        assert str(exc_info.value).startswith("Student s9:")

    def test_student_with_invalid_score_fails(self, scores: list[ScoreRecord]) -> None:
        scores.append(score("s4", "math", "EXAM", 70, 60))
        cohort = build_cohort(TERM, CLASS, scores, default_scheme())

        with pytest.raises(StudentComputationError) as exc_info:
            cohort.compute_student("s4")

        assert exc_info.value.reason == ResultComputationErrorCode.SCORE_OUT_OF_RANGE.value

    def test_subject_out_of_more_than_hundred_is_graded_on_percentage(self) -> None:
        records = [
            score("s1", "math", "CA1", 20, 20),
            score("s1", "math", "CA2", 20, 20),
            score("s1", "math", "EXAM", 95, 100),
        ]
        cohort = build_cohort(TERM, CLASS, records, default_scheme())

        subjects, term_result, warnings = cohort.compute_student("s1")

        # 135/140 is 96 on a 100 scale
        assert subjects[0].total_score == 135
        assert subjects[0].grade == "A1"
        assert warnings == []
        assert term_result.total_obtainable == 140
        assert term_result.average == 96.0
        assert term_result.grade == "A1"
        assert term_result.promotion_status == PromotionStatus.PROMOTED

    def test_subject_out_of_less_than_hundred_is_graded_on_percentage(self) -> None:
        records = [score("s1", "math", "EXAM", 30, 60)]
        cohort = build_cohort(TERM, CLASS, records, default_scheme())

        subjects, term_result, _ = cohort.compute_student("s1")

        assert subjects[0].total_score == 30
        assert subjects[0].grade == "C6"
        assert term_result.average == 50.0
