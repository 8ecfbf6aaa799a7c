"""Mapping between ORM rows and computation records."""

from __future__ import annotations

from services.result_computation_service.computation_core.result_records import (
    ScoreRecord,
    StoredSnapshot,
    StoredTermResult,
    SubjectResultValues,
    TermResultValues,
)
from services.result_computation_service.models_db import ResultSnapshot, ScoreEntry, TermResult


class ResultRecordMappers:
    """Converts rows to storage-agnostic records and writes computed values onto rows."""

    @staticmethod
    def score_record(row: ScoreEntry) -> ScoreRecord:
        return ScoreRecord(
            student_id=row.student_id,
            class_id=row.class_id,
            subject_id=row.subject_id,
            term_id=row.term_id,
            assessment_type=row.assessment_type,
            score=row.score,
            max_score=row.max_score,
            review_status=row.review_status,
        )

    @staticmethod
    def snapshot_values(row: ResultSnapshot) -> SubjectResultValues:
        return SubjectResultValues(
            student_id=row.student_id,
            term_id=row.term_id,
            class_id=row.class_id,
            subject_id=row.subject_id,
            ca_total=row.ca_total,
            exam_score=row.exam_score,
            total_score=row.total_score,
            grade=row.grade,
            remark=row.remark,
            grade_points=row.grade_points,
            class_average=row.class_average,
            highest=row.highest,
            lowest=row.lowest,
            position=row.position,
        )

    @classmethod
    def stored_snapshot(cls, row: ResultSnapshot) -> StoredSnapshot:
        return StoredSnapshot(
            values=cls.snapshot_values(row),
            status=row.status,
            computed_at=row.computed_at,
            published_at=row.published_at,
        )

    @staticmethod
    def apply_snapshot_values(row: ResultSnapshot, values: SubjectResultValues) -> None:
        row.class_id = values.class_id
        row.ca_total = values.ca_total
        row.exam_score = values.exam_score
        row.total_score = values.total_score
        row.grade = values.grade
        row.remark = values.remark
        row.grade_points = values.grade_points
        row.class_average = values.class_average
        row.highest = values.highest
        row.lowest = values.lowest
        row.position = values.position

    @staticmethod
    def term_result_values(row: TermResult) -> TermResultValues:
        return TermResultValues(
            student_id=row.student_id,
            term_id=row.term_id,
            class_id=row.class_id,
            total_score=row.total_score,
            total_obtainable=row.total_obtainable,
            subject_count=row.subject_count,
            average=row.average,
            position=row.position,
            grade=row.grade,
            promotion_status=row.promotion_status,
            remark=row.teacher_remark,
            total_students=row.total_students,
        )

    @classmethod
    def stored_term_result(cls, row: TermResult) -> StoredTermResult:
        return StoredTermResult(
            values=cls.term_result_values(row),
            status=row.status,
            computed_at=row.computed_at,
            published_at=row.published_at,
        )

    @staticmethod
    def apply_term_result_values(row: TermResult, values: TermResultValues) -> None:
        row.class_id = values.class_id
        row.total_score = values.total_score
        row.total_obtainable = values.total_obtainable
        row.subject_count = values.subject_count
        row.average = values.average
        row.position = values.position
        row.grade = values.grade
        row.promotion_status = values.promotion_status
        row.teacher_remark = values.remark
        row.total_students = values.total_students
