"""Database models for Result Computation Service."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from schoolhub_core.status_enums import (
    PromotionStatus,
    ResultStatus,
    ScoreReviewStatus,
    TermResultStatus,
)
from sqlalchemy import DateTime, Float, Index, Integer, String, Text, UniqueConstraint, func
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all database models."""

    pass


class ScoreEntry(Base):
    """One raw assessment score; re-submission overwrites, never appends."""

    __tablename__ = "score_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String(255), nullable=False)
    student_id: Mapped[str] = mapped_column(String(255), nullable=False)
    class_id: Mapped[str] = mapped_column(String(255), nullable=False)
    subject_id: Mapped[str] = mapped_column(String(255), nullable=False)
    term_id: Mapped[str] = mapped_column(String(255), nullable=False)
    assessment_type: Mapped[str] = mapped_column(String(50), nullable=False)

    score: Mapped[int] = mapped_column(Integer, nullable=False)
    max_score: Mapped[int] = mapped_column(Integer, nullable=False)

    entered_by: Mapped[str] = mapped_column(String(255), nullable=False)
    entered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    review_status: Mapped[ScoreReviewStatus] = mapped_column(
        SQLAlchemyEnum(ScoreReviewStatus), nullable=False, default=ScoreReviewStatus.PENDING
    )

    __table_args__ = (
        UniqueConstraint(
            "tenant_id",
            "student_id",
            "class_id",
            "subject_id",
            "term_id",
            "assessment_type",
            name="uq_score_entry_assessment",
        ),
        Index("idx_score_class_term", "tenant_id", "term_id", "class_id"),
    )


class GradingRuleRecord(Base):
    """One band of a tenant-configured grading scheme."""

    __tablename__ = "grading_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    min_score: Mapped[int] = mapped_column(Integer, nullable=False)
    max_score: Mapped[int] = mapped_column(Integer, nullable=False)
    grade: Mapped[str] = mapped_column(String(10), nullable=False)
    remark: Mapped[str] = mapped_column(String(100), nullable=False)
    points: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    __table_args__ = (UniqueConstraint("tenant_id", "grade", name="uq_grading_rule_grade"),)


class ResultSnapshot(Base):
    """Computed per-subject result; recomputation updates the row in place."""

    __tablename__ = "result_snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String(255), nullable=False)
    student_id: Mapped[str] = mapped_column(String(255), nullable=False)
    term_id: Mapped[str] = mapped_column(String(255), nullable=False)
    class_id: Mapped[str] = mapped_column(String(255), nullable=False)
    subject_id: Mapped[str] = mapped_column(String(255), nullable=False)

    ca_total: Mapped[int] = mapped_column(Integer, nullable=False)
    exam_score: Mapped[int] = mapped_column(Integer, nullable=False)
    total_score: Mapped[int] = mapped_column(Integer, nullable=False)
    grade: Mapped[str] = mapped_column(String(10), nullable=False)
    remark: Mapped[str] = mapped_column(String(100), nullable=False)
    grade_points: Mapped[float] = mapped_column(Float, nullable=False)
    class_average: Mapped[float] = mapped_column(Float, nullable=False)
    highest: Mapped[float] = mapped_column(Float, nullable=False)
    lowest: Mapped[float] = mapped_column(Float, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[ResultStatus] = mapped_column(
        SQLAlchemyEnum(ResultStatus), nullable=False, default=ResultStatus.COMPUTED
    )
    computed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "student_id", "term_id", "subject_id", name="uq_snapshot_subject"
        ),
        Index("idx_snapshot_class_term", "tenant_id", "term_id", "class_id"),
    )


class TermResult(Base):
    """A student's term aggregate; published only through the publish workflow."""

    __tablename__ = "term_results"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String(255), nullable=False)
    student_id: Mapped[str] = mapped_column(String(255), nullable=False)
    term_id: Mapped[str] = mapped_column(String(255), nullable=False)
    class_id: Mapped[str] = mapped_column(String(255), nullable=False)

    total_score: Mapped[int] = mapped_column(Integer, nullable=False)
    total_obtainable: Mapped[int] = mapped_column(Integer, nullable=False)
    subject_count: Mapped[int] = mapped_column(Integer, nullable=False)
    average: Mapped[float] = mapped_column(Float, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    grade: Mapped[str] = mapped_column(String(10), nullable=False)
    promotion_status: Mapped[PromotionStatus] = mapped_column(
        SQLAlchemyEnum(PromotionStatus), nullable=False
    )
    teacher_remark: Mapped[str] = mapped_column(Text, nullable=False)
    total_students: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[TermResultStatus] = mapped_column(
        SQLAlchemyEnum(TermResultStatus), nullable=False, default=TermResultStatus.DRAFT
    )
    computed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        UniqueConstraint("tenant_id", "student_id", "term_id", name="uq_term_result_student"),
        Index("idx_term_result_class_term", "tenant_id", "term_id", "class_id"),
    )
