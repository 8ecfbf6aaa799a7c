"""Request and response models for the operations this service exposes."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field
from schoolhub_core.status_enums import ComputationJobStatus, PromotionStatus


class ComputationRequest(BaseModel):
    """Compute results for one class in one term, optionally for a subset of students."""

    tenant_id: str = Field(min_length=1)
    term_id: str = Field(min_length=1)
    class_id: str = Field(min_length=1)
    student_ids: Optional[list[str]] = Field(
        default=None, description="Restrict writes to these students; rankings still use the class"
    )


class ComputationProgress(BaseModel):
    """Counters and state of a computation, as returned to pollers."""

    job_id: Optional[str] = None
    status: ComputationJobStatus
    total: int = 0
    processed: int = 0
    failed: int = 0
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    attempts: int = 0


class ScoreEntryInput(BaseModel):
    student_id: str = Field(min_length=1)
    subject_id: str = Field(min_length=1)
    assessment_type: str = Field(min_length=1, description='e.g. "CA1", "CA2", "EXAM"')
    score: int | float
    max_score: int = Field(gt=0, le=100)


class BulkScoreEntryRequest(BaseModel):
    """Scores entered for one class in one term, all-or-nothing."""

    term_id: str = Field(min_length=1)
    class_id: str = Field(min_length=1)
    entries: list[ScoreEntryInput] = Field(min_length=1)


class ScoreEntryResult(BaseModel):
    recorded: int
    term_id: str
    class_id: str


class ClassStatisticsResponse(BaseModel):
    subject_id: str
    average: float
    highest: float
    lowest: float
    student_count: int


class TermStatisticsResponse(BaseModel):
    total_students: int
    average: float
    highest: float
    lowest: float


class BroadsheetSubjectCell(BaseModel):
    ca: int
    exam: int
    total: int
    grade: str
    position: int


class BroadsheetRow(BaseModel):
    student_id: str
    subjects: dict[str, BroadsheetSubjectCell]
    total_score: int
    average: float
    position: int
    grade: str
    promotion_status: PromotionStatus


class BroadsheetResponse(BaseModel):
    term_id: str
    class_id: str
    subjects: list[str]
    rows: list[BroadsheetRow]


class PublicationResult(BaseModel):
    term_id: str
    class_id: str
    student_ids: list[str]
    changed_at: datetime
