"""Events emitted by the result computation service."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field

from schoolhub_core.status_enums import ComputationJobStatus


class ResultsPublishedV1(BaseModel):
    """A class's term results became visible to students and parents."""

    tenant_id: str
    term_id: str
    class_id: str
    student_ids: list[str] = Field(default_factory=list)
    published_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ResultNotificationRequestedV1(BaseModel):
    """
    Request to notify one student's guardians that a result is available.

    Consumed by the communication service, which owns the delivery channel.
    """

    tenant_id: str
    term_id: str
    class_id: str
    student_id: str


class ResultComputationCompletedV1(BaseModel):
    """Terminal outcome of a computation job."""

    job_id: str
    tenant_id: str
    term_id: str
    class_id: str
    status: ComputationJobStatus
    total: int = 0
    processed: int = 0
    failed: int = 0
    errors: list[str] = Field(default_factory=list)
