"""
Job bookkeeping model for the asynchronous computation dispatcher.

A ComputationJob lives only in the job store (Redis or in-process) for
JOB_STATE_TTL_SECONDS; it is never written to the results database.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field
from schoolhub_core.status_enums import ComputationJobStatus

from services.result_computation_service.models_api import ComputationProgress, ComputationRequest


def _now() -> datetime:
    return datetime.now(UTC)


class ComputationJob(BaseModel):
    """A submitted computation and its progress."""

    job_id: str = Field(default_factory=lambda: str(uuid4()))
    request: ComputationRequest
    correlation_id: UUID = Field(default_factory=uuid4)
    status: ComputationJobStatus = Field(default=ComputationJobStatus.PENDING)
    total: int = 0
    processed: int = 0
    failed: int = 0
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    attempts: int = Field(default=0, ge=0)
    max_attempts: int = Field(default=3, ge=1)
    last_error: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in ComputationJobStatus.terminal()

    def to_progress(self) -> ComputationProgress:
        return ComputationProgress(
            job_id=self.job_id,
            status=self.status,
            total=self.total,
            processed=self.processed,
            failed=self.failed,
            errors=list(self.errors),
            warnings=list(self.warnings),
            attempts=self.attempts,
        )
