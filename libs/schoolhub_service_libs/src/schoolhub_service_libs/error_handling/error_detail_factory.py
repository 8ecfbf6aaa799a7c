"""Factory for ErrorDetail instances with automatic context capture."""

from __future__ import annotations

import traceback
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from schoolhub_core.error_enums import ErrorCode
from schoolhub_core.models.error_models import ErrorDetail


def create_error_detail_with_context(
    error_code: ErrorCode,
    message: str,
    service: str,
    operation: str,
    correlation_id: UUID | None = None,
    details: dict[str, Any] | None = None,
    capture_stack: bool = True,
) -> ErrorDetail:
    """
    Create an ErrorDetail, generating a correlation ID when none is given.

    When ``capture_stack`` is set the current stack (minus this frame) is
    recorded in ``stack_trace``.
    """
    stack_trace = None
    if capture_stack:
        stack_trace = "".join(traceback.format_stack()[:-1])

    return ErrorDetail(
        error_code=error_code,
        message=message,
        correlation_id=correlation_id or uuid4(),
        timestamp=datetime.now(UTC),
        service=service,
        operation=operation,
        details=details or {},
        stack_trace=stack_trace,
    )
