"""
Core exception class for the SchoolHub platform.

SchoolHubError wraps an immutable ErrorDetail so that every failure carries
the same structured context (code, service, operation, correlation ID)
regardless of where it is raised.
"""

from __future__ import annotations

from typing import Any

from schoolhub_core.models.error_models import ErrorDetail


class SchoolHubError(Exception):
    """
    Structured exception carrying an ErrorDetail.

    Raised through the factory functions in
    ``schoolhub_service_libs.error_handling.factories``.
    """

    def __init__(self, error_detail: ErrorDetail) -> None:
        super().__init__(error_detail.message)
        self.error_detail = error_detail

    @property
    def correlation_id(self) -> str:
        return str(self.error_detail.correlation_id)

    @property
    def error_code(self) -> str:
        return self.error_detail.error_code.value

    @property
    def service(self) -> str:
        return self.error_detail.service

    @property
    def operation(self) -> str:
        return self.error_detail.operation

    @property
    def reason(self) -> str | None:
        """Business reason code carried in details, if any."""
        reason = self.error_detail.details.get("reason")
        return str(reason) if reason is not None else None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses and event payloads."""
        return self.error_detail.model_dump(mode="json")

    def add_detail(self, key: str, value: Any) -> SchoolHubError:
        """Return a new error with an extra detail entry; the original is unchanged."""
        new_details = {**self.error_detail.details, key: value}
        return SchoolHubError(self.error_detail.model_copy(update={"details": new_details}))

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.error_detail.message}"

    def __repr__(self) -> str:
        return (
            f"SchoolHubError(code={self.error_code}, "
            f"message={self.error_detail.message!r}, "
            f"service={self.service}, operation={self.operation}, "
            f"correlation_id={self.correlation_id})"
        )
