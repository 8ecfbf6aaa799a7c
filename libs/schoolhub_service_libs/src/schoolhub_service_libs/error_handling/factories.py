"""
Factory functions that build and raise SchoolHubError.

Each factory fills in the generic ErrorCode and the conventional detail keys
for its category; any extra keyword arguments are merged into ``details``.
Business reason codes are passed as ``reason=`` and land in details too.
"""

from __future__ import annotations

from typing import Any, NoReturn
from uuid import UUID

from schoolhub_core.error_enums import ErrorCode

from schoolhub_service_libs.error_handling.error_detail_factory import (
    create_error_detail_with_context,
)
from schoolhub_service_libs.error_handling.schoolhub_error import SchoolHubError


def _raise(
    error_code: ErrorCode,
    service: str,
    operation: str,
    message: str,
    correlation_id: UUID,
    details: dict[str, Any],
) -> NoReturn:
    error_detail = create_error_detail_with_context(
        error_code=error_code,
        message=message,
        service=service,
        operation=operation,
        correlation_id=correlation_id,
        details=details,
    )
    raise SchoolHubError(error_detail)


# =============================================================================
# Generic Error Factories
# =============================================================================


def raise_validation_error(
    service: str,
    operation: str,
    field: str,
    message: str,
    correlation_id: UUID,
    value: Any = None,
    **additional_context: Any,
) -> NoReturn:
    """Raise for invalid input. ``field`` names the offending attribute."""
    details: dict[str, Any] = {"field": field}
    if value is not None:
        details["value"] = value
    details.update(additional_context)
    _raise(ErrorCode.VALIDATION_ERROR, service, operation, message, correlation_id, details)


def raise_resource_not_found(
    service: str,
    operation: str,
    resource_type: str,
    resource_id: str,
    correlation_id: UUID,
    **additional_context: Any,
) -> NoReturn:
    """Raise when a referenced resource does not exist."""
    message = f"{resource_type} with ID '{resource_id}' not found"
    details = {"resource_type": resource_type, "resource_id": resource_id, **additional_context}
    _raise(ErrorCode.RESOURCE_NOT_FOUND, service, operation, message, correlation_id, details)


def raise_configuration_error(
    service: str,
    operation: str,
    config_key: str,
    message: str,
    correlation_id: UUID,
    **additional_context: Any,
) -> NoReturn:
    details = {"config_key": config_key, **additional_context}
    _raise(ErrorCode.CONFIGURATION_ERROR, service, operation, message, correlation_id, details)


def raise_conflict_error(
    service: str,
    operation: str,
    resource_type: str,
    resource_id: str,
    message: str,
    correlation_id: UUID,
    **additional_context: Any,
) -> NoReturn:
    """Raise when a resource is locked or in a state that forbids the operation."""
    details = {"resource_type": resource_type, "resource_id": resource_id, **additional_context}
    _raise(ErrorCode.CONFLICT, service, operation, message, correlation_id, details)


def raise_processing_error(
    service: str,
    operation: str,
    message: str,
    correlation_id: UUID,
    **additional_context: Any,
) -> NoReturn:
    """Raise for internal processing failures."""
    _raise(
        ErrorCode.PROCESSING_ERROR, service, operation, message, correlation_id, additional_context
    )


# =============================================================================
# External Service Error Factories
# =============================================================================


def raise_external_service_error(
    service: str,
    operation: str,
    external_service: str,
    message: str,
    correlation_id: UUID,
    **additional_context: Any,
) -> NoReturn:
    details = {"external_service": external_service, **additional_context}
    _raise(ErrorCode.EXTERNAL_SERVICE_ERROR, service, operation, message, correlation_id, details)


def raise_connection_error(
    service: str,
    operation: str,
    target: str,
    message: str,
    correlation_id: UUID,
    **additional_context: Any,
) -> NoReturn:
    details = {"target": target, **additional_context}
    _raise(ErrorCode.CONNECTION_ERROR, service, operation, message, correlation_id, details)


def raise_timeout_error(
    service: str,
    operation: str,
    timeout_seconds: float,
    message: str,
    correlation_id: UUID,
    **additional_context: Any,
) -> NoReturn:
    details = {"timeout_seconds": timeout_seconds, **additional_context}
    _raise(ErrorCode.TIMEOUT, service, operation, message, correlation_id, details)


def raise_kafka_publish_error(
    service: str,
    operation: str,
    message: str,
    correlation_id: UUID,
    topic: str | None = None,
    **additional_context: Any,
) -> NoReturn:
    details: dict[str, Any] = {}
    if topic is not None:
        details["topic"] = topic
    details.update(additional_context)
    _raise(ErrorCode.KAFKA_PUBLISH_ERROR, service, operation, message, correlation_id, details)
