"""Structured error handling for SchoolHub services."""

from .error_detail_factory import create_error_detail_with_context
from .factories import (
    raise_configuration_error,
    raise_conflict_error,
    raise_connection_error,
    raise_external_service_error,
    raise_kafka_publish_error,
    raise_processing_error,
    raise_resource_not_found,
    raise_timeout_error,
    raise_validation_error,
)
from .schoolhub_error import SchoolHubError

__all__ = [
    "SchoolHubError",
    "create_error_detail_with_context",
    "raise_configuration_error",
    "raise_conflict_error",
    "raise_connection_error",
    "raise_external_service_error",
    "raise_kafka_publish_error",
    "raise_processing_error",
    "raise_resource_not_found",
    "raise_timeout_error",
    "raise_validation_error",
]
