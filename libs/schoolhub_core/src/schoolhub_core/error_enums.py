"""
schoolhub_core.error_enums - Centralized error code definitions.
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    KAFKA_PUBLISH_ERROR = "KAFKA_PUBLISH_ERROR"
    CONFLICT = "CONFLICT"  # Resource locked or in an incompatible state

    # Generic external service errors (can be used by any service)
    TIMEOUT = "TIMEOUT"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    PROCESSING_ERROR = "PROCESSING_ERROR"  # Internal processing failures


class ResultComputationErrorCode(str, Enum):
    """
    Business logic specific error codes for result computation.

    Carried in ErrorDetail.details["reason"] alongside a generic ErrorCode.
    """

    SCORE_OUT_OF_RANGE = "SCORE_OUT_OF_RANGE"
    NON_INTEGRAL_SCORE = "NON_INTEGRAL_SCORE"
    NO_SCORES = "NO_SCORES"
    STUDENT_NOT_IN_CLASS = "STUDENT_NOT_IN_CLASS"
    NO_COMPUTED_RESULTS = "NO_COMPUTED_RESULTS"
    NO_PUBLISHED_RESULTS = "NO_PUBLISHED_RESULTS"
    JOB_NOT_FOUND = "JOB_NOT_FOUND"
    COMPUTATION_IN_PROGRESS = "COMPUTATION_IN_PROGRESS"
    INVALID_GRADING_SCHEME = "INVALID_GRADING_SCHEME"
