"""
SchoolHub Common Core Package.
"""

from .config_enums import Environment, JobStoreBackend
from .error_enums import ErrorCode, ResultComputationErrorCode
from .event_enums import ProcessingEvent, topic_name
from .events.envelope import EventEnvelope
from .events.result_events import (
    ResultComputationCompletedV1,
    ResultNotificationRequestedV1,
    ResultsPublishedV1,
)
from .grading_schemes import GradeRule, GradingScheme, default_scheme, get_scheme
from .models.error_models import ErrorDetail
from .status_enums import (
    ComputationJobStatus,
    PromotionStatus,
    ResultStatus,
    ScoreReviewStatus,
    TermResultStatus,
)

__all__ = [
    "ComputationJobStatus",
    "Environment",
    "ErrorCode",
    "ErrorDetail",
    "EventEnvelope",
    "GradeRule",
    "GradingScheme",
    "JobStoreBackend",
    "ProcessingEvent",
    "PromotionStatus",
    "ResultComputationCompletedV1",
    "ResultComputationErrorCode",
    "ResultNotificationRequestedV1",
    "ResultStatus",
    "ResultsPublishedV1",
    "ScoreReviewStatus",
    "TermResultStatus",
    "default_scheme",
    "get_scheme",
    "topic_name",
]
