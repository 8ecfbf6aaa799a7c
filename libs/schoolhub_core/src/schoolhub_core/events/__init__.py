"""Event contracts for the SchoolHub platform."""

from .envelope import EventEnvelope
from .result_events import (
    ResultComputationCompletedV1,
    ResultNotificationRequestedV1,
    ResultsPublishedV1,
)

__all__ = [
    "EventEnvelope",
    "ResultComputationCompletedV1",
    "ResultNotificationRequestedV1",
    "ResultsPublishedV1",
]
