"""
schoolhub_core.event_enums - Enums and helpers for the event-driven architecture.
"""

from __future__ import annotations

from enum import Enum


class ProcessingEvent(str, Enum):
    # -------------  Result computation events  -------------#
    RESULT_COMPUTATION_COMPLETED = "result.computation.completed"
    RESULTS_PUBLISHED = "results.published"
    RESULT_NOTIFICATION_REQUESTED = "result.notification.requested"


# Private mapping for topic_name() function
_TOPIC_MAPPING = {
    ProcessingEvent.RESULT_COMPUTATION_COMPLETED: "schoolhub.results.computation.completed.v1",
    ProcessingEvent.RESULTS_PUBLISHED: "schoolhub.results.published.v1",
    ProcessingEvent.RESULT_NOTIFICATION_REQUESTED: "schoolhub.results.notification.requested.v1",
}


def topic_name(event: ProcessingEvent) -> str:
    """
    Convert a ProcessingEvent to its corresponding Kafka topic name.
    """
    if event not in _TOPIC_MAPPING:
        mapped_events_summary = "\n".join(
            [f"- {e.name} ({e.value}) -> '{t}'" for e, t in _TOPIC_MAPPING.items()],
        )
        raise ValueError(
            f"Event '{event.name} ({event.value})' does not have an explicit topic mapping. "
            f"All events intended for Kafka must have deliberate topic contracts defined. "
            f"Currently mapped events:\n{mapped_events_summary}",
        )
    return _TOPIC_MAPPING[event]
