"""Event publisher implementation for Result Computation Service."""

from __future__ import annotations

from typing import Any, NoReturn, Sequence
from uuid import UUID

from schoolhub_core.event_enums import ProcessingEvent, topic_name
from schoolhub_core.events.envelope import EventEnvelope
from schoolhub_core.events.result_events import (
    ResultComputationCompletedV1,
    ResultNotificationRequestedV1,
    ResultsPublishedV1,
)
from schoolhub_service_libs.error_handling import raise_kafka_publish_error
from schoolhub_service_libs.kafka_client import KafkaDeliveryError
from schoolhub_service_libs.logging_utils import create_service_logger
from schoolhub_service_libs.protocols import KafkaPublisherProtocol

from services.result_computation_service.config import Settings
from services.result_computation_service.protocols import ResultEventPublisherProtocol

logger = create_service_logger("result_computation_service.implementations.event_publisher")


class ResultEventPublisherImpl(ResultEventPublisherProtocol):
    """Publishes result events through KafkaBus, keyed by class_id."""

    def __init__(self, kafka_bus: KafkaPublisherProtocol, settings: Settings):
        self.kafka_bus = kafka_bus
        self.settings = settings

    async def publish_results_published(
        self, event_data: ResultsPublishedV1, correlation_id: UUID
    ) -> None:
        topic = topic_name(ProcessingEvent.RESULTS_PUBLISHED)
        envelope = EventEnvelope[ResultsPublishedV1](
            event_type=topic,
            source_service=self.settings.SERVICE_NAME,
            correlation_id=correlation_id,
            data=event_data,
            metadata={},
        )
        await self._send(topic, envelope, event_data.class_id, "publish_results_published")
        logger.info(
            "ResultsPublishedV1 event published",
            term_id=event_data.term_id,
            class_id=event_data.class_id,
            student_count=len(event_data.student_ids),
            correlation_id=str(correlation_id),
        )

    async def publish_notifications_requested(
        self, events: Sequence[ResultNotificationRequestedV1], correlation_id: UUID
    ) -> int:
        """One notification request per student, sent as a single keyed batch."""
        if not events:
            return 0
        topic = topic_name(ProcessingEvent.RESULT_NOTIFICATION_REQUESTED)
        envelopes = [
            EventEnvelope[ResultNotificationRequestedV1](
                event_type=topic,
                source_service=self.settings.SERVICE_NAME,
                correlation_id=correlation_id,
                data=event_data,
                metadata={},
            )
            for event_data in events
        ]
        class_id = events[0].class_id
        try:
            delivered = await self.kafka_bus.publish_batch(
                topic=topic, envelopes=envelopes, key=class_id
            )
        except KafkaDeliveryError as e:
            self._raise_publish_error(
                topic, correlation_id, e, "publish_notifications_requested", delivered=e.delivered
            )
        except Exception as e:
            self._raise_publish_error(
                topic, correlation_id, e, "publish_notifications_requested", delivered=0
            )
        logger.info(
            "ResultNotificationRequestedV1 events published",
            class_id=class_id,
            count=delivered,
            correlation_id=str(correlation_id),
        )
        return delivered

    async def publish_computation_completed(
        self, event_data: ResultComputationCompletedV1, correlation_id: UUID
    ) -> None:
        topic = topic_name(ProcessingEvent.RESULT_COMPUTATION_COMPLETED)
        envelope = EventEnvelope[ResultComputationCompletedV1](
            event_type=topic,
            source_service=self.settings.SERVICE_NAME,
            correlation_id=correlation_id,
            data=event_data,
            metadata={"job_id": event_data.job_id},
        )
        await self._send(topic, envelope, event_data.class_id, "publish_computation_completed")
        logger.info(
            "ResultComputationCompletedV1 event published",
            job_id=event_data.job_id,
            status=event_data.status.value,
            correlation_id=str(correlation_id),
        )

    async def _send(
        self, topic: str, envelope: EventEnvelope[Any], key: str, operation: str
    ) -> None:
        try:
            await self.kafka_bus.publish(topic=topic, envelope=envelope, key=key)
        except Exception as e:
            self._raise_publish_error(topic, envelope.correlation_id, e, operation)

    def _raise_publish_error(
        self, topic: str, correlation_id: UUID, error: Exception, operation: str, **context: Any
    ) -> NoReturn:
        logger.error(
            "Failed to publish event",
            topic=topic,
            error=str(error),
            correlation_id=str(correlation_id),
            exc_info=True,
        )
        raise_kafka_publish_error(
            service=self.settings.SERVICE_NAME,
            operation=operation,
            message=f"Failed to publish to {topic}: {error}",
            correlation_id=correlation_id,
            topic=topic,
            **context,
        )
