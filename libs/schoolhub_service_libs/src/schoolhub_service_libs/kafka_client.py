"""
Kafka producer for SchoolHub services, built on aiokafka.

Events are keyed so that everything about one class lands on one partition
and is consumed in publish order. ``publish_batch`` pipelines a fan-out
(one event per student) through the producer and reports how many events
were delivered when some of them fail.
"""

from __future__ import annotations

import asyncio
import json
import os
from typing import Sequence, TypeVar

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaConnectionError, KafkaError
from pydantic import BaseModel
from schoolhub_core.events.envelope import EventEnvelope

from .logging_utils import create_service_logger

logger = create_service_logger("kafka-client")

KAFKA_BOOTSTRAP_SERVERS = os.getenv("KAFKA_BOOTSTRAP_SERVERS", "kafka:9092")

T_EventPayload = TypeVar("T_EventPayload", bound=BaseModel)


class KafkaDeliveryError(Exception):
    """Some events of a publish call were not acknowledged by the broker."""

    def __init__(self, topic: str, delivered: int, failed_event_ids: list[str], cause: str):
        super().__init__(
            f"{len(failed_event_ids)} event(s) to {topic} not delivered "
            f"({delivered} delivered): {cause}"
        )
        self.topic = topic
        self.delivered = delivered
        self.failed_event_ids = failed_event_ids


class KafkaBus:
    def __init__(
        self,
        *,
        client_id: str,
        bootstrap_servers: str = KAFKA_BOOTSTRAP_SERVERS,
        request_timeout_ms: int = 30000,
        linger_ms: int = 0,
    ):
        self.bootstrap_servers = bootstrap_servers
        self.client_id = client_id
        self.producer = AIOKafkaProducer(
            bootstrap_servers=self.bootstrap_servers,
            client_id=self.client_id,
            value_serializer=lambda v: json.dumps(v).encode("utf-8"),
            acks="all",
            enable_idempotence=True,
            request_timeout_ms=request_timeout_ms,
            linger_ms=linger_ms,
        )
        self._started = False

    async def start(self) -> None:
        if self._started:
            return
        try:
            await self.producer.start()
        except KafkaConnectionError as e:
            logger.error("Kafka producer failed to start", client_id=self.client_id, error=str(e))
            raise
        self._started = True
        logger.info("Kafka producer started", client_id=self.client_id)

    async def stop(self) -> None:
        # Stop unconditionally so a never-started producer releases its resources
        try:
            await self.producer.stop()
        except KafkaError as e:
            logger.error(
                "Error stopping Kafka producer", client_id=self.client_id, error=str(e)
            )
        self._started = False
        logger.info("Kafka producer stopped", client_id=self.client_id)

    async def publish(
        self,
        topic: str,
        envelope: EventEnvelope[T_EventPayload],
        key: str | None = None,
    ) -> None:
        """
        Send one event and wait for the broker acknowledgement.

        Raises:
            KafkaDeliveryError: If the event was not acknowledged
        """
        await self.publish_batch(topic, [envelope], key=key)

    async def publish_batch(
        self,
        topic: str,
        envelopes: Sequence[EventEnvelope[T_EventPayload]],
        key: str | None = None,
    ) -> int:
        """
        Send events to one topic under one partition key and wait for all acks.

        All events are handed to the producer before any acknowledgement is
        awaited. With one key and an idempotent producer they keep their order.

        Returns:
            Number of events delivered (always ``len(envelopes)``)

        Raises:
            KafkaDeliveryError: If any event was not acknowledged; carries
                the delivered count and the ids of the events that were not
        """
        if not envelopes:
            return 0
        await self._ensure_started()
        key_bytes = key.encode("utf-8") if key else None

        pending: list[tuple[EventEnvelope[T_EventPayload], asyncio.Future]] = []
        cause = ""
        for envelope in envelopes:
            try:
                future = await self.producer.send(
                    topic, value=envelope.model_dump(mode="json"), key=key_bytes
                )
            except KafkaError as e:
                # Nothing after a refused send is attempted
                cause = str(e)
                break
            pending.append((envelope, future))

        outcomes = await asyncio.gather(*(f for _, f in pending), return_exceptions=True)
        failed_event_ids = [
            str(envelope.event_id)
            for (envelope, _), outcome in zip(pending, outcomes)
            if isinstance(outcome, BaseException)
        ]
        failed_event_ids.extend(str(e.event_id) for e in envelopes[len(pending) :])
        if not cause:
            cause = next((str(o) for o in outcomes if isinstance(o, BaseException)), "")

        delivered = len(envelopes) - len(failed_event_ids)
        if failed_event_ids:
            logger.error(
                "Kafka delivery failed",
                client_id=self.client_id,
                topic=topic,
                key=key,
                delivered=delivered,
                failed=len(failed_event_ids),
                error=cause,
            )
            raise KafkaDeliveryError(topic, delivered, failed_event_ids, cause)

        logger.debug(
            "Events published",
            client_id=self.client_id,
            topic=topic,
            key=key,
            count=delivered,
        )
        return delivered

    async def _ensure_started(self) -> None:
        if not self._started:
            logger.warning("Kafka producer not started, starting", client_id=self.client_id)
            await self.start()
