"""Tests for KafkaBus keyed and batched publishing."""

from __future__ import annotations

import asyncio
from collections.abc import Iterator
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from aiokafka.errors import KafkaTimeoutError
from pydantic import BaseModel
from schoolhub_core.events.envelope import EventEnvelope

from schoolhub_service_libs.kafka_client import KafkaBus, KafkaDeliveryError

TOPIC = "schoolhub.results.notification.requested.v1"


class StudentNotice(BaseModel):
    student_id: str


def envelope(student_id: str) -> EventEnvelope[StudentNotice]:
    return EventEnvelope[StudentNotice](
        event_type=TOPIC,
        source_service="result_computation_service",
        data=StudentNotice(student_id=student_id),
    )


def ack(error: BaseException | None = None) -> asyncio.Future:
    future = asyncio.get_running_loop().create_future()
    if error is None:
        future.set_result(MagicMock(partition=0, offset=1))
    else:
        future.set_exception(error)
    return future


@pytest.fixture
def producer() -> Iterator[MagicMock]:
    with patch("schoolhub_service_libs.kafka_client.AIOKafkaProducer") as producer_cls:
        instance = producer_cls.return_value
        instance.start = AsyncMock()
        instance.stop = AsyncMock()
        instance.send = AsyncMock(side_effect=lambda *args, **kwargs: ack())
        yield instance


@pytest.fixture
def bus(producer: MagicMock) -> KafkaBus:
    return KafkaBus(client_id="result_computation_service-publisher")


class TestKafkaBus:
    @pytest.mark.asyncio
    async def test_publish_starts_producer_lazily_and_encodes_key(
        self, bus: KafkaBus, producer: MagicMock
    ) -> None:
        event = envelope("s1")

        await bus.publish(TOPIC, event, key="jss2-a")

        producer.start.assert_awaited_once()
        args, kwargs = producer.send.call_args
        assert args == (TOPIC,)
        assert kwargs["key"] == b"jss2-a"
        assert kwargs["value"]["data"] == {"student_id": "s1"}
        assert kwargs["value"]["event_id"] == str(event.event_id)

    @pytest.mark.asyncio
    async def test_batch_sends_all_before_awaiting_acks(
        self, bus: KafkaBus, producer: MagicMock
    ) -> None:
        delivered = await bus.publish_batch(
            TOPIC, [envelope("s1"), envelope("s2"), envelope("s3")], key="jss2-a"
        )

        assert delivered == 3
        assert producer.send.await_count == 3
        sent = [c.kwargs["value"]["data"]["student_id"] for c in producer.send.call_args_list]
        assert sent == ["s1", "s2", "s3"]
        assert {c.kwargs["key"] for c in producer.send.call_args_list} == {b"jss2-a"}

    @pytest.mark.asyncio
    async def test_empty_batch_sends_nothing(self, bus: KafkaBus, producer: MagicMock) -> None:
        assert await bus.publish_batch(TOPIC, []) == 0

        producer.start.assert_not_awaited()
        producer.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_acks_report_delivered_count(
        self, bus: KafkaBus, producer: MagicMock
    ) -> None:
        events = [envelope("s1"), envelope("s2"), envelope("s3")]
        outcomes = iter([None, KafkaTimeoutError(), None])
        producer.send.side_effect = lambda *args, **kwargs: ack(next(outcomes))

        with pytest.raises(KafkaDeliveryError) as exc_info:
            await bus.publish_batch(TOPIC, events, key="jss2-a")

        assert exc_info.value.topic == TOPIC
        assert exc_info.value.delivered == 2
        assert exc_info.value.failed_event_ids == [str(events[1].event_id)]

    @pytest.mark.asyncio
    async def test_refused_send_stops_the_batch(
        self, bus: KafkaBus, producer: MagicMock
    ) -> None:
        events = [envelope("s1"), envelope("s2"), envelope("s3")]
        producer.send.side_effect = [ack(), KafkaTimeoutError("buffer full")]

        with pytest.raises(KafkaDeliveryError) as exc_info:
            await bus.publish_batch(TOPIC, events)

        assert producer.send.await_count == 2
        assert exc_info.value.delivered == 1
        assert exc_info.value.failed_event_ids == [str(e.event_id) for e in events[1:]]
        assert "buffer full" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_stop_resets_started_state(self, bus: KafkaBus, producer: MagicMock) -> None:
        await bus.start()
        await bus.start()
        await bus.stop()
        await bus.publish(TOPIC, envelope("s1"))

        assert producer.start.await_count == 2
        producer.stop.assert_awaited_once()
