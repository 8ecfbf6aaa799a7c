"""
Shared protocol definitions for schoolhub_service_libs.

Services depend on these interfaces rather than on RedisClient/KafkaBus
directly, so tests can substitute AsyncMock(spec=...) doubles.
"""

from __future__ import annotations

from typing import Any, Protocol, Sequence, TypeVar

from pydantic import BaseModel
from schoolhub_core.events.envelope import EventEnvelope

T_EventPayload = TypeVar("T_EventPayload", bound=BaseModel)

__all__ = [
    "KafkaPublisherProtocol",
    "RedisClientProtocol",
    "T_EventPayload",
]


class RedisClientProtocol(Protocol):
    """Redis operations used for job bookkeeping, queueing and locks."""

    async def set_if_not_exists(
        self,
        key: str,
        value: Any,
        ttl_seconds: int | None = None,
    ) -> bool:
        """Atomic SET NX; True if the key was set, False if it already existed."""
        ...

    async def get(self, key: str) -> str | None: ...

    async def setex(self, key: str, ttl_seconds: int, value: str) -> bool: ...

    async def delete_key(self, key: str) -> int: ...

    async def rpush(self, key: str, *values: str) -> int: ...

    async def blpop(self, keys: list[str], timeout: float = 0) -> tuple[str, str] | None:
        """Blocking pop; None on timeout."""
        ...

    async def register_script(self, script_body: str) -> str: ...

    async def execute_script(self, sha: str, keys: list[str], args: list[Any]) -> Any: ...

    async def ping(self) -> bool: ...


class KafkaPublisherProtocol(Protocol):
    """Protocol for Kafka publishing operations."""

    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    async def publish(
        self,
        topic: str,
        envelope: EventEnvelope[T_EventPayload],
        key: str | None = None,
    ) -> None:
        """
        Publish an event envelope to a topic.

        Args:
            topic: Kafka topic name
            envelope: EventEnvelope containing the event data
            key: Optional partition key
        """
        ...

    async def publish_batch(
        self,
        topic: str,
        envelopes: Sequence[EventEnvelope[T_EventPayload]],
        key: str | None = None,
    ) -> int:
        """
        Publish several envelopes to one topic under one partition key.

        Returns the number delivered; raises KafkaDeliveryError (carrying the
        delivered count) when any envelope is not acknowledged.
        """
        ...
