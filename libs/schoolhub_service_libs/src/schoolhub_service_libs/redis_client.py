"""
Redis client wrapper for SchoolHub services.

Provides the Redis operations used for job bookkeeping, the work queue and
advisory locks. Follows the same lifecycle management pattern as KafkaBus.
"""

from __future__ import annotations

import os
from typing import Any

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from schoolhub_service_libs.logging_utils import create_service_logger

logger = create_service_logger("redis-client")

REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379")


class RedisClient:
    """SchoolHub Redis client with lifecycle management."""

    def __init__(self, *, client_id: str, redis_url: str = REDIS_URL):
        self.redis_url = redis_url
        self.client_id = client_id
        self.client = aioredis.from_url(
            self.redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
        self._started = False

    async def start(self) -> None:
        """Initialize Redis connection with health verification."""
        if not self._started:
            try:
                await self.client.ping()
                self._started = True
                logger.info(f"Redis client '{self.client_id}' connected to {self.redis_url}")
            except RedisConnectionError as e:
                logger.error(f"Redis client '{self.client_id}' failed to connect: {e}")
                raise

    async def stop(self) -> None:
        """Clean shutdown of Redis connection."""
        if self._started:
            try:
                await self.client.aclose()
                self._started = False
                logger.info(f"Redis client '{self.client_id}' disconnected")
            except Exception as e:
                logger.error(
                    f"Error stopping Redis client '{self.client_id}': {e}",
                    exc_info=True,
                )

    async def _ensure_started(self) -> None:
        if not self._started:
            logger.warning(f"Redis client '{self.client_id}' not started. Attempting to start.")
            await self.start()
            if not self._started:
                raise RuntimeError(f"Redis client '{self.client_id}' is not running.")

    async def ping(self) -> bool:
        """Health check; False on any connection problem."""
        try:
            await self._ensure_started()
            return bool(await self.client.ping())
        except Exception as e:
            logger.error(f"Error in Redis PING by '{self.client_id}': {e}", exc_info=True)
            return False

    async def set_if_not_exists(self, key: str, value: Any, ttl_seconds: int | None = None) -> bool:
        """
        Atomic SET if NOT EXISTS.

        Returns:
            True if key was set, False if key already exists
        """
        await self._ensure_started()
        try:
            success = bool(await self.client.set(key, value, ex=ttl_seconds, nx=True))
            logger.debug(
                f"Redis SETNX by '{self.client_id}': key='{key}' "
                f"ttl={ttl_seconds}s result={'SET' if success else 'EXISTS'}",
            )
            return success
        except RedisTimeoutError:
            logger.error(f"Timeout on Redis SETNX by '{self.client_id}' for key '{key}'")
            raise

    async def get(self, key: str) -> str | None:
        await self._ensure_started()
        try:
            value = await self.client.get(key)
            return str(value) if value is not None else None
        except RedisTimeoutError:
            logger.error(f"Timeout on Redis GET by '{self.client_id}' for key '{key}'")
            raise

    async def setex(self, key: str, ttl_seconds: int, value: str) -> bool:
        await self._ensure_started()
        try:
            return bool(await self.client.setex(key, ttl_seconds, value))
        except RedisTimeoutError:
            logger.error(f"Timeout on Redis SETEX by '{self.client_id}' for key '{key}'")
            raise

    async def delete_key(self, key: str) -> int:
        """Delete a key; returns the number of keys deleted (0 or 1)."""
        await self._ensure_started()
        deleted_count = await self.client.delete(key)
        logger.debug(f"Redis DELETE by '{self.client_id}': key='{key}' deleted={deleted_count}")
        return int(deleted_count)

    async def rpush(self, key: str, *values: str) -> int:
        """Append values to a list; returns the new length."""
        await self._ensure_started()
        return int(await self.client.rpush(key, *values))

    async def blpop(self, keys: list[str], timeout: float = 0) -> tuple[str, str] | None:
        """
        Pop the first element of the first non-empty list, blocking up to ``timeout``.

        Returns:
            Tuple of (key, value), or None on timeout
        """
        await self._ensure_started()
        result = await self.client.blpop(keys, timeout=timeout)
        if result:
            key, value = result
            return (key, value)
        return None

    async def register_script(self, script_body: str) -> str:
        """Load a Lua script and return its SHA1 for EVALSHA."""
        await self._ensure_started()
        sha = await self.client.script_load(script_body)
        logger.debug(f"Lua script registered by '{self.client_id}' with SHA: {sha}")
        return str(sha)

    async def execute_script(self, sha: str, keys: list[str], args: list[Any]) -> Any:
        """Execute a pre-loaded Lua script by its SHA."""
        await self._ensure_started()
        return await self.client.evalsha(sha, len(keys), *keys, *args)
