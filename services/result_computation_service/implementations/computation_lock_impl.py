"""
Advisory lock per (tenant, term, class).

A computation holds the lock for the whole attempt; score entry refuses to
write while it is held. Locks carry an owner token and expire after a TTL so
a crashed worker cannot block a class forever.
"""

from __future__ import annotations

import time
from typing import Dict, Optional, Tuple

from schoolhub_service_libs.logging_utils import create_service_logger
from schoolhub_service_libs.protocols import RedisClientProtocol

from services.result_computation_service.protocols import ComputationLockProtocol

logger = create_service_logger("result_computation_service.computation_lock")

LOCK_KEY_PREFIX = "result_computation:lock"

# Delete the key only when it still holds the caller's token
RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


def computation_lock_key(tenant_id: str, term_id: str, class_id: str) -> str:
    return f"{LOCK_KEY_PREFIX}:{tenant_id}:{term_id}:{class_id}"


class RedisComputationLockImpl(ComputationLockProtocol):
    """SET NX EX lock with compare-and-delete release."""

    def __init__(self, redis_client: RedisClientProtocol):
        self.redis = redis_client
        self._release_sha: Optional[str] = None

    async def acquire(self, key: str, token: str, ttl_seconds: int) -> bool:
        acquired = await self.redis.set_if_not_exists(key, token, ttl_seconds=ttl_seconds)
        logger.debug("Lock acquire attempted", key=key, acquired=acquired)
        return acquired

    async def release(self, key: str, token: str) -> None:
        if self._release_sha is None:
            self._release_sha = await self.redis.register_script(RELEASE_SCRIPT)
        released = await self.redis.execute_script(self._release_sha, keys=[key], args=[token])
        if not released:
            logger.warning("Lock was not held by this owner at release", key=key)

    async def is_locked(self, key: str) -> bool:
        return await self.redis.get(key) is not None


class LocalComputationLockImpl(ComputationLockProtocol):
    """In-process lock table for the local job-store backend."""

    def __init__(self) -> None:
        self._locks: Dict[str, Tuple[str, float]] = {}

    def _current_owner(self, key: str) -> Optional[str]:
        held = self._locks.get(key)
        if held is None:
            return None
        token, expires_at = held
        if expires_at <= time.monotonic():
            del self._locks[key]
            return None
        return token

    async def acquire(self, key: str, token: str, ttl_seconds: int) -> bool:
        if self._current_owner(key) is not None:
            return False
        self._locks[key] = (token, time.monotonic() + ttl_seconds)
        return True

    async def release(self, key: str, token: str) -> None:
        if self._current_owner(key) == token:
            del self._locks[key]
        else:
            logger.warning("Lock was not held by this owner at release", key=key)

    async def is_locked(self, key: str) -> bool:
        return self._current_owner(key) is not None
