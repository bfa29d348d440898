"""Exclusive per-cluster leases for scoring passes.

Two scoring passes must never interleave updates to the same trend event.
Before scoring a cluster the engine takes a short-lived lease on its
event key; a cluster whose lease is held elsewhere is skipped for that
pass.

Two backends:
- RedisLeaseManager: ``SET key token NX PX ttl`` with token-checked release,
  safe across worker processes
- InMemoryLeaseManager: same contract inside one event loop, used for
  single-node deployments and tests
"""

from __future__ import annotations

import time
import uuid
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from trendpulse.core.exceptions import LeaseUnavailableError
from trendpulse.core.logging import get_logger

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = get_logger(__name__)


@dataclass(frozen=True)
class Lease:
    """A held lease.

    Attributes:
        key: Leased event key
        token: Random token proving ownership on release
        ttl_ms: Lease lifetime in milliseconds
    """

    key: str
    token: str
    ttl_ms: int


class LeaseManager(ABC):
    """Acquire/release contract shared by lease backends."""

    def __init__(self, ttl_ms: int = 60_000):
        self.ttl_ms = ttl_ms

    @abstractmethod
    async def acquire(self, key: str, ttl_ms: int | None = None) -> Lease | None:
        """Try to take the lease; return None if someone else holds it."""

    @abstractmethod
    async def release(self, lease: Lease) -> bool:
        """Release a lease we own; return False if it had already expired or moved."""

    @asynccontextmanager
    async def hold(self, key: str, ttl_ms: int | None = None) -> AsyncIterator[Lease]:
        """Hold a lease for the duration of the block.

        Raises:
            LeaseUnavailableError: If the lease is held elsewhere
        """
        lease = await self.acquire(key, ttl_ms)
        if lease is None:
            raise LeaseUnavailableError(key)
        try:
            yield lease
        finally:
            await self.release(lease)


class RedisLeaseManager(LeaseManager):
    """Redis-backed leases.

    Attributes:
        redis: Async Redis client (injected)
    """

    KEY_PREFIX = "lease:cluster:"

    # Compare-and-delete so an expired lease re-taken by another pass is not released
    RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""

    def __init__(self, redis: Redis[Any], ttl_ms: int = 60_000):
        super().__init__(ttl_ms)
        self.redis = redis

    async def acquire(self, key: str, ttl_ms: int | None = None) -> Lease | None:
        ttl = ttl_ms or self.ttl_ms
        token = uuid.uuid4().hex
        acquired = await self.redis.set(f"{self.KEY_PREFIX}{key}", token, nx=True, px=ttl)
        if not acquired:
            logger.debug("Cluster lease busy", event_key=key)
            return None
        return Lease(key=key, token=token, ttl_ms=ttl)

    async def release(self, lease: Lease) -> bool:
        released = await self.redis.eval(
            self.RELEASE_SCRIPT, 1, f"{self.KEY_PREFIX}{lease.key}", lease.token
        )
        if not released:
            logger.warning("Cluster lease expired before release", event_key=lease.key)
        return bool(released)


class InMemoryLeaseManager(LeaseManager):
    """Process-local leases with the same expiry semantics as Redis."""

    def __init__(self, ttl_ms: int = 60_000):
        super().__init__(ttl_ms)
        self._held: dict[str, tuple[str, float]] = {}

    async def acquire(self, key: str, ttl_ms: int | None = None) -> Lease | None:
        ttl = ttl_ms or self.ttl_ms
        now = time.monotonic()
        current = self._held.get(key)
        if current is not None and current[1] > now:
            return None
        token = uuid.uuid4().hex
        self._held[key] = (token, now + ttl / 1000)
        return Lease(key=key, token=token, ttl_ms=ttl)

    async def release(self, lease: Lease) -> bool:
        current = self._held.get(lease.key)
        if current is None or current[0] != lease.token:
            return False
        del self._held[lease.key]
        return True

    def is_held(self, key: str) -> bool:
        current = self._held.get(key)
        return current is not None and current[1] > time.monotonic()


__all__ = [
    "InMemoryLeaseManager",
    "Lease",
    "LeaseManager",
    "RedisLeaseManager",
]
