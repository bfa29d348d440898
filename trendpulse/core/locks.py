"""Per-topic critical sections for the ingest path.

Baseline updates for one topic key must be serialized while different
topics proceed in parallel. A fixed pool of asyncio locks is shared by
hashing the topic key onto a shard; two topics may occasionally share a
shard, which only costs a little parallelism.

Inside one process ``ShardedLock`` is enough. When several API workers
write to the same store, ``RedisTopicLock`` adds a Redis lock per topic
key on top of the local shard so baseline read-modify-writes from
different processes never interleave.
"""

from __future__ import annotations

import asyncio
import zlib
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from redis.exceptions import RedisError

from trendpulse.core.exceptions import TopicLockTimeoutError
from trendpulse.core.logging import get_logger

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = get_logger(__name__)


class TopicLock(ABC):
    """Critical section keyed by topic."""

    @abstractmethod
    def hold(self, key: str) -> AsyncIterator[None]:
        """Async context manager holding the lock guarding ``key``."""
        ...


class ShardedLock(TopicLock):
    """Fixed-size pool of asyncio locks addressed by key.

    Example:
        >>> locks = ShardedLock(shards=64)
        >>> async with locks.hold("fed_raises_rates"):
        ...     await tracker.update("fed_raises_rates", observed_at)
    """

    def __init__(self, shards: int = 64):
        if shards < 1:
            raise ValueError("shards must be >= 1")
        self._locks = [asyncio.Lock() for _ in range(shards)]

    @property
    def shard_count(self) -> int:
        return len(self._locks)

    def shard_for(self, key: str) -> int:
        """Stable shard index for a key (crc32, independent of PYTHONHASHSEED)."""
        return zlib.crc32(key.encode("utf-8")) % len(self._locks)

    def lock_for(self, key: str) -> asyncio.Lock:
        return self._locks[self.shard_for(key)]

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Hold the lock guarding ``key`` for the duration of the block."""
        lock = self.lock_for(key)
        async with lock:
            yield


class RedisTopicLock(TopicLock):
    """Topic lock shared by every process that talks to one Redis.

    The local shard is taken first so coroutines of one process queue in
    memory instead of polling Redis. The Redis lock expires after
    ``ttl_seconds`` so a crashed worker cannot wedge a topic.

    Attributes:
        redis: Async Redis client
        local: In-process shard pool
        ttl_seconds: Redis lock expiry
        wait_seconds: How long to wait for the Redis lock before giving up
    """

    def __init__(
        self,
        redis: Redis,
        local: ShardedLock | None = None,
        ttl_seconds: float = 10.0,
        wait_seconds: float = 5.0,
        prefix: str = "topic-lock:",
    ):
        self.redis = redis
        self.local = local or ShardedLock()
        self.ttl_seconds = ttl_seconds
        self.wait_seconds = wait_seconds
        self.prefix = prefix

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Hold the local shard and the Redis lock for ``key``.

        Raises:
            TopicLockTimeoutError: If the Redis lock is not acquired in time
        """
        async with self.local.hold(key):
            lock = self.redis.lock(
                f"{self.prefix}{key}",
                timeout=self.ttl_seconds,
                blocking_timeout=self.wait_seconds,
            )
            if not await lock.acquire():
                raise TopicLockTimeoutError(key, wait_seconds=self.wait_seconds)
            try:
                yield
            finally:
                try:
                    await lock.release()
                except RedisError as e:
                    # Expired under us; the next holder already owns it.
                    logger.warning("Topic lock release failed", topic_key=key, error=str(e))


__all__ = ["TopicLock", "ShardedLock", "RedisTopicLock"]
