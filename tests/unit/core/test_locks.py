"""Tests for trendpulse.core.locks module."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.asyncio import Redis as AsyncRedis
from redis.exceptions import LockNotOwnedError

from trendpulse.core.exceptions import TopicLockTimeoutError
from trendpulse.core.locks import RedisTopicLock, ShardedLock


@pytest.mark.unit
def test_shard_is_stable():
    """Test the same key always maps to the same shard."""
    locks = ShardedLock(16)
    assert locks.shard_count == 16
    assert locks.shard_for("fed_raises_rates") == locks.shard_for("fed_raises_rates")
    assert 0 <= locks.shard_for("anything") < 16
    assert locks.lock_for("a") is locks.lock_for("a")


@pytest.mark.unit
def test_invalid_shard_count():
    """Test zero shards is rejected."""
    with pytest.raises(ValueError):
        ShardedLock(0)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_same_key_serializes():
    """Test two holders of one key never overlap."""
    locks = ShardedLock(4)
    active = 0
    max_active = 0

    async def worker():
        nonlocal active, max_active
        async with locks.hold("topic"):
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0.01)
            active -= 1

    await asyncio.gather(*(worker() for _ in range(5)))
    assert max_active == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_different_shards_run_in_parallel():
    """Test keys on different shards do not block each other."""
    locks = ShardedLock(64)
    key_a = "topic_a"
    key_b = next(
        f"topic_{i}" for i in range(1000) if locks.shard_for(f"topic_{i}") != locks.shard_for(key_a)
    )

    async with locks.hold(key_a):
        await asyncio.wait_for(_enter(locks, key_b), timeout=1)


async def _enter(locks: ShardedLock, key: str) -> None:
    async with locks.hold(key):
        pass


class FakeRedisLock:
    """Stand-in for ``redis.asyncio.lock.Lock`` over a shared asyncio lock."""

    def __init__(self, lock: asyncio.Lock):
        self._lock = lock

    async def acquire(self) -> bool:
        await self._lock.acquire()
        return True

    async def release(self) -> None:
        self._lock.release()


def create_redis(locks: dict[str, asyncio.Lock] | None = None) -> AsyncMock:
    """Mock Redis whose named locks are shared by every caller."""
    locks = {} if locks is None else locks
    redis = AsyncMock(spec=AsyncRedis)
    redis.lock = MagicMock(
        side_effect=lambda name, **kwargs: FakeRedisLock(locks.setdefault(name, asyncio.Lock()))
    )
    return redis


@pytest.mark.unit
class TestRedisTopicLock:
    """Tests for the cross-process topic lock."""

    @pytest.mark.asyncio
    async def test_lock_name_and_timeouts(self):
        redis = create_redis()
        locks = RedisTopicLock(redis, ShardedLock(4), ttl_seconds=7.0, wait_seconds=2.0)

        async with locks.hold("fed_raises_rates"):
            pass

        redis.lock.assert_called_once_with(
            "topic-lock:fed_raises_rates", timeout=7.0, blocking_timeout=2.0
        )

    @pytest.mark.asyncio
    async def test_processes_serialize_on_redis(self):
        shared: dict[str, asyncio.Lock] = {}
        first = RedisTopicLock(create_redis(shared), ShardedLock(4))
        second = RedisTopicLock(create_redis(shared), ShardedLock(4))
        active = 0
        max_active = 0

        async def worker(locks: RedisTopicLock):
            nonlocal active, max_active
            async with locks.hold("topic"):
                active += 1
                max_active = max(max_active, active)
                await asyncio.sleep(0.01)
                active -= 1

        await asyncio.gather(*(worker(locks) for locks in [first, second] * 3))
        assert max_active == 1

    @pytest.mark.asyncio
    async def test_timeout_raises(self):
        redis = AsyncMock(spec=AsyncRedis)
        redis_lock = MagicMock()
        redis_lock.acquire = AsyncMock(return_value=False)
        redis_lock.release = AsyncMock()
        redis.lock = MagicMock(return_value=redis_lock)
        locks = RedisTopicLock(redis, ShardedLock(4), wait_seconds=0.5)

        with pytest.raises(TopicLockTimeoutError) as exc_info:
            async with locks.hold("topic"):
                pass

        assert exc_info.value.topic_key == "topic"
        redis_lock.release.assert_not_awaited()
        assert not locks.local.lock_for("topic").locked()

    @pytest.mark.asyncio
    async def test_expired_lock_release_is_logged(self):
        redis = AsyncMock(spec=AsyncRedis)
        redis_lock = MagicMock()
        redis_lock.acquire = AsyncMock(return_value=True)
        redis_lock.release = AsyncMock(side_effect=LockNotOwnedError("expired"))
        redis.lock = MagicMock(return_value=redis_lock)
        locks = RedisTopicLock(redis, ShardedLock(4))

        async with locks.hold("topic"):
            pass

        redis_lock.release.assert_awaited_once()
