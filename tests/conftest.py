"""Pytest configuration and fixtures.

This module provides common fixtures used across all tests.
"""

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

import pytest

from trendpulse.config import EngineConfig
from trendpulse.core.lease import InMemoryLeaseManager
from trendpulse.core.locks import ShardedLock
from trendpulse.core.logging import setup_logging
from trendpulse.services.engine.baseline import BaselineTracker
from trendpulse.services.engine.pipeline import TrendEngine
from trendpulse.services.engine.windows import floor_hour, utcnow
from trendpulse.services.ingest.base import Mention, SourceType
from trendpulse.services.ingest.buffer import IngestBuffer
from trendpulse.services.store.memory import InMemoryTrendStore

# Setup logging for tests
setup_logging()


@pytest.fixture
def anyio_backend() -> str:
    """Specify backend for anyio.

    Returns:
        Backend name
    """
    return "asyncio"


@pytest.fixture
def hour_start() -> datetime:
    """Start of an hour safely in the past, so ingest never sees future timestamps."""
    return floor_hour(utcnow()) - timedelta(days=3)


@pytest.fixture
def make_mention() -> Callable[..., Mention]:
    """Factory for Mention records with sensible defaults."""

    def _make(
        observed_at: datetime,
        topic_key: str = "fed_raises_interest_rates",
        label: str | None = "Fed raises interest rates",
        source_id: str = "reuters",
        source_type: SourceType = SourceType.NEWS,
        source_tier: int = 1,
        dedup_key: str = "",
        **extra: Any,
    ) -> Mention:
        return Mention(
            topic_key=topic_key,
            label=label,
            source_id=source_id,
            source_type=source_type,
            source_tier=source_tier,
            observed_at=observed_at,
            dedup_key=dedup_key,
            **extra,
        )

    return _make


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig()


@pytest.fixture
def store() -> InMemoryTrendStore:
    return InMemoryTrendStore()


@pytest.fixture
def tracker(store: InMemoryTrendStore, engine_config: EngineConfig) -> BaselineTracker:
    return BaselineTracker(store, engine_config.baseline)


@pytest.fixture
def ingest_buffer(
    store: InMemoryTrendStore, tracker: BaselineTracker, engine_config: EngineConfig
) -> IngestBuffer:
    return IngestBuffer(store, tracker, ShardedLock(8), config=engine_config.ingest)


@pytest.fixture
def leases() -> InMemoryLeaseManager:
    return InMemoryLeaseManager()


@pytest.fixture
def trend_engine(
    store: InMemoryTrendStore,
    tracker: BaselineTracker,
    leases: InMemoryLeaseManager,
    engine_config: EngineConfig,
) -> TrendEngine:
    return TrendEngine(store, tracker, leases, engine_config)
