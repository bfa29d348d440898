"""Tests for the trending feed view."""

from datetime import UTC, datetime, timedelta

import pytest

from trendpulse.config import FeedConfig
from trendpulse.services.engine.base import TrendEvent
from trendpulse.services.feed import TrendFeed
from trendpulse.services.store.memory import InMemoryTrendStore

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)


async def seed(store: InMemoryTrendStore, count: int, updated_at: datetime = NOW) -> None:
    for i in range(count):
        await store.save_event(
            TrendEvent(
                event_key=f"event_{i:02d}",
                canonical_label=f"Event {i}",
                first_seen_at=updated_at,
                last_seen_at=updated_at,
                updated_at=updated_at,
                is_trending=True,
                rank_score=float(100 - i),
            ),
            0,
        )


class TestTrendFeed:
    """Tests for TrendFeed.page."""

    @pytest.mark.asyncio
    async def test_default_page(self):
        store = InMemoryTrendStore()
        await seed(store, 3)

        page = await TrendFeed(store).page(now=NOW)

        assert [e.event_key for e in page.items] == ["event_00", "event_01", "event_02"]
        assert page.total == 3
        assert page.limit == 20
        assert page.has_more is False

    @pytest.mark.asyncio
    async def test_pagination(self):
        store = InMemoryTrendStore()
        await seed(store, 5)

        page = await TrendFeed(store).page(now=NOW, limit=2, offset=2)

        assert [e.event_key for e in page.items] == ["event_02", "event_03"]
        assert page.has_more is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("requested,expected", [(0, 4), (-5, 1), (500, 10), (None, 4)])
    async def test_limit_clamped(self, requested, expected):
        feed = TrendFeed(InMemoryTrendStore(), FeedConfig(default_limit=4, max_limit=10))

        page = await feed.page(now=NOW, limit=requested)

        assert page.limit == expected

    @pytest.mark.asyncio
    async def test_recency_window(self):
        store = InMemoryTrendStore()
        await seed(store, 2, updated_at=NOW - timedelta(hours=30))

        assert (await TrendFeed(store).page(now=NOW)).total == 0
        wide = TrendFeed(store, FeedConfig(recency_hours=48))
        assert (await wide.page(now=NOW)).total == 2
