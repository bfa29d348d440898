"""Trending feed read view."""

from datetime import datetime, timedelta

from pydantic import BaseModel

from trendpulse.config import FeedConfig
from trendpulse.services.engine.base import TrendEvent
from trendpulse.services.engine.windows import utcnow
from trendpulse.services.store.base import TrendStore


class FeedPage(BaseModel):
    """One page of the trending feed."""

    items: list[TrendEvent]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total


class TrendFeed:
    """Lists trending events updated recently, breaking first then by rank.

    Attributes:
        store: Trend store
        config: Feed configuration
    """

    def __init__(self, store: TrendStore, config: FeedConfig | None = None):
        self.store = store
        self.config = config or FeedConfig()

    async def page(
        self,
        now: datetime | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> FeedPage:
        """Return one page of the feed.

        Args:
            now: Reference time for the recency filter (defaults to now)
            limit: Page size, clamped to ``[1, max_limit]``
            offset: Number of items to skip
        """
        now = now or utcnow()
        limit = min(max(1, limit or self.config.default_limit), self.config.max_limit)
        offset = max(0, offset)
        since = now - timedelta(hours=self.config.recency_hours)
        items, total = await self.store.list_trending(since, limit, offset)
        return FeedPage(items=items, total=total, limit=limit, offset=offset)


__all__ = ["FeedPage", "TrendFeed"]
