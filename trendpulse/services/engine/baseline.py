"""Rolling per-topic volume baselines.

Each topic keeps hourly bucket counts for the long (30-day) window.
Observations that fall out of that window are folded into a running total
and never retained individually, so memory per topic is bounded.

Statistics are computed over complete hourly buckets ending at ``as_of``
(exclusive) and include empty hours. Scoring asks for the baseline as of
the start of the current 1-hour window, so a burst never inflates the
baseline it is compared against.

Replaying the same timestamps in any order yields the same state.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from trendpulse.config import BaselineConfig
from trendpulse.core.logging import get_logger
from trendpulse.services.engine.windows import hour_index, hour_start, utcnow

if TYPE_CHECKING:
    from trendpulse.services.store.base import TrendStore

logger = get_logger(__name__)


class BaselineState(BaseModel):
    """Persisted bucket state for one topic key.

    Attributes:
        topic_key: Topic the buckets belong to
        buckets: Hour index (hours since epoch) -> mention count
        folded_total: Mentions older than the retention window
        total_observations: All mentions ever applied
        last_observed_at: Latest observation timestamp applied
    """

    topic_key: str
    buckets: dict[int, int] = Field(default_factory=dict)
    folded_total: int = 0
    total_observations: int = 0
    last_observed_at: datetime | None = None

    def add(self, observed_at: datetime, retention_hours: int) -> None:
        """Apply one observation and fold buckets that left the retention window."""
        hour = hour_index(observed_at)
        self.total_observations += 1
        if self.last_observed_at is None or observed_at > self.last_observed_at:
            self.last_observed_at = observed_at

        latest = max([hour, *self.buckets])
        cutoff = latest - retention_hours + 1
        if hour < cutoff:
            self.folded_total += 1
        else:
            self.buckets[hour] = self.buckets.get(hour, 0) + 1
        self._fold_before(cutoff)

    def _fold_before(self, cutoff: int) -> None:
        expired = [h for h in self.buckets if h < cutoff]
        for h in expired:
            self.folded_total += self.buckets.pop(h)


class Baseline(BaseModel):
    """Baseline statistics for a topic (or a combined cluster) at ``as_of``.

    Averages and standard deviations are per hour. Standard deviations are
    population deviations over every hour in the window, empty hours
    included. With fewer than three non-empty hours the deviation falls back
    to ``max(avg / 2, (max - avg) / 2)``.
    """

    topic_keys: list[str]
    as_of: datetime
    avg_7d: float = Field(default=0.0, ge=0)
    avg_30d: float = Field(default=0.0, ge=0)
    hourly_std_dev: float = Field(default=0.0, ge=0)
    hourly_std_dev_30d: float = Field(default=0.0, ge=0)
    relative_std_dev: float = Field(default=0.0, ge=0)
    data_points_7d: int = Field(default=0, ge=0)
    data_points_30d: int = Field(default=0, ge=0)
    min_hourly: int = Field(default=0, ge=0)
    max_hourly: int = Field(default=0, ge=0)
    total_mentions_7d: int = Field(default=0, ge=0)
    total_mentions_30d: int = Field(default=0, ge=0)
    is_stable: bool = False
    is_defined: bool = False


def _window_stats(counts: list[int]) -> tuple[float, float, int]:
    """Return (mean, std, non-empty hours) for a list of hourly counts."""
    n = len(counts)
    mean = sum(counts) / n
    nonzero = sum(1 for c in counts if c > 0)
    if nonzero < 3:
        peak = max(counts)
        std = max(mean * 0.5, (peak - mean) / 2)
    else:
        std = math.sqrt(sum((c - mean) ** 2 for c in counts) / n)
    return mean, max(std, 0.0), nonzero


def combine_buckets(states: Iterable[BaselineState]) -> dict[int, int]:
    """Sum bucket counts across topic states; counts are additive."""
    combined: dict[int, int] = {}
    for state in states:
        for hour, count in state.buckets.items():
            combined[hour] = combined.get(hour, 0) + count
    return combined


def compute_baseline(
    topic_keys: list[str],
    buckets: Mapping[int, int],
    as_of: datetime,
    config: BaselineConfig,
) -> Baseline:
    """Compute baseline statistics over the complete hours before ``as_of``.

    Args:
        topic_keys: Topics the buckets describe
        buckets: Hour index -> count
        as_of: End of the window (floored to the hour, exclusive)
        config: Baseline configuration

    Returns:
        Baseline; ``is_defined`` is False with fewer than
        ``config.min_observations`` non-empty hours in the short window
    """
    end = hour_index(as_of)
    short = [buckets.get(h, 0) for h in range(end - config.short_window_hours, end)]
    long = [buckets.get(h, 0) for h in range(end - config.long_window_hours, end)]

    avg_7d, std_7d, points_7d = _window_stats(short)
    avg_30d, std_30d, points_30d = _window_stats(long)
    rsd = std_7d / avg_7d if avg_7d > 0 else 0.0
    is_defined = points_7d >= config.min_observations

    return Baseline(
        topic_keys=sorted(topic_keys),
        as_of=hour_start(end),
        avg_7d=round(avg_7d, 6),
        avg_30d=round(avg_30d, 6),
        hourly_std_dev=round(std_7d, 6),
        hourly_std_dev_30d=round(std_30d, 6),
        relative_std_dev=round(rsd, 6),
        data_points_7d=points_7d,
        data_points_30d=points_30d,
        min_hourly=min(short),
        max_hourly=max(short),
        total_mentions_7d=sum(short),
        total_mentions_30d=sum(long),
        is_stable=is_defined and rsd < config.stable_rsd_max and avg_7d > config.stable_min_avg,
        is_defined=is_defined,
    )


class BaselineTracker:
    """Maintains baseline state per topic key in the trend store.

    Callers serialize ``update`` per topic (the ingest buffer holds the
    topic's lock); reads need no lock because states are replaced whole.

    Attributes:
        store: Trend store holding BaselineState records
        config: Baseline configuration
    """

    def __init__(self, store: TrendStore, config: BaselineConfig | None = None):
        self.store = store
        self.config = config or BaselineConfig()

    async def update(self, topic_key: str, observed_at: datetime) -> BaselineState:
        """Apply one accepted mention to the topic's buckets."""
        state = await self.store.get_baseline_state(topic_key)
        if state is None:
            state = BaselineState(topic_key=topic_key)
        state.add(observed_at, self.config.retention_hours)
        await self.store.save_baseline_state(state)
        return state

    async def get(self, topic_key: str, as_of: datetime | None = None) -> Baseline:
        """Baseline for one topic; an unknown topic has an undefined baseline."""
        return await self.get_combined([topic_key], as_of)

    async def get_combined(
        self, topic_keys: Iterable[str], as_of: datetime | None = None
    ) -> Baseline:
        """Baseline over the summed buckets of several topics (a cluster)."""
        keys = sorted(set(topic_keys))
        states = await self.store.get_baseline_states(keys)
        return compute_baseline(
            keys,
            combine_buckets(states.values()),
            as_of or utcnow(),
            self.config,
        )

    async def rebuild(self, topic_key: str, timestamps: Iterable[datetime]) -> BaselineState:
        """Recompute a topic's state from raw observation timestamps."""
        state = BaselineState(topic_key=topic_key)
        for ts in sorted(timestamps):
            state.add(ts, self.config.retention_hours)
        await self.store.save_baseline_state(state)
        logger.info(
            "Baseline rebuilt",
            topic_key=topic_key,
            observations=state.total_observations,
            folded=state.folded_total,
        )
        return state


__all__ = [
    "Baseline",
    "BaselineState",
    "BaselineTracker",
    "combine_buckets",
    "compute_baseline",
]
