"""Tests for rolling baselines."""

import random
from datetime import UTC, datetime, timedelta

import pytest

from trendpulse.config import BaselineConfig
from trendpulse.services.engine.baseline import (
    BaselineState,
    BaselineTracker,
    combine_buckets,
    compute_baseline,
)
from trendpulse.services.engine.windows import hour_index
from trendpulse.services.store.memory import InMemoryTrendStore

AS_OF = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)
END = hour_index(AS_OF)


class TestBaselineState:
    """Tests for bucket maintenance."""

    @pytest.mark.unit
    def test_add_counts_per_hour(self):
        state = BaselineState(topic_key="t")
        state.add(AS_OF, 720)
        state.add(AS_OF + timedelta(minutes=30), 720)
        state.add(AS_OF + timedelta(hours=1), 720)

        assert state.buckets == {END: 2, END + 1: 1}
        assert state.total_observations == 3
        assert state.last_observed_at == AS_OF + timedelta(hours=1)

    @pytest.mark.unit
    def test_old_buckets_fold(self):
        """Test buckets leaving the retention window fold into the total."""
        state = BaselineState(topic_key="t")
        state.add(AS_OF, 720)
        state.add(AS_OF + timedelta(hours=720), 720)

        assert state.buckets == {END + 720: 1}
        assert state.folded_total == 1

        state.add(AS_OF - timedelta(hours=5), 720)
        assert state.folded_total == 2
        assert state.total_observations == 3

    @pytest.mark.unit
    def test_replay_order_independent(self):
        """Test applying the same timestamps in any order yields the same state."""
        timestamps = [AS_OF - timedelta(minutes=37 * i) for i in range(2000)]
        shuffled = list(timestamps)
        random.Random(7).shuffle(shuffled)

        a = BaselineState(topic_key="t")
        b = BaselineState(topic_key="t")
        for ts in timestamps:
            a.add(ts, 720)
        for ts in shuffled:
            b.add(ts, 720)

        assert a.buckets == b.buckets
        assert a.folded_total == b.folded_total
        assert a.last_observed_at == b.last_observed_at


class TestComputeBaseline:
    """Tests for compute_baseline()."""

    @pytest.mark.unit
    def test_steady_history(self):
        """Test a flat two-per-hour history."""
        buckets = {h: 2 for h in range(END - 168, END)}
        baseline = compute_baseline(["t"], buckets, AS_OF, BaselineConfig())

        assert baseline.is_defined is True
        assert baseline.avg_7d == 2.0
        assert baseline.hourly_std_dev == 0.0
        assert baseline.data_points_7d == 168
        assert baseline.total_mentions_7d == 336
        assert baseline.avg_30d == pytest.approx(336 / 720, abs=1e-6)
        assert baseline.is_stable is True

    @pytest.mark.unit
    def test_current_hour_excluded(self):
        """Test the bucket at as_of is not part of the baseline."""
        buckets = {h: 2 for h in range(END - 168, END)}
        buckets[END] = 500
        baseline = compute_baseline(["t"], buckets, AS_OF, BaselineConfig())

        assert baseline.max_hourly == 2

    @pytest.mark.unit
    def test_sparse_history_undefined(self):
        """Test fewer than min_observations non-empty hours leave it undefined."""
        buckets = {END - 10: 5, END - 20: 3}
        baseline = compute_baseline(["t"], buckets, AS_OF, BaselineConfig())

        assert baseline.is_defined is False
        assert baseline.is_stable is False
        mean = 8 / 168
        assert baseline.hourly_std_dev == pytest.approx((5 - mean) / 2, abs=1e-6)

    @pytest.mark.unit
    def test_empty_history(self):
        baseline = compute_baseline(["t"], {}, AS_OF, BaselineConfig())

        assert baseline.is_defined is False
        assert baseline.avg_7d == 0.0
        assert baseline.hourly_std_dev == 0.0

    @pytest.mark.unit
    def test_combine_buckets_adds(self):
        a = BaselineState(topic_key="a", buckets={1: 2, 2: 3})
        b = BaselineState(topic_key="b", buckets={2: 4, 3: 1})

        assert combine_buckets([a, b]) == {1: 2, 2: 7, 3: 1}


class TestBaselineTracker:
    """Tests for BaselineTracker over the in-memory store."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_update_persists(self):
        store = InMemoryTrendStore()
        tracker = BaselineTracker(store)

        await tracker.update("t", AS_OF)
        await tracker.update("t", AS_OF)

        state = await store.get_baseline_state("t")
        assert state is not None
        assert state.buckets == {END: 2}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_topic_undefined(self):
        tracker = BaselineTracker(InMemoryTrendStore())
        baseline = await tracker.get("missing", as_of=AS_OF)

        assert baseline.is_defined is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_combined_sums_topics(self):
        store = InMemoryTrendStore()
        tracker = BaselineTracker(store)
        for h in range(1, 25):
            await tracker.update("a", AS_OF - timedelta(hours=h))
            await tracker.update("b", AS_OF - timedelta(hours=h))

        baseline = await tracker.get_combined(["a", "b", "a"], as_of=AS_OF)

        assert baseline.topic_keys == ["a", "b"]
        assert baseline.total_mentions_7d == 48
        assert baseline.max_hourly == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rebuild_matches_incremental(self):
        store = InMemoryTrendStore()
        tracker = BaselineTracker(store)
        timestamps = [AS_OF - timedelta(minutes=50 * i) for i in range(100)]
        for ts in timestamps:
            await tracker.update("a", ts)

        rebuilt = await tracker.rebuild("b", reversed(timestamps))
        incremental = await store.get_baseline_state("a")

        assert rebuilt.buckets == incremental.buckets
        assert rebuilt.total_observations == 100
