"""Tests for time bucketing and window counts."""

from datetime import UTC, datetime, timedelta

import pytest

from trendpulse.services.engine.windows import (
    count_windows,
    floor_hour,
    hour_index,
    hour_start,
    hours_between,
)

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)


@pytest.mark.unit
def test_floor_hour_converts_to_utc():
    """Test non-UTC timestamps floor to the UTC hour."""
    ts = datetime(2026, 10, 18, 14, 45, 12, tzinfo=UTC) + timedelta(microseconds=5)
    assert floor_hour(ts) == datetime(2026, 10, 18, 14, 0, tzinfo=UTC)


@pytest.mark.unit
def test_hour_index_round_trip():
    """Test hour_start inverts hour_index on hour boundaries."""
    index = hour_index(NOW + timedelta(minutes=59))
    assert hour_start(index) == NOW
    assert hour_index(NOW) - hour_index(NOW - timedelta(hours=3)) == 3


@pytest.mark.unit
def test_hours_between():
    assert hours_between(NOW, NOW + timedelta(minutes=90)) == 1.5


class TestCountWindows:
    """Tests for count_windows()."""

    @pytest.mark.unit
    def test_boundaries_are_half_open(self):
        """Test a mention exactly one window old is outside it."""
        timestamps = [
            NOW,
            NOW - timedelta(minutes=15),
            NOW - timedelta(hours=1),
            NOW - timedelta(hours=6),
            NOW - timedelta(hours=24),
        ]
        counts = count_windows(timestamps, NOW)

        assert counts.count_15m == 1
        assert counts.count_1h == 2
        assert counts.count_6h == 3
        assert counts.count_24h == 4

    @pytest.mark.unit
    def test_future_mentions_ignored(self):
        """Test observations after now are never counted."""
        counts = count_windows([NOW + timedelta(seconds=1)], NOW)
        assert counts.count_24h == 0

    @pytest.mark.unit
    def test_windows_are_nested(self):
        """Test shorter windows never exceed longer ones."""
        timestamps = [NOW - timedelta(minutes=7 * i) for i in range(300)]
        counts = count_windows(timestamps, NOW)

        assert counts.count_15m <= counts.count_1h <= counts.count_6h <= counts.count_24h
