"""Time bucketing and sliding-window counts."""

from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, Field

HOUR = timedelta(hours=1)

WINDOW_15M = timedelta(minutes=15)
WINDOW_1H = timedelta(hours=1)
WINDOW_6H = timedelta(hours=6)
WINDOW_24H = timedelta(hours=24)


def utcnow() -> datetime:
    return datetime.now(UTC)


def floor_hour(ts: datetime) -> datetime:
    """Truncate a timestamp to the start of its UTC hour."""
    return ts.astimezone(UTC).replace(minute=0, second=0, microsecond=0)


def hour_index(ts: datetime) -> int:
    """Whole hours since the Unix epoch (UTC). Used as hourly bucket id."""
    return int(ts.astimezone(UTC).timestamp() // 3600)


def hour_start(index: int) -> datetime:
    return datetime.fromtimestamp(index * 3600, tz=UTC)


def hours_between(earlier: datetime, later: datetime) -> float:
    return (later - earlier).total_seconds() / 3600


class WindowCounts(BaseModel):
    """Mention counts in the trailing windows ending at ``now``.

    A timestamp ``t`` is inside a window of length ``w`` when
    ``now - w < t <= now``; future-dated observations are never counted.
    """

    count_15m: int = Field(default=0, ge=0)
    count_1h: int = Field(default=0, ge=0)
    count_6h: int = Field(default=0, ge=0)
    count_24h: int = Field(default=0, ge=0)


def count_windows(timestamps: Iterable[datetime], now: datetime) -> WindowCounts:
    counts = {"count_15m": 0, "count_1h": 0, "count_6h": 0, "count_24h": 0}
    for ts in timestamps:
        if ts > now:
            continue
        age = now - ts
        if age >= WINDOW_24H:
            continue
        counts["count_24h"] += 1
        if age < WINDOW_6H:
            counts["count_6h"] += 1
        if age < WINDOW_1H:
            counts["count_1h"] += 1
        if age < WINDOW_15M:
            counts["count_15m"] += 1
    return WindowCounts(**counts)


__all__ = [
    "HOUR",
    "WINDOW_15M",
    "WINDOW_1H",
    "WINDOW_24H",
    "WINDOW_6H",
    "WindowCounts",
    "count_windows",
    "floor_hour",
    "hour_index",
    "hour_start",
    "hours_between",
    "utcnow",
]
