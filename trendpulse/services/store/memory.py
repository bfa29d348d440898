"""In-memory trend store.

Used for single-process deployments, local development and tests. All
operations complete without awaiting anything else, so each call is
atomic with respect to other coroutines on the same event loop.
"""

from collections.abc import Iterable
from datetime import datetime

from trendpulse.core.exceptions import StaleEventError
from trendpulse.services.engine.base import (
    JobFailure,
    PassStats,
    PassStatus,
    TrendEvent,
    feed_sort_key,
)
from trendpulse.services.engine.baseline import BaselineState
from trendpulse.services.ingest.base import StoredMention
from trendpulse.services.store.base import TrendStore


class InMemoryTrendStore(TrendStore):
    """Dictionary-backed TrendStore."""

    def __init__(self) -> None:
        self._mentions: dict[str, StoredMention] = {}
        self._by_topic: dict[str, list[StoredMention]] = {}
        self._baselines: dict[str, BaselineState] = {}
        self._events: dict[str, TrendEvent] = {}
        self.job_runs: list[PassStats] = []
        self._failures: list[JobFailure] = []

    # Mentions

    async def add_mention(self, record: StoredMention) -> bool:
        key = record.mention_key
        if key in self._mentions:
            return False
        self._mentions[key] = record
        self._by_topic.setdefault(record.topic_key, []).append(record)
        return True

    async def delete_mention(self, mention_key: str) -> bool:
        record = self._mentions.pop(mention_key, None)
        if record is None:
            return False
        self._by_topic[record.topic_key].remove(record)
        return True

    async def list_mentions(
        self, topic_keys: Iterable[str], since: datetime, until: datetime
    ) -> list[StoredMention]:
        found = [
            m
            for key in set(topic_keys)
            for m in self._by_topic.get(key, [])
            if since < m.observed_at <= until
        ]
        return sorted(found, key=lambda m: (m.observed_at, m.mention_key))

    async def list_mentions_between(self, start: datetime, end: datetime) -> list[StoredMention]:
        found = [
            m
            for m in self._mentions.values()
            if start < m.observed_at <= end or start < m.accepted_at <= end
        ]
        return sorted(found, key=lambda m: (m.observed_at, m.mention_key))

    async def latest_observation(self, topic_keys: Iterable[str]) -> datetime | None:
        latest = None
        for key in set(topic_keys):
            for m in self._by_topic.get(key, []):
                if not m.is_duplicate and (latest is None or m.observed_at > latest):
                    latest = m.observed_at
        return latest

    def mention_count(self) -> int:
        return len(self._mentions)

    # Baselines

    async def get_baseline_state(self, topic_key: str) -> BaselineState | None:
        state = self._baselines.get(topic_key)
        return state.model_copy(deep=True) if state else None

    async def get_baseline_states(self, topic_keys: Iterable[str]) -> dict[str, BaselineState]:
        return {
            key: self._baselines[key].model_copy(deep=True)
            for key in set(topic_keys)
            if key in self._baselines
        }

    async def save_baseline_state(self, state: BaselineState) -> None:
        self._baselines[state.topic_key] = state.model_copy(deep=True)

    # Events

    async def get_event(self, event_key: str) -> TrendEvent | None:
        event = self._events.get(event_key)
        return event.model_copy(deep=True) if event else None

    async def list_events(self, include_archived: bool = False) -> list[TrendEvent]:
        events = [
            e.model_copy(deep=True)
            for e in self._events.values()
            if include_archived or not e.is_archived
        ]
        return sorted(events, key=lambda e: e.event_key)

    async def list_archived_events_for_topics(self, topic_keys: Iterable[str]) -> list[TrendEvent]:
        keys = set(topic_keys)
        events = [
            e.model_copy(deep=True)
            for e in self._events.values()
            if e.is_archived and keys.intersection(e.member_topic_keys)
        ]
        return sorted(events, key=lambda e: e.event_key)

    async def save_event(self, event: TrendEvent, expected_version: int) -> TrendEvent:
        current = self._events.get(event.event_key)
        actual = current.version if current else None
        if (current is None and expected_version != 0) or (
            current is not None and current.version != expected_version
        ):
            raise StaleEventError(event.event_key, expected_version, actual)

        stored = event.model_copy(update={"version": expected_version + 1}, deep=True)
        self._events[event.event_key] = stored
        return stored.model_copy(deep=True)

    async def list_trending(
        self, since: datetime, limit: int, offset: int = 0
    ) -> tuple[list[TrendEvent], int]:
        matching = sorted(
            (e for e in self._events.values() if e.is_trending and e.updated_at >= since),
            key=feed_sort_key,
        )
        page = matching[offset : offset + limit]
        return [e.model_copy(deep=True) for e in page], len(matching)

    # Jobs

    async def record_job_run(self, stats: PassStats) -> None:
        self.job_runs.append(stats.model_copy(deep=True))

    async def last_successful_run(self, job_name: str) -> PassStats | None:
        completed = [
            r
            for r in self.job_runs
            if r.job_name == job_name and r.status in (PassStatus.SUCCEEDED, PassStatus.PARTIAL)
        ]
        if not completed:
            return None
        return max(completed, key=lambda r: r.window_end).model_copy(deep=True)

    async def record_job_failure(self, failure: JobFailure) -> None:
        self._failures.append(failure)

    async def list_job_failures(
        self, job_name: str | None = None, limit: int = 50
    ) -> list[JobFailure]:
        failures = [f for f in self._failures if job_name is None or f.job_name == job_name]
        failures.sort(key=lambda f: f.occurred_at, reverse=True)
        return failures[:limit]


__all__ = ["InMemoryTrendStore"]
