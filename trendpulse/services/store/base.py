"""Trend store interface.

The engine persists four kinds of records through this interface:
mentions (append-only, unique by identity), baseline states (replaced
whole), trend events (optimistically versioned) and job runs/failures.

Implementations must make ``add_mention`` and ``save_event`` atomic: a
mention identity is inserted at most once, and an event write either
lands completely at ``expected_version + 1`` or not at all.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime

from trendpulse.services.engine.base import JobFailure, PassStats, TrendEvent
from trendpulse.services.engine.baseline import BaselineState
from trendpulse.services.ingest.base import StoredMention


class TrendStore(ABC):
    """Abstract persistence boundary for the engine."""

    # ------------------------------------------------------------------
    # Mentions
    # ------------------------------------------------------------------

    @abstractmethod
    async def add_mention(self, record: StoredMention) -> bool:
        """Insert a mention; return False if its identity already exists."""

    @abstractmethod
    async def delete_mention(self, mention_key: str) -> bool:
        """Remove a mention whose ingest did not complete; False if absent."""

    @abstractmethod
    async def list_mentions(
        self, topic_keys: Iterable[str], since: datetime, until: datetime
    ) -> list[StoredMention]:
        """Mentions of the given topics observed in ``(since, until]``, oldest first."""

    @abstractmethod
    async def list_mentions_between(self, start: datetime, end: datetime) -> list[StoredMention]:
        """Mentions observed or accepted in ``(start, end]``, oldest observation first."""

    @abstractmethod
    async def latest_observation(self, topic_keys: Iterable[str]) -> datetime | None:
        """Most recent non-duplicate observation across the given topics."""

    # ------------------------------------------------------------------
    # Baselines
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_baseline_state(self, topic_key: str) -> BaselineState | None:
        """Baseline buckets for one topic."""

    @abstractmethod
    async def get_baseline_states(self, topic_keys: Iterable[str]) -> dict[str, BaselineState]:
        """Baseline buckets for several topics (missing topics are omitted)."""

    @abstractmethod
    async def save_baseline_state(self, state: BaselineState) -> None:
        """Replace a topic's baseline state."""

    # ------------------------------------------------------------------
    # Trend events
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_event(self, event_key: str) -> TrendEvent | None:
        """One trend event by key."""

    @abstractmethod
    async def list_events(self, include_archived: bool = False) -> list[TrendEvent]:
        """All events, by default only those not archived."""

    @abstractmethod
    async def list_archived_events_for_topics(self, topic_keys: Iterable[str]) -> list[TrendEvent]:
        """Archived events that share at least one member topic key."""

    @abstractmethod
    async def save_event(self, event: TrendEvent, expected_version: int) -> TrendEvent:
        """Write an event computed from ``expected_version``.

        Returns:
            The stored event with ``version == expected_version + 1``

        Raises:
            StaleEventError: If the stored version differs
        """

    @abstractmethod
    async def list_trending(
        self, since: datetime, limit: int, offset: int = 0
    ) -> tuple[list[TrendEvent], int]:
        """Trending events updated at or after ``since`` in feed order, plus the total."""

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    @abstractmethod
    async def record_job_run(self, stats: PassStats) -> None:
        """Persist the counters of a finished pass."""

    @abstractmethod
    async def last_successful_run(self, job_name: str) -> PassStats | None:
        """The latest-ending run of ``job_name`` that routed its whole window.

        Succeeded and partial runs count; partial runs only failed to score
        some clusters, which the next pass rescores anyway.
        """

    @abstractmethod
    async def record_job_failure(self, failure: JobFailure) -> None:
        """Persist a job failure."""

    @abstractmethod
    async def list_job_failures(
        self, job_name: str | None = None, limit: int = 50
    ) -> list[JobFailure]:
        """Most recent failures first."""


__all__ = ["TrendStore"]
