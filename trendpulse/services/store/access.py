"""Access-controlled view over a TrendStore.

Roles:
- PUBLIC: read trend events and the trending feed
- ENGINE: the engine's own service identity; full read/write
- ADMIN: read everything, write events, and apply manual overrides
"""

from collections.abc import Iterable
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel

from trendpulse.core.exceptions import PermissionDeniedError, RecordNotFoundError
from trendpulse.core.logging import get_logger
from trendpulse.services.engine.base import JobFailure, PassStats, TrendEvent
from trendpulse.services.engine.baseline import BaselineState
from trendpulse.services.ingest.base import StoredMention
from trendpulse.services.store.base import TrendStore

logger = get_logger(__name__)

# Fields an administrator may correct by hand
OVERRIDABLE_FIELDS = frozenset(
    {
        "canonical_label",
        "is_trending",
        "is_breaking",
        "breaking_path",
        "rank_score",
        "archived_at",
        "is_evergreen",
    }
)


class Role(str, Enum):
    PUBLIC = "public"
    ENGINE = "engine"
    ADMIN = "admin"


class Principal(BaseModel):
    """Caller identity."""

    name: str
    role: Role


class AccessControlledStore(TrendStore):
    """Wraps a store and checks the principal's role on every call.

    Args:
        inner: Store to delegate to
        principal: Caller identity
    """

    def __init__(self, inner: TrendStore, principal: Principal) -> None:
        self.inner = inner
        self.principal = principal

    def _require(self, operation: str, *roles: Role) -> None:
        if self.principal.role not in roles:
            logger.warning(
                "Store access denied",
                principal=self.principal.name,
                role=self.principal.role.value,
                operation=operation,
            )
            raise PermissionDeniedError(self.principal.name, operation)

    # Mentions and baselines are engine-internal

    async def add_mention(self, record: StoredMention) -> bool:
        self._require("add_mention", Role.ENGINE)
        return await self.inner.add_mention(record)

    async def delete_mention(self, mention_key: str) -> bool:
        self._require("delete_mention", Role.ENGINE)
        return await self.inner.delete_mention(mention_key)

    async def list_mentions(
        self, topic_keys: Iterable[str], since: datetime, until: datetime
    ) -> list[StoredMention]:
        self._require("list_mentions", Role.ENGINE, Role.ADMIN)
        return await self.inner.list_mentions(topic_keys, since, until)

    async def list_mentions_between(self, start: datetime, end: datetime) -> list[StoredMention]:
        self._require("list_mentions_between", Role.ENGINE, Role.ADMIN)
        return await self.inner.list_mentions_between(start, end)

    async def latest_observation(self, topic_keys: Iterable[str]) -> datetime | None:
        self._require("latest_observation", Role.ENGINE, Role.ADMIN)
        return await self.inner.latest_observation(topic_keys)

    async def get_baseline_state(self, topic_key: str) -> BaselineState | None:
        self._require("get_baseline_state", Role.ENGINE, Role.ADMIN)
        return await self.inner.get_baseline_state(topic_key)

    async def get_baseline_states(self, topic_keys: Iterable[str]) -> dict[str, BaselineState]:
        self._require("get_baseline_states", Role.ENGINE, Role.ADMIN)
        return await self.inner.get_baseline_states(topic_keys)

    async def save_baseline_state(self, state: BaselineState) -> None:
        self._require("save_baseline_state", Role.ENGINE)
        await self.inner.save_baseline_state(state)

    # Events are publicly readable

    async def get_event(self, event_key: str) -> TrendEvent | None:
        return await self.inner.get_event(event_key)

    async def list_events(self, include_archived: bool = False) -> list[TrendEvent]:
        return await self.inner.list_events(include_archived)

    async def list_archived_events_for_topics(self, topic_keys: Iterable[str]) -> list[TrendEvent]:
        return await self.inner.list_archived_events_for_topics(topic_keys)

    async def list_trending(
        self, since: datetime, limit: int, offset: int = 0
    ) -> tuple[list[TrendEvent], int]:
        return await self.inner.list_trending(since, limit, offset)

    async def save_event(self, event: TrendEvent, expected_version: int) -> TrendEvent:
        self._require("save_event", Role.ENGINE, Role.ADMIN)
        return await self.inner.save_event(event, expected_version)

    async def admin_override(self, event_key: str, **fields: Any) -> TrendEvent:
        """Manually correct fields of a stored event.

        The write goes through the normal version check, so a concurrent
        scoring pass either sees the override or fails with StaleEventError.

        Raises:
            PermissionDeniedError: If the principal is not an administrator
            RecordNotFoundError: If the event does not exist
            ValueError: If a field cannot be overridden
        """
        self._require("admin_override", Role.ADMIN)
        unknown = set(fields) - OVERRIDABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be overridden: {sorted(unknown)}")

        current = await self.inner.get_event(event_key)
        if current is None:
            raise RecordNotFoundError(model="TrendEvent", record_id=event_key)

        corrected = TrendEvent.model_validate({**current.model_dump(), **fields})
        stored = await self.inner.save_event(corrected, current.version)
        logger.info(
            "Admin override applied",
            principal=self.principal.name,
            event_key=event_key,
            fields=sorted(fields),
            version=stored.version,
        )
        return stored

    # Job records

    async def record_job_run(self, stats: PassStats) -> None:
        self._require("record_job_run", Role.ENGINE)
        await self.inner.record_job_run(stats)

    async def last_successful_run(self, job_name: str) -> PassStats | None:
        self._require("last_successful_run", Role.ENGINE, Role.ADMIN)
        return await self.inner.last_successful_run(job_name)

    async def record_job_failure(self, failure: JobFailure) -> None:
        self._require("record_job_failure", Role.ENGINE)
        await self.inner.record_job_failure(failure)

    async def list_job_failures(
        self, job_name: str | None = None, limit: int = 50
    ) -> list[JobFailure]:
        self._require("list_job_failures", Role.ENGINE, Role.ADMIN)
        return await self.inner.list_job_failures(job_name, limit)


__all__ = [
    "OVERRIDABLE_FIELDS",
    "AccessControlledStore",
    "Principal",
    "Role",
]
