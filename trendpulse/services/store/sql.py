"""PostgreSQL trend store.

Uses SQLAlchemy 2.0 async sessions from the DI container's session
factory. Atomicity comes from the database:

- mentions: ``INSERT ... ON CONFLICT DO NOTHING`` on the identity constraint
- events: ``UPDATE ... WHERE version = :expected`` (or a conflict-free insert
  for a new event), so a stale write changes no rows
"""

from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import datetime

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from trendpulse.core.exceptions import StaleEventError, StoreError
from trendpulse.core.logging import get_logger
from trendpulse.core.types import SessionFactory
from trendpulse.models import (
    BaselineRecord,
    JobFailureRecord,
    JobRunRecord,
    MentionRecord,
    TrendEventRecord,
)
from trendpulse.services.engine.base import JobFailure, PassStats, PassStatus, TrendEvent
from trendpulse.services.engine.baseline import BaselineState
from trendpulse.services.ingest.base import Mention, StoredMention
from trendpulse.services.store.base import TrendStore

logger = get_logger(__name__)

_UINT64 = 1 << 64


def _simhash_to_db(value: int | None) -> int | None:
    """Unsigned 64-bit SimHash to the signed range of a BIGINT column."""
    if value is None:
        return None
    return value - _UINT64 if value >= 1 << 63 else value


def _simhash_from_db(value: int | None) -> int | None:
    if value is None:
        return None
    return value + _UINT64 if value < 0 else value


def _to_stored(row: MentionRecord) -> StoredMention:
    mention = Mention(
        topic_key=row.topic_key,
        label=row.label,
        entity_type=row.entity_type,
        entity_refs=tuple(row.entity_refs or ()),
        source_id=row.source_id,
        source_type=row.source_type,
        source_tier=row.source_tier,
        observed_at=row.observed_at,
        raw_text_ref=row.raw_text_ref,
        dedup_key=row.dedup_key,
        content_signature=row.content_signature,
        label_hint=row.label_hint,
    )
    return StoredMention(
        mention=mention,
        is_duplicate=row.is_duplicate,
        duplicate_of=row.duplicate_of,
        content_hash=row.content_hash,
        simhash=_simhash_from_db(row.simhash),
        accepted_at=row.accepted_at,
    )


def _to_state(row: BaselineRecord) -> BaselineState:
    return BaselineState(
        topic_key=row.topic_key,
        buckets={int(h): int(c) for h, c in (row.buckets or {}).items()},
        folded_total=row.folded_total,
        total_observations=row.total_observations,
        last_observed_at=row.last_observed_at,
    )


class SqlAlchemyTrendStore(TrendStore):
    """TrendStore backed by PostgreSQL.

    Args:
        session_factory: Async session factory (``async_sessionmaker``)
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self.session_factory = session_factory

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        """Session that commits on success and maps driver errors to StoreError."""
        try:
            async with self.session_factory() as session:
                yield session
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Store operation failed", operation=operation, error=str(e))
            raise StoreError(f"Store operation '{operation}' failed", operation=operation) from e

    # ============================================
    # Mentions
    # ============================================

    async def add_mention(self, record: StoredMention) -> bool:
        m = record.mention
        stmt = (
            pg_insert(MentionRecord)
            .values(
                mention_key=record.mention_key,
                topic_key=m.topic_key,
                label=m.label,
                entity_type=m.entity_type,
                entity_refs=list(m.entity_refs),
                source_id=m.source_id,
                source_type=m.source_type,
                source_tier=m.source_tier,
                dedup_key=m.dedup_key,
                raw_text_ref=m.raw_text_ref,
                content_signature=m.content_signature,
                label_hint=m.label_hint,
                observed_at=m.observed_at,
                accepted_at=record.accepted_at,
                is_duplicate=record.is_duplicate,
                duplicate_of=record.duplicate_of,
                content_hash=record.content_hash,
                simhash=_simhash_to_db(record.simhash),
            )
            .on_conflict_do_nothing(constraint="uq_mentions_identity")
            .returning(MentionRecord.id)
        )
        async with self._session("add_mention") as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none() is not None

    async def delete_mention(self, mention_key: str) -> bool:
        stmt = (
            delete(MentionRecord)
            .where(MentionRecord.mention_key == mention_key)
            .returning(MentionRecord.id)
        )
        async with self._session("delete_mention") as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none() is not None

    async def list_mentions(
        self, topic_keys: Iterable[str], since: datetime, until: datetime
    ) -> list[StoredMention]:
        keys = sorted(set(topic_keys))
        if not keys:
            return []
        stmt = (
            select(MentionRecord)
            .where(
                MentionRecord.topic_key.in_(keys),
                MentionRecord.observed_at > since,
                MentionRecord.observed_at <= until,
            )
            .order_by(MentionRecord.observed_at, MentionRecord.mention_key)
        )
        async with self._session("list_mentions") as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [_to_stored(r) for r in rows]

    async def list_mentions_between(self, start: datetime, end: datetime) -> list[StoredMention]:
        stmt = (
            select(MentionRecord)
            .where(
                or_(
                    (MentionRecord.observed_at > start) & (MentionRecord.observed_at <= end),
                    (MentionRecord.accepted_at > start) & (MentionRecord.accepted_at <= end),
                )
            )
            .order_by(MentionRecord.observed_at, MentionRecord.mention_key)
        )
        async with self._session("list_mentions_between") as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [_to_stored(r) for r in rows]

    async def latest_observation(self, topic_keys: Iterable[str]) -> datetime | None:
        keys = sorted(set(topic_keys))
        if not keys:
            return None
        stmt = select(func.max(MentionRecord.observed_at)).where(
            MentionRecord.topic_key.in_(keys),
            MentionRecord.is_duplicate.is_(False),
        )
        async with self._session("latest_observation") as session:
            return (await session.execute(stmt)).scalar_one_or_none()

    # ============================================
    # Baselines
    # ============================================

    async def get_baseline_state(self, topic_key: str) -> BaselineState | None:
        async with self._session("get_baseline_state") as session:
            row = await session.get(BaselineRecord, topic_key)
            return _to_state(row) if row else None

    async def get_baseline_states(self, topic_keys: Iterable[str]) -> dict[str, BaselineState]:
        keys = sorted(set(topic_keys))
        if not keys:
            return {}
        stmt = select(BaselineRecord).where(BaselineRecord.topic_key.in_(keys))
        async with self._session("get_baseline_states") as session:
            rows = (await session.execute(stmt)).scalars().all()
        return {r.topic_key: _to_state(r) for r in rows}

    async def save_baseline_state(self, state: BaselineState) -> None:
        values = {
            "buckets": {str(h): c for h, c in state.buckets.items()},
            "folded_total": state.folded_total,
            "total_observations": state.total_observations,
            "last_observed_at": state.last_observed_at,
        }
        stmt = (
            pg_insert(BaselineRecord)
            .values(topic_key=state.topic_key, **values)
            .on_conflict_do_update(index_elements=[BaselineRecord.topic_key], set_=values)
        )
        async with self._session("save_baseline_state") as session:
            await session.execute(stmt)

    # ============================================
    # Trend events
    # ============================================

    async def get_event(self, event_key: str) -> TrendEvent | None:
        async with self._session("get_event") as session:
            row = await session.get(TrendEventRecord, event_key)
            return row.to_event() if row else None

    async def list_events(self, include_archived: bool = False) -> list[TrendEvent]:
        stmt = select(TrendEventRecord).order_by(TrendEventRecord.event_key)
        if not include_archived:
            stmt = stmt.where(TrendEventRecord.archived_at.is_(None))
        async with self._session("list_events") as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [r.to_event() for r in rows]

    async def list_archived_events_for_topics(self, topic_keys: Iterable[str]) -> list[TrendEvent]:
        keys = sorted(set(topic_keys))
        if not keys:
            return []
        stmt = (
            select(TrendEventRecord)
            .where(
                TrendEventRecord.archived_at.is_not(None),
                TrendEventRecord.member_topic_keys.overlap(keys),
            )
            .order_by(TrendEventRecord.event_key)
        )
        async with self._session("list_archived_events_for_topics") as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [r.to_event() for r in rows]

    async def save_event(self, event: TrendEvent, expected_version: int) -> TrendEvent:
        stored = event.model_copy(update={"version": expected_version + 1})
        record = TrendEventRecord.from_event(stored)
        columns = {
            "canonical_label": record.canonical_label,
            "trend_stage": record.trend_stage,
            "is_trending": record.is_trending,
            "is_breaking": record.is_breaking,
            "rank_score": record.rank_score,
            "confidence_score": record.confidence_score,
            "last_updated_at": record.last_updated_at,
            "archived_at": record.archived_at,
            "version": record.version,
            "member_topic_keys": record.member_topic_keys,
            "payload": record.payload,
        }

        if expected_version == 0:
            stmt = (
                pg_insert(TrendEventRecord)
                .values(event_key=event.event_key, **columns)
                .on_conflict_do_nothing(index_elements=[TrendEventRecord.event_key])
                .returning(TrendEventRecord.event_key)
            )
        else:
            stmt = (
                update(TrendEventRecord)
                .where(
                    TrendEventRecord.event_key == event.event_key,
                    TrendEventRecord.version == expected_version,
                )
                .values(**columns)
                .returning(TrendEventRecord.event_key)
            )

        async with self._session("save_event") as session:
            written = (await session.execute(stmt)).scalar_one_or_none()
            if written is None:
                actual = await session.scalar(
                    select(TrendEventRecord.version).where(
                        TrendEventRecord.event_key == event.event_key
                    )
                )
                raise StaleEventError(event.event_key, expected_version, actual)
        return stored

    async def list_trending(
        self, since: datetime, limit: int, offset: int = 0
    ) -> tuple[list[TrendEvent], int]:
        where = (
            TrendEventRecord.is_trending.is_(True),
            TrendEventRecord.last_updated_at >= since,
        )
        stmt = (
            select(TrendEventRecord)
            .where(*where)
            .order_by(
                TrendEventRecord.is_breaking.desc(),
                TrendEventRecord.rank_score.desc().nulls_last(),
                TrendEventRecord.confidence_score.desc(),
                TrendEventRecord.event_key,
            )
            .limit(limit)
            .offset(offset)
        )
        count_stmt = select(func.count()).select_from(TrendEventRecord).where(*where)
        async with self._session("list_trending") as session:
            rows = (await session.execute(stmt)).scalars().all()
            total = (await session.execute(count_stmt)).scalar_one()
        return [r.to_event() for r in rows], total

    # ============================================
    # Jobs
    # ============================================

    async def record_job_run(self, stats: PassStats) -> None:
        async with self._session("record_job_run") as session:
            session.add(JobRunRecord(**stats.model_dump()))

    async def last_successful_run(self, job_name: str) -> PassStats | None:
        stmt = (
            select(JobRunRecord)
            .where(
                JobRunRecord.job_name == job_name,
                JobRunRecord.status.in_([PassStatus.SUCCEEDED, PassStatus.PARTIAL]),
            )
            .order_by(JobRunRecord.window_end.desc())
            .limit(1)
        )
        async with self._session("last_successful_run") as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return PassStats.model_validate(row, from_attributes=True) if row else None

    async def record_job_failure(self, failure: JobFailure) -> None:
        async with self._session("record_job_failure") as session:
            session.add(
                JobFailureRecord(
                    job_name=failure.job_name,
                    error=failure.error,
                    occurred_at=failure.occurred_at,
                    context=failure.context,
                )
            )

    async def list_job_failures(
        self, job_name: str | None = None, limit: int = 50
    ) -> list[JobFailure]:
        stmt = select(JobFailureRecord).order_by(JobFailureRecord.occurred_at.desc()).limit(limit)
        if job_name is not None:
            stmt = stmt.where(JobFailureRecord.job_name == job_name)
        async with self._session("list_job_failures") as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [
            JobFailure(
                job_name=r.job_name, error=r.error, occurred_at=r.occurred_at, context=r.context
            )
            for r in rows
        ]


__all__ = ["SqlAlchemyTrendStore"]
