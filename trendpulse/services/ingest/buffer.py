"""Mention ingest buffer.

Validates incoming mention records, enforces identity uniqueness through
the store and keeps each topic's baseline current. Submissions for the
same topic serialize on a topic lock (sharded in-process, or backed by
Redis across processes); different topics run in parallel.
"""

from datetime import timedelta
from typing import Any

from pydantic import ValidationError
from redis.exceptions import RedisError

from trendpulse.config import IngestConfig
from trendpulse.core.exceptions import MentionRejectedError, StoreError
from trendpulse.core.locks import ShardedLock, TopicLock
from trendpulse.core.logging import get_logger
from trendpulse.services.engine.article_dedup import ArticleDeduplicator, ArticleFingerprint
from trendpulse.services.engine.baseline import BaselineTracker
from trendpulse.services.engine.windows import utcnow
from trendpulse.services.ingest.base import (
    IngestCounters,
    IngestResult,
    Mention,
    StoredMention,
)
from trendpulse.services.store.base import TrendStore

logger = get_logger(__name__)

class IngestBuffer:
    """Accepts mentions from source adapters.

    Attributes:
        store: Trend store (atomic ``add_mention``)
        tracker: Baseline tracker updated for every original mention
        locks: Per-topic critical sections
        deduplicator: Article duplicate detector (optional; needs Redis)
        config: Ingest configuration
        counters: Running accepted/duplicate/rejected counters

    Example:
        >>> buffer = IngestBuffer(store, tracker, ShardedLock())
        >>> result = await buffer.submit(mention)
        >>> result.accepted
        True
    """

    def __init__(
        self,
        store: TrendStore,
        tracker: BaselineTracker,
        locks: TopicLock | None = None,
        deduplicator: ArticleDeduplicator | None = None,
        config: IngestConfig | None = None,
    ):
        self.store = store
        self.tracker = tracker
        self.config = config or IngestConfig()
        self.locks = locks or ShardedLock(self.config.lock_shards)
        self.deduplicator = deduplicator
        self.counters = IngestCounters()

    def validate(self, mention: Mention | dict[str, Any]) -> Mention:
        """Coerce raw input into a Mention.

        Raises:
            MentionRejectedError: For malformed input or implausible timestamps
        """
        if not isinstance(mention, Mention):
            try:
                mention = Mention.model_validate(mention)
            except ValidationError as e:
                first = e.errors()[0]
                field = ".".join(str(p) for p in first["loc"]) or "record"
                raise MentionRejectedError(
                    reason=f"invalid_{field}",
                    message=f"Invalid mention field '{field}': {first['msg']}",
                    context={"errors": e.error_count()},
                ) from e

        skew = timedelta(seconds=self.config.max_future_skew_seconds)
        if mention.observed_at > utcnow() + skew:
            raise MentionRejectedError(
                reason="observed_at_in_future",
                context={"observed_at": mention.observed_at.isoformat()},
            )
        return mention

    async def submit(
        self, mention: Mention | dict[str, Any], body: str | None = None
    ) -> IngestResult:
        """Submit one mention.

        A mention is stored before its topic's baseline is updated. If the
        baseline update fails, the stored mention is removed again so the
        caller can retry the same identity.

        Args:
            mention: Mention model or raw mapping from an adapter
            body: Article text for duplicate detection (optional; falls back
                to the mention's ``content_signature``)

        Returns:
            IngestResult; malformed input is reported, never raised

        Raises:
            StoreError: If the store or the baseline update fails
            TopicLockTimeoutError: If the topic's lock is busy elsewhere
        """
        try:
            mention = self.validate(mention)
        except MentionRejectedError as e:
            self.counters.rejected += 1
            logger.warning("Mention rejected", **e.context)
            return IngestResult(accepted=False, reason=e.reason)

        async with self.locks.hold(mention.topic_key):
            fingerprint = self._fingerprint(mention, body)
            record = StoredMention(mention=mention, accepted_at=utcnow())

            if fingerprint is not None and self.deduplicator is not None:
                dedup = await self.deduplicator.check(fingerprint, mention.mention_key)
                record = record.model_copy(
                    update={
                        "content_hash": fingerprint.content_hash,
                        "simhash": fingerprint.simhash,
                        "is_duplicate": dedup.is_duplicate,
                        "duplicate_of": dedup.duplicate_of,
                    }
                )

            if not await self.store.add_mention(record):
                self.counters.duplicates += 1
                logger.debug("Duplicate mention ignored", mention_key=mention.mention_key)
                return IngestResult(accepted=False, duplicate=True)

            if not record.is_duplicate:
                try:
                    await self.tracker.update(mention.topic_key, mention.observed_at)
                except Exception:
                    await self._withdraw(record, fingerprint)
                    raise
                if fingerprint is not None and self.deduplicator is not None:
                    await self.deduplicator.remember(fingerprint, mention.mention_key)

            self.counters.accepted += 1
            if record.is_duplicate:
                self.counters.article_duplicates += 1

        logger.debug(
            "Mention accepted",
            topic_key=mention.topic_key,
            source_id=mention.source_id,
            tier=mention.source_tier,
            duplicate_article=record.is_duplicate,
        )
        return IngestResult(
            accepted=True,
            is_duplicate_article=record.is_duplicate,
            duplicate_of=record.duplicate_of,
        )

    def _fingerprint(self, mention: Mention, body: str | None) -> ArticleFingerprint | None:
        if self.deduplicator is None:
            return None
        if body:
            return self.deduplicator.fingerprint(body)
        if mention.content_signature:
            return self.deduplicator.signature_fingerprint(mention.content_signature)
        return None

    async def _withdraw(
        self, record: StoredMention, fingerprint: ArticleFingerprint | None
    ) -> None:
        """Undo a stored mention whose baseline update failed."""
        logger.warning(
            "Baseline update failed, withdrawing mention",
            topic_key=record.topic_key,
            mention_key=record.mention_key,
        )
        try:
            await self.store.delete_mention(record.mention_key)
            if fingerprint is not None and self.deduplicator is not None:
                await self.deduplicator.forget(fingerprint, record.mention_key)
        except (StoreError, RedisError) as e:
            logger.error(
                "Mention withdrawal failed",
                mention_key=record.mention_key,
                error=str(e),
            )

    async def submit_many(
        self, mentions: list[Mention | dict[str, Any]]
    ) -> list[IngestResult]:
        """Submit mentions one after another, preserving order of results."""
        return [await self.submit(m) for m in mentions]

__all__ = ["IngestBuffer"]
