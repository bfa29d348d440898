"""Trend event ORM model.

Feed and scheduling fields are real columns so they can be indexed and
sorted in SQL; the full event document lives in ``payload``.
"""

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Enum, Float, Index, Integer, String
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column

from trendpulse.models.base import Base, TimestampMixin
from trendpulse.services.engine.base import TrendEvent, TrendStage


class TrendEventRecord(Base, TimestampMixin):
    """Persisted trend event.

    Attributes:
        event_key: Stable cluster key
        canonical_label: Display label
        trend_stage: Lifecycle stage
        is_trending / is_breaking: Feed flags
        rank_score / confidence_score: Feed ordering
        last_updated_at: Engine's update time for the event (not the row)
        archived_at: Set when the event decayed
        version: Optimistic concurrency counter
        member_topic_keys: Topic keys feeding the event (overlap lookups)
        payload: Full serialized TrendEvent
    """

    __tablename__ = "trend_events"

    event_key: Mapped[str] = mapped_column(String(64), primary_key=True)
    canonical_label: Mapped[str] = mapped_column(String(500), nullable=False)
    trend_stage: Mapped[TrendStage] = mapped_column(Enum(TrendStage), nullable=False)
    is_trending: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_breaking: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    rank_score: Mapped[float | None] = mapped_column(Float)
    confidence_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    member_topic_keys: Mapped[list[str]] = mapped_column(
        ARRAY(String), nullable=False, default=list
    )
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)

    __table_args__ = (
        Index("idx_trend_event_feed", "is_trending", "last_updated_at"),
        Index("idx_trend_event_archived", "archived_at"),
        Index("idx_trend_event_member_topics", "member_topic_keys", postgresql_using="gin"),
    )

    @classmethod
    def from_event(cls, event: TrendEvent) -> "TrendEventRecord":
        record = cls(event_key=event.event_key)
        record.apply(event)
        return record

    def apply(self, event: TrendEvent) -> None:
        """Copy an event (including its version) onto this row."""
        self.canonical_label = event.canonical_label
        self.trend_stage = event.trend_stage
        self.is_trending = event.is_trending
        self.is_breaking = event.is_breaking
        self.rank_score = event.rank_score
        self.confidence_score = event.confidence_score
        self.last_updated_at = event.updated_at
        self.archived_at = event.archived_at
        self.version = event.version
        self.member_topic_keys = list(event.member_topic_keys)
        self.payload = event.model_dump(mode="json")

    def to_event(self) -> TrendEvent:
        return TrendEvent.model_validate({**self.payload, "version": self.version})

    def __repr__(self) -> str:
        return f"<TrendEventRecord(key={self.event_key}, stage={self.trend_stage}, v={self.version})>"


__all__ = ["TrendEventRecord"]
