"""Mention ORM model.

Mentions are append-only. The identity tuple is a unique constraint, so
duplicate submissions are rejected by the database itself.
"""

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Enum,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column

from trendpulse.models.base import Base, UUIDMixin
from trendpulse.services.engine.base import LabelSource
from trendpulse.services.ingest.base import SourceType


class MentionRecord(Base, UUIDMixin):
    """Stored topic mention.

    Attributes:
        mention_key: Joined identity tuple, referenced by duplicates
        topic_key / source_id / source_type / dedup_key: Identity tuple
        source_tier: Authority tier 1-3
        observed_at: Observation time at the source
        accepted_at: When the ingest buffer accepted it
        is_duplicate / duplicate_of: Article near-duplicate flag and original
        content_hash / simhash: Article signatures (when a body or signature was supplied)
        content_signature: Adapter-supplied article signature, as received
    """

    __tablename__ = "mentions"

    mention_key: Mapped[str] = mapped_column(Text, nullable=False)
    topic_key: Mapped[str] = mapped_column(String(255), nullable=False)
    label: Mapped[str | None] = mapped_column(String(500))
    entity_type: Mapped[str | None] = mapped_column(String(50))
    entity_refs: Mapped[list[str]] = mapped_column(ARRAY(String), nullable=False, default=list)
    source_id: Mapped[str] = mapped_column(String(255), nullable=False)
    source_type: Mapped[SourceType] = mapped_column(Enum(SourceType), nullable=False)
    source_tier: Mapped[int] = mapped_column(Integer, nullable=False)
    dedup_key: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    raw_text_ref: Mapped[str | None] = mapped_column(Text)
    content_signature: Mapped[str | None] = mapped_column(Text)
    label_hint: Mapped[LabelSource | None] = mapped_column(Enum(LabelSource))

    observed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    accepted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    is_duplicate: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    duplicate_of: Mapped[str | None] = mapped_column(Text)
    content_hash: Mapped[str | None] = mapped_column(String(64))
    simhash: Mapped[int | None] = mapped_column(BigInteger)

    __table_args__ = (
        UniqueConstraint(
            "topic_key", "source_id", "source_type", "dedup_key", name="uq_mentions_identity"
        ),
        Index("idx_mention_topic_observed", "topic_key", "observed_at"),
        Index("idx_mention_observed", "observed_at"),
        Index("idx_mention_accepted", "accepted_at"),
    )

    def __repr__(self) -> str:
        return f"<MentionRecord(topic={self.topic_key}, source={self.source_id})>"


__all__ = ["MentionRecord"]
