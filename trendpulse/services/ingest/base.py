"""Mention data models for the ingest path.

Adapters deliver normalized mention records; the engine never sees
source-specific payloads. A mention is immutable once accepted.
"""

import re
from datetime import datetime
from enum import Enum

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, field_validator

from trendpulse.services.engine.base import LabelSource

_KEY_SEPARATOR = "|"


class SourceType(str, Enum):
    """Kind of source a mention came from."""

    RSS = "rss"
    GOOGLE_NEWS = "google_news"
    NEWS = "news"
    BLUESKY = "bluesky"
    SOCIAL = "social"

    @property
    def is_news(self) -> bool:
        return self in (SourceType.RSS, SourceType.GOOGLE_NEWS, SourceType.NEWS)


def normalize_topic_key(value: str) -> str:
    """Normalize a topic key: lowercase, whitespace to underscores, strip symbols.

    Example:
        >>> normalize_topic_key("  Fed Raises   Rates! ")
        'fed_raises_rates'
    """
    key = value.strip().lower()
    key = re.sub(r"\s+", "_", key)
    key = re.sub(r"[^\w-]", "", key)
    return key.strip("_-")


class Mention(BaseModel):
    """One observation of a topic from one source.

    Attributes:
        topic_key: Normalized topic or entity key
        label: Raw display label (defaults to the topic key)
        entity_type: Optional entity category supplied by the adapter
        entity_refs: Entity identifiers the mention refers to
        source_id: Identifier of the publishing source
        source_type: Kind of source
        source_tier: Authority tier, 1 (highest) to 3
        observed_at: When the mention was observed (timezone-aware)
        raw_text_ref: Pointer to the raw text (URL or storage key)
        dedup_key: Optional adapter-level dedup key (e.g. article URL)
        content_signature: Precomputed article signature, if any
        label_hint: Upstream label provenance, if the adapter knows it
    """

    model_config = ConfigDict(frozen=True)

    topic_key: str = Field(..., min_length=1, max_length=255)
    label: str | None = Field(default=None, max_length=500)
    entity_type: str | None = None
    entity_refs: tuple[str, ...] = ()
    source_id: str = Field(..., min_length=1, max_length=255)
    source_type: SourceType
    source_tier: int = Field(..., ge=1, le=3)
    observed_at: AwareDatetime
    raw_text_ref: str | None = None
    dedup_key: str = Field(default="", max_length=500)
    content_signature: str | None = None
    label_hint: LabelSource | None = None

    @field_validator("topic_key")
    @classmethod
    def normalize_key(cls, v: str) -> str:
        key = normalize_topic_key(v)
        if not key:
            raise ValueError("topic_key is empty after normalization")
        return key

    @field_validator("entity_refs", mode="before")
    @classmethod
    def normalize_entity_refs(cls, v: object) -> tuple[str, ...]:
        if v is None:
            return ()
        if isinstance(v, str):
            v = [v]
        return tuple(sorted({str(ref).strip().lower() for ref in v if str(ref).strip()}))

    @property
    def display_label(self) -> str:
        return (self.label or "").strip() or self.topic_key.replace("_", " ")

    @property
    def identity(self) -> tuple[str, str, str, str]:
        """Uniqueness key: (topic_key, source_id, source_type, dedup_key)."""
        return (self.topic_key, self.source_id, self.source_type.value, self.dedup_key)

    @property
    def mention_key(self) -> str:
        return _KEY_SEPARATOR.join(self.identity)


class StoredMention(BaseModel):
    """A mention as recorded by the store.

    Article-level near-duplicates are kept for audit but flagged, and only
    the original counts toward volume and tier evidence.

    Attributes:
        mention: The accepted mention
        is_duplicate: True if the body matched an earlier article
        duplicate_of: mention_key of the original article
        content_hash: Exact article signature (SHA-256 of normalized text)
        simhash: 64-bit near-duplicate signature
        accepted_at: When the ingest buffer accepted the mention
    """

    mention: Mention
    is_duplicate: bool = False
    duplicate_of: str | None = None
    content_hash: str | None = None
    simhash: int | None = None
    accepted_at: datetime

    @property
    def mention_key(self) -> str:
        return self.mention.mention_key

    @property
    def topic_key(self) -> str:
        return self.mention.topic_key

    @property
    def observed_at(self) -> datetime:
        return self.mention.observed_at


class IngestResult(BaseModel):
    """Outcome of submitting one mention.

    Attributes:
        accepted: The mention was stored
        duplicate: The mention repeated an already stored identity
        reason: Rejection reason for malformed input
        is_duplicate_article: Stored, but flagged as an article near-duplicate
        duplicate_of: Original article's mention_key when flagged
    """

    accepted: bool
    duplicate: bool = False
    reason: str | None = None
    is_duplicate_article: bool = False
    duplicate_of: str | None = None


class IngestCounters(BaseModel):
    """Running ingest counters."""

    accepted: int = 0
    duplicates: int = 0
    rejected: int = 0
    article_duplicates: int = 0


__all__ = [
    "IngestCounters",
    "IngestResult",
    "Mention",
    "SourceType",
    "StoredMention",
    "normalize_topic_key",
]
