"""Core data models for the trend engine.

Defines the data structures that flow through scoring:
- TrendStage / LabelSource / BreakingPath: explicit enums
- TrendEvent: a clustered topic with derived metrics (one per event_key)
- BatchWindow: the mention window a scoring pass covers
- PassStats / JobRun / JobFailure: observability records
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from pydantic import AwareDatetime, BaseModel, Field, model_validator


class TrendStage(str, Enum):
    """Lifecycle stage of a trend event."""

    EMERGING = "emerging"  # Rising without a usable baseline
    SURGING = "surging"  # Well above baseline and accelerating
    PEAKING = "peaking"  # Well above baseline, no longer accelerating
    DECLINING = "declining"  # Dropped below baseline after being active
    STABLE = "stable"  # Nothing unusual; terminal once archived

    @property
    def is_active(self) -> bool:
        return self in (TrendStage.EMERGING, TrendStage.SURGING, TrendStage.PEAKING)


class LabelSource(str, Enum):
    """Provenance/quality of an event's display label."""

    EVENT_PHRASE = "event_phrase"  # Describes something happening
    FALLBACK_GENERATED = "fallback_generated"  # Multi-word label without an event verb
    ENTITY_ONLY = "entity_only"  # A bare entity name


class BreakingPath(str, Enum):
    """Which breaking-news rule fired."""

    FRESH_SPIKE = "fresh_spike"
    EXTREME_Z = "extreme_z"
    HIGH_RANK_FRESH = "high_rank_fresh"
    BASELINE_SURGE = "baseline_surge"
    HIGH_CORROBORATION = "high_corroboration"
    FRESH_ACTIVITY = "fresh_activity"


class TrendEvent(BaseModel):
    """A clustered topic and everything the engine derives about it.

    Attributes:
        event_key: Stable unique key of the cluster
        canonical_label: Display label (unique across events)
        alias_variants: Normalized label variants merged into the cluster
        alias_displays: Normalized alias -> first raw display label seen
        alias_first_seen: Normalized alias -> first observation time
        member_topic_keys: Topic keys whose mentions feed this event
        entity_refs: Entity references seen on member mentions
        first_seen_at / last_seen_at / peak_at: Observation timestamps
        current_15m..current_24h: Non-duplicate mention counts per window
        velocity_1h / velocity_6h / acceleration: Per-hour rates
        z_score: Deviation from baseline; None without a defined baseline
        baseline_mean / baseline_std: Baseline used for this pass
        trend_stage: Lifecycle stage
        spike_*: Spike episode state (fires once per episode)
        confidence_*: Corroboration output
        tier*_count / source_count / duplicate_count: Evidence tallies
        rank_* / label_* / evergreen_* / recency_decay: Rank output
        archived_at: Set when the event decays into terminal STABLE
        version: Optimistic concurrency counter, bumped on every write
    """

    event_key: str
    canonical_label: str
    alias_variants: list[str] = Field(default_factory=list)
    alias_displays: dict[str, str] = Field(default_factory=dict)
    alias_first_seen: dict[str, AwareDatetime] = Field(default_factory=dict)
    member_topic_keys: list[str] = Field(default_factory=list)
    entity_refs: list[str] = Field(default_factory=list)

    first_seen_at: AwareDatetime
    last_seen_at: AwareDatetime
    peak_at: AwareDatetime | None = None

    current_15m: int = Field(default=0, ge=0)
    current_1h: int = Field(default=0, ge=0)
    current_6h: int = Field(default=0, ge=0)
    current_24h: int = Field(default=0, ge=0)
    peak_1h: int = Field(default=0, ge=0)

    velocity_1h: float = 0.0
    velocity_6h: float = 0.0
    acceleration: float = 0.0
    z_score: float | None = None
    baseline_mean: float | None = None
    baseline_std: float | None = None

    trend_stage: TrendStage = TrendStage.STABLE
    is_trending: bool = False
    is_breaking: bool = False
    breaking_path: BreakingPath | None = None

    spike_detected: bool = False
    spike_magnitude: float | None = None
    spike_detected_at: AwareDatetime | None = None
    spike_episode_active: bool = False

    confidence_score: float = Field(default=0.0, ge=0.0, le=1.0)
    confidence_factors: dict[str, float] = Field(default_factory=dict)
    has_tier12_corroboration: bool = False
    is_tier3_only: bool = True
    tier1_count: int = Field(default=0, ge=0)
    tier2_count: int = Field(default=0, ge=0)
    tier3_count: int = Field(default=0, ge=0)
    source_count: int = Field(default=0, ge=0)
    duplicate_count: int = Field(default=0, ge=0)

    rank_score: float | None = None
    label_quality: float = Field(default=1.0, ge=0.0, le=1.0)
    label_source: LabelSource = LabelSource.FALLBACK_GENERATED
    evergreen_penalty: float = Field(default=1.0, ge=0.0, le=1.0)
    is_evergreen: bool = False
    recency_decay: float = Field(default=1.0, ge=0.0, le=1.0)

    archived_at: AwareDatetime | None = None
    updated_at: AwareDatetime
    version: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def check_breaking_implies_trending(self) -> "TrendEvent":
        if self.is_breaking and not self.is_trending:
            raise ValueError("is_breaking requires is_trending")
        return self

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None


def feed_sort_key(event: TrendEvent) -> tuple[Any, ...]:
    """Total order for feeds: breaking first, rank desc (nulls last), confidence desc.

    event_key breaks remaining ties so equal scores always list identically.
    """
    return (
        not event.is_breaking,
        event.rank_score is None,
        -(event.rank_score or 0.0),
        -event.confidence_score,
        event.event_key,
    )


class BatchWindow(BaseModel):
    """Half-open window ``(start, end]`` of mention observations a pass covers."""

    start: AwareDatetime
    end: AwareDatetime

    @model_validator(mode="after")
    def check_order(self) -> "BatchWindow":
        if self.end <= self.start:
            raise ValueError("BatchWindow end must be after start")
        return self

    @classmethod
    def ending_at(cls, end: datetime, minutes: int) -> "BatchWindow":
        return cls(start=end - timedelta(minutes=minutes), end=end)


class PassStatus(str, Enum):
    """Outcome of a scoring pass."""

    SUCCEEDED = "succeeded"
    PARTIAL = "partial"  # Some clusters failed, the rest were committed
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


class PassStats(BaseModel):
    """Counters for one scoring pass."""

    job_name: str
    window_start: datetime
    window_end: datetime
    started_at: datetime
    completed_at: datetime | None = None
    status: PassStatus = PassStatus.SUCCEEDED
    mentions_processed: int = 0
    clusters_created: int = 0
    clusters_merged: int = 0
    events_scored: int = 0
    events_failed: int = 0
    events_skipped: int = 0
    events_archived: int = 0
    spikes_detected: int = 0
    duration_ms: float = 0.0
    errors: list[str] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == PassStatus.SUCCEEDED


class JobFailure(BaseModel):
    """A failed scheduled job, persisted for operators."""

    job_name: str
    error: str
    occurred_at: datetime
    context: dict[str, Any] = Field(default_factory=dict)


__all__ = [
    "BatchWindow",
    "BreakingPath",
    "JobFailure",
    "LabelSource",
    "PassStats",
    "PassStatus",
    "TrendEvent",
    "TrendStage",
    "feed_sort_key",
]
