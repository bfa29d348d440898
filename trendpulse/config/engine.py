"""Top-level engine configuration model."""

from pydantic import BaseModel, Field

from trendpulse.config.clustering import ArticleDedupConfig, ClusteringConfig
from trendpulse.config.detection import BaselineConfig, SpikeConfig
from trendpulse.config.scoring import CorroborationConfig, RankConfig


class IngestConfig(BaseModel):
    """Ingest buffer configuration.

    Attributes:
        lock_shards: Size of the per-topic lock pool
        max_future_skew_seconds: How far in the future an observation may be stamped
        lock_ttl_seconds: Expiry of a cross-process topic lock held by a crashed worker
        lock_wait_seconds: How long a submit waits for a busy topic lock
    """

    lock_shards: int = Field(default=64, ge=1, le=4096)
    max_future_skew_seconds: int = Field(default=300, ge=0)
    lock_ttl_seconds: float = Field(default=10.0, gt=0)
    lock_wait_seconds: float = Field(default=5.0, gt=0)


class FeedConfig(BaseModel):
    """Trending feed read view.

    Attributes:
        recency_hours: Only events updated within this window are listed
        default_limit: Page size when none is requested
        max_limit: Largest page size a caller may request
    """

    recency_hours: float = Field(default=24.0, gt=0)
    default_limit: int = Field(default=20, ge=1)
    max_limit: int = Field(default=100, ge=1)


class PassConfig(BaseModel):
    """Scoring pass configuration.

    Attributes:
        job_name: Name recorded on job runs and failures
        lookback_minutes: Default batch window when the scheduler gives none
        max_catchup_minutes: Furthest back a default window reaches after missed runs
        lease_ttl_ms: Lifetime of a per-cluster lease
    """

    job_name: str = Field(default="trend_scoring")
    lookback_minutes: int = Field(default=15, ge=1)
    max_catchup_minutes: int = Field(default=1440, ge=1)
    lease_ttl_ms: int = Field(default=60_000, ge=1000)


class EngineConfig(BaseModel):
    """Complete engine configuration, usually loaded from config/defaults.yaml."""

    baseline: BaselineConfig = Field(default_factory=BaselineConfig)
    spike: SpikeConfig = Field(default_factory=SpikeConfig)
    clustering: ClusteringConfig = Field(default_factory=ClusteringConfig)
    article_dedup: ArticleDedupConfig = Field(default_factory=ArticleDedupConfig)
    corroboration: CorroborationConfig = Field(default_factory=CorroborationConfig)
    rank: RankConfig = Field(default_factory=RankConfig)
    ingest: IngestConfig = Field(default_factory=IngestConfig)
    feed: FeedConfig = Field(default_factory=FeedConfig)
    scoring_pass: PassConfig = Field(default_factory=PassConfig)


__all__ = ["EngineConfig", "FeedConfig", "IngestConfig", "PassConfig"]
