"""Corroboration, evergreen and rank configuration models."""

from pydantic import BaseModel, Field, field_validator, model_validator

from trendpulse.config.validators import (
    normalize_string_list,
    validate_descending,
    validate_weights_sum,
)


class TierWeights(BaseModel):
    """Evidence weight per source tier (tier 1 = most authoritative)."""

    tier1: float = Field(default=1.0, ge=0, le=1)
    tier2: float = Field(default=0.7, ge=0, le=1)
    tier3: float = Field(default=0.4, ge=0, le=1)

    @model_validator(mode="after")
    def check_order(self) -> "TierWeights":
        validate_descending(
            {"tier1": self.tier1, "tier2": self.tier2, "tier3": self.tier3},
            field_name="Tier weights",
        )
        return self

    def for_tier(self, tier: int) -> float:
        return {1: self.tier1, 2: self.tier2, 3: self.tier3}[tier]


class CorroborationConfig(BaseModel):
    """Multi-source corroboration scoring.

    Attributes:
        tier_weights: Evidence weight per tier
        volume_weight: Weight of the log-scaled evidence volume factor
        diversity_weight: Weight of the tier/source diversity factor
        authority_weight: Weight of the best-tier authority factor
        volume_saturation: Weighted evidence at which the volume factor saturates
        diversity_source_cap: Extra sources beyond the first that saturate diversity
        tier3_only_ceiling: Confidence ceiling without any tier-1/2 source
        single_source_ceiling: Ceiling for tier-1/2 evidence from a single source
    """

    tier_weights: TierWeights = Field(default_factory=TierWeights)
    volume_weight: float = Field(default=0.4, ge=0, le=1)
    diversity_weight: float = Field(default=0.3, ge=0, le=1)
    authority_weight: float = Field(default=0.3, ge=0, le=1)
    volume_saturation: float = Field(default=32.0, gt=0)
    diversity_source_cap: int = Field(default=4, ge=1)
    tier3_only_ceiling: float = Field(default=0.4, ge=0, le=1)
    single_source_ceiling: float = Field(default=0.75, ge=0, le=1)

    @model_validator(mode="after")
    def check_weights(self) -> "CorroborationConfig":
        validate_weights_sum(
            {
                "volume_weight": self.volume_weight,
                "diversity_weight": self.diversity_weight,
                "authority_weight": self.authority_weight,
            }
        )
        if self.tier3_only_ceiling > self.single_source_ceiling:
            raise ValueError("tier3_only_ceiling cannot exceed single_source_ceiling")
        return self


class EvergreenRelief(BaseModel):
    """Penalty applied to an evergreen topic once its z-score exceeds ``min_z``."""

    min_z: float
    penalty: float = Field(ge=0, le=1)


class EvergreenConfig(BaseModel):
    """Evergreen topic detection and penalty.

    A topic is evergreen when it is a known perennial entity or when its
    baseline shows steady high volume across both windows.

    Attributes:
        entities: Perennial topic keys/labels (lowercase)
        min_avg_30d: 30-day hourly average for a steady-volume topic
        min_avg_7d: 7-day hourly average for a steady-volume topic
        max_rsd: Relative std dev below which volume counts as steady
        single_word_min_avg_30d: Looser 30-day threshold for single-word labels
        single_word_min_avg_7d: Looser 7-day threshold for single-word labels
        single_word_max_rsd: Looser steadiness threshold for single-word labels
        relief: Penalties for evergreen topics with a strong spike, highest z first
        penalty_with_baseline: Penalty for an unspiking evergreen topic with baseline
        penalty_without_baseline: Penalty for an evergreen topic without baseline
    """

    entities: list[str] = Field(default_factory=list)
    min_avg_30d: float = Field(default=2.0, ge=0)
    min_avg_7d: float = Field(default=1.5, ge=0)
    max_rsd: float = Field(default=0.3, gt=0)
    single_word_min_avg_30d: float = Field(default=1.0, ge=0)
    single_word_min_avg_7d: float = Field(default=0.8, ge=0)
    single_word_max_rsd: float = Field(default=0.5, gt=0)
    relief: list[EvergreenRelief] = Field(
        default_factory=lambda: [
            EvergreenRelief(min_z=8.0, penalty=0.80),
            EvergreenRelief(min_z=6.0, penalty=0.55),
            EvergreenRelief(min_z=5.0, penalty=0.35),
            EvergreenRelief(min_z=4.0, penalty=0.20),
        ]
    )
    penalty_with_baseline: float = Field(default=0.05, ge=0, le=1)
    penalty_without_baseline: float = Field(default=0.08, ge=0, le=1)

    @field_validator("entities", mode="before")
    @classmethod
    def lowercase_entities(cls, v: list[str]) -> list[str]:
        """Normalize entity names to lowercase."""
        return normalize_string_list(v)

    @field_validator("relief")
    @classmethod
    def sort_relief(cls, v: list[EvergreenRelief]) -> list[EvergreenRelief]:
        """Keep relief steps ordered by z threshold, highest first."""
        return sorted(v, key=lambda r: r.min_z, reverse=True)


class LabelModifiers(BaseModel):
    """Rank multipliers by label provenance."""

    event_phrase: float = Field(default=1.0, ge=0, le=1)
    fallback_generated: float = Field(default=0.85, ge=0, le=1)
    entity_only_with_tier12: float = Field(default=0.6, ge=0, le=1)
    entity_only: float = Field(default=0.4, ge=0, le=1)


class BreakingConfig(BaseModel):
    """Breaking-news paths. All paths require trending plus tier-1/2 corroboration.

    Paths are tried in order; the first match wins. Ages are measured from
    the episode start.

    - fresh spike: z above ``fresh_spike_min_z``, news coverage, younger than
      ``fresh_spike_max_age_hours``
    - extreme z: z at least ``extreme_z_min`` with news coverage within
      ``extreme_z_max_age_hours``
    - high rank: rank at least ``high_rank_min`` and z above
      ``high_rank_min_z`` within ``high_rank_max_age_hours``
    - baseline surge: 1h count more than ``baseline_surge_min_ratio`` times
      over a defined baseline mean, from ``baseline_surge_min_sources``
      sources within ``baseline_surge_max_age_hours``
    - high corroboration: confidence at least ``high_corroboration_min_confidence``
      with ``high_corroboration_min_mentions`` in the last hour within
      ``high_corroboration_max_age_hours``
    - fresh activity: ``activity_min_mentions`` in the last hour from at least
      ``activity_min_news_sources`` news sources within ``activity_max_age_hours``
    """

    fresh_spike_min_z: float = Field(default=3.0)
    fresh_spike_max_age_hours: float = Field(default=8.0, gt=0)
    extreme_z_min: float = Field(default=4.0)
    extreme_z_min_news_sources: int = Field(default=1, ge=0)
    extreme_z_max_age_hours: float = Field(default=24.0, gt=0)
    high_rank_min: float = Field(default=60.0, ge=0)
    high_rank_min_z: float = Field(default=2.0)
    high_rank_max_age_hours: float = Field(default=4.0, gt=0)
    baseline_surge_min_ratio: float = Field(default=4.0, gt=0)
    baseline_surge_min_sources: int = Field(default=2, ge=1)
    baseline_surge_max_age_hours: float = Field(default=12.0, gt=0)
    high_corroboration_min_confidence: float = Field(default=0.75, ge=0, le=1)
    high_corroboration_min_mentions: int = Field(default=5, ge=1)
    high_corroboration_max_age_hours: float = Field(default=6.0, gt=0)
    activity_min_mentions: int = Field(default=8, ge=1)
    activity_min_news_sources: int = Field(default=2, ge=1)
    activity_max_age_hours: float = Field(default=3.0, gt=0)


class QualityGateConfig(BaseModel):
    """Label gates an event must pass before it can trend.

    Generic words ("news", "breaking", "update") collect mentions from
    unrelated stories and never make a useful trend on their own.

    Attributes:
        blocklist: Terms that never trend alone (lowercase)
        single_word_entities: Single-word labels trusted as named entities
        single_word_min_mentions: 24h mentions for a single-word label
        single_word_min_sources: Distinct sources for a single-word label
        single_word_min_news_sources: News sources for a single-word label
        min_mentions: 24h mentions for a multi-word label
        min_sources: Distinct sources that satisfy source diversity
        single_source_min_mentions: 24h mentions that let one news source suffice
    """

    blocklist: list[str] = Field(
        default_factory=lambda: [
            # generic politics
            "politics", "political", "government", "democracy", "freedom", "liberty",
            "america", "american", "united states", "usa", "congress", "senate", "house",
            "republican", "democrat", "conservative", "liberal", "progressive",
            # generic news words
            "breaking", "news", "update", "report", "latest", "today", "new", "says",
            "said", "announces", "announced", "confirms", "confirmed",
            # filler
            "people", "time", "year", "years", "day", "days", "week", "weeks", "first",
            "last", "next", "more", "most", "many", "some", "other",
            "claims", "calls", "called", "asks", "asked",
            # social media
            "thread", "post", "tweet", "retweet", "share", "like", "comment",
            "watch", "video", "photo", "image", "live", "opinion", "editorial",
            # ambiguous short words
            "us", "uk", "eu", "un", "mlk", "ice",
            # stopwords
            "the", "a", "an", "is", "are", "was", "were", "be", "been", "has", "have",
            "had", "do", "does", "did", "will", "would", "could", "should",
        ]
    )
    single_word_entities: list[str] = Field(
        default_factory=lambda: [
            "nato", "fbi", "cia", "doj", "dhs", "epa", "fda", "cdc", "nsa", "irs",
            "sec", "ftc", "fcc", "fec", "osha", "scotus", "potus", "hamas",
            "hezbollah", "isis",
        ]
    )
    single_word_min_mentions: int = Field(default=20, ge=1)
    single_word_min_sources: int = Field(default=3, ge=1)
    single_word_min_news_sources: int = Field(default=3, ge=0)
    min_mentions: int = Field(default=3, ge=1)
    min_sources: int = Field(default=2, ge=1)
    single_source_min_mentions: int = Field(default=5, ge=1)

    @field_validator("blocklist", "single_word_entities", mode="before")
    @classmethod
    def lowercase_terms(cls, v: list[str]) -> list[str]:
        """Normalize terms to lowercase."""
        return normalize_string_list(v)


class RankConfig(BaseModel):
    """Rank composition.

    rank = (velocity + confidence + activity) * recency * evergreen * label

    Attributes:
        z_multiplier: Points per unit of z-score
        velocity_cap: Maximum velocity points
        stable_baseline_quality: Velocity multiplier with a stable baseline
        unstable_baseline_quality: Velocity multiplier with a noisy baseline
        proxy_baseline_quality: Velocity multiplier for the no-baseline volume proxy
        confidence_points: Points for confidence 1.0
        activity_cap: Maximum activity points
        trending_min_rank: Minimum rank for is_trending
        volume_gate_1h: Mentions in 1h that open the volume gate
        volume_gate_24h: Mentions in 24h that open the volume gate
        volume_gate_sources: Distinct sources that open the volume gate
        recency_full_hours: Age up to which recency decay is 1.0
        recency_mid_hours: Age at which decay reaches ``recency_mid_factor``
        recency_mid_factor: Decay at ``recency_mid_hours``
        recency_end_hours: Age at which decay reaches ``recency_floor``
        recency_floor: Minimum decay
    """

    z_multiplier: float = Field(default=5.0, gt=0)
    velocity_cap: float = Field(default=50.0, gt=0)
    stable_baseline_quality: float = Field(default=1.0, ge=0, le=1)
    unstable_baseline_quality: float = Field(default=0.8, ge=0, le=1)
    proxy_baseline_quality: float = Field(default=0.6, ge=0, le=1)
    confidence_points: float = Field(default=30.0, ge=0)
    activity_cap: float = Field(default=20.0, ge=0)
    trending_min_rank: float = Field(default=20.0, ge=0)
    volume_gate_1h: int = Field(default=2, ge=1)
    volume_gate_24h: int = Field(default=5, ge=1)
    volume_gate_sources: int = Field(default=2, ge=1)
    recency_full_hours: float = Field(default=2.0, ge=0)
    recency_mid_hours: float = Field(default=12.0, gt=0)
    recency_mid_factor: float = Field(default=0.5, gt=0, le=1)
    recency_end_hours: float = Field(default=24.0, gt=0)
    recency_floor: float = Field(default=0.3, gt=0, le=1)
    label_modifiers: LabelModifiers = Field(default_factory=LabelModifiers)
    breaking: BreakingConfig = Field(default_factory=BreakingConfig)
    evergreen: EvergreenConfig = Field(default_factory=EvergreenConfig)
    quality: QualityGateConfig = Field(default_factory=QualityGateConfig)

    @model_validator(mode="after")
    def check_recency(self) -> "RankConfig":
        if not self.recency_full_hours < self.recency_mid_hours < self.recency_end_hours:
            raise ValueError("recency hours must increase: full < mid < end")
        if self.recency_floor > self.recency_mid_factor:
            raise ValueError("recency_floor cannot exceed recency_mid_factor")
        return self


__all__ = [
    "BreakingConfig",
    "CorroborationConfig",
    "EvergreenConfig",
    "EvergreenRelief",
    "LabelModifiers",
    "QualityGateConfig",
    "RankConfig",
    "TierWeights",
]
