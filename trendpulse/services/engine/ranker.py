"""Rank composition, trending and breaking classification.

rank = (velocity + confidence + activity) * recency * evergreen * label

- velocity: z-score points (capped), scaled by baseline quality; topics
  without a baseline use a Poisson-style absolute-volume proxy instead
- confidence: corroboration confidence scaled to points
- activity: log-scaled 1h and 24h mention counts (capped)
- recency: piecewise-linear decay over the time since the last mention

Breaking-path age checks use the episode age (spike start, else first seen).
"""

import math
from datetime import datetime

from pydantic import BaseModel, Field

from trendpulse.config import RankConfig
from trendpulse.core.logging import get_logger
from trendpulse.services.engine.base import BreakingPath, LabelSource, TrendStage
from trendpulse.services.engine.corroboration import Corroboration, EvidenceCounts
from trendpulse.services.engine.labels import label_quality
from trendpulse.services.engine.velocity import VelocityMetrics
from trendpulse.services.engine.windows import WindowCounts, hours_between

logger = get_logger(__name__)


class RankInputs(BaseModel):
    """Everything the composer needs for one event in one pass."""

    metrics: VelocityMetrics
    counts: WindowCounts
    baseline_stable: bool
    corroboration: Corroboration
    evidence: EvidenceCounts
    stage: TrendStage
    episode_started_at: datetime
    last_seen_at: datetime
    now: datetime
    label_source: LabelSource
    evergreen_penalty: float = Field(default=1.0, ge=0.0, le=1.0)
    quality_gate_failure: str | None = None


class RankResult(BaseModel):
    """Rank output for one event."""

    rank_score: float
    is_trending: bool
    is_breaking: bool
    breaking_path: BreakingPath | None = None
    recency_decay: float
    label_quality: float
    evergreen_penalty: float
    volume_gate: bool
    quality_gate_failure: str | None = None
    components: dict[str, float] = Field(default_factory=dict)


class RankComposer:
    """Composes rank scores and trending/breaking flags."""

    def __init__(self, config: RankConfig | None = None):
        self.config = config or RankConfig()

    def recency_decay(self, age_hours: float) -> float:
        """1.0 while fresh, linear to the mid factor, linear to the floor, then flat."""
        c = self.config
        age = max(0.0, age_hours)
        if age <= c.recency_full_hours:
            return 1.0
        if age <= c.recency_mid_hours:
            span = c.recency_mid_hours - c.recency_full_hours
            return 1.0 - (age - c.recency_full_hours) / span * (1.0 - c.recency_mid_factor)
        if age <= c.recency_end_hours:
            span = c.recency_end_hours - c.recency_mid_hours
            drop = c.recency_mid_factor - c.recency_floor
            return c.recency_mid_factor - (age - c.recency_mid_hours) / span * drop
        return c.recency_floor

    def velocity_points(self, metrics: VelocityMetrics, baseline_stable: bool) -> float:
        c = self.config
        if metrics.z_score is not None:
            quality = c.stable_baseline_quality if baseline_stable else c.unstable_baseline_quality
            z = metrics.z_score
        else:
            # No baseline: compare against a conservative expected rate
            expected = max(0.5, metrics.count_1h / 3)
            z = (metrics.count_1h - expected) / math.sqrt(max(1.0, expected))
            quality = c.proxy_baseline_quality
        return min(c.velocity_cap, max(0.0, z * c.z_multiplier)) * quality

    def activity_points(self, counts: WindowCounts) -> float:
        raw = math.log2(counts.count_1h + 1) * 4 + math.log2(counts.count_24h + 1) * 2
        return min(self.config.activity_cap, raw)

    def volume_gate(self, counts: WindowCounts, evidence: EvidenceCounts) -> bool:
        c = self.config
        return (
            counts.count_1h >= c.volume_gate_1h
            or counts.count_24h >= c.volume_gate_24h
            or evidence.source_count >= c.volume_gate_sources
        )

    def breaking_path(
        self, inputs: RankInputs, age_hours: float, rank: float
    ) -> BreakingPath | None:
        """First breaking rule that matches, in order of specificity."""
        b = self.config.breaking
        z = inputs.metrics.z_score
        news = inputs.evidence.news_source_count
        count_1h = inputs.counts.count_1h

        if z is not None and z > b.fresh_spike_min_z and news >= 1:
            if age_hours < b.fresh_spike_max_age_hours:
                return BreakingPath.FRESH_SPIKE
        if (
            z is not None
            and z >= b.extreme_z_min
            and news >= b.extreme_z_min_news_sources
            and age_hours < b.extreme_z_max_age_hours
        ):
            return BreakingPath.EXTREME_Z
        if (
            rank >= b.high_rank_min
            and z is not None
            and z > b.high_rank_min_z
            and age_hours < b.high_rank_max_age_hours
        ):
            return BreakingPath.HIGH_RANK_FRESH
        mean = inputs.metrics.baseline_mean
        if (
            inputs.metrics.baseline_defined
            and mean > 0
            and (count_1h - mean) / mean > b.baseline_surge_min_ratio
            and inputs.evidence.source_count >= b.baseline_surge_min_sources
            and age_hours < b.baseline_surge_max_age_hours
        ):
            return BreakingPath.BASELINE_SURGE
        if (
            inputs.corroboration.confidence_score >= b.high_corroboration_min_confidence
            and count_1h >= b.high_corroboration_min_mentions
            and age_hours < b.high_corroboration_max_age_hours
        ):
            return BreakingPath.HIGH_CORROBORATION
        if (
            count_1h >= b.activity_min_mentions
            and news >= b.activity_min_news_sources
            and age_hours < b.activity_max_age_hours
        ):
            return BreakingPath.FRESH_ACTIVITY
        return None

    def compose(self, inputs: RankInputs) -> RankResult:
        """Compute rank and classification for one event."""
        c = self.config
        age_hours = hours_between(inputs.episode_started_at, inputs.now)
        idle_hours = hours_between(inputs.last_seen_at, inputs.now)

        velocity = self.velocity_points(inputs.metrics, inputs.baseline_stable)
        confidence = inputs.corroboration.confidence_score * c.confidence_points
        activity = self.activity_points(inputs.counts)
        recency = self.recency_decay(idle_hours)
        quality = label_quality(
            inputs.label_source,
            inputs.corroboration.has_tier12_corroboration,
            c.label_modifiers,
        )

        raw = velocity + confidence + activity
        rank = round(raw * recency * inputs.evergreen_penalty * quality, 1)

        gate = self.volume_gate(inputs.counts, inputs.evidence)
        is_trending = (
            inputs.stage.is_active
            and gate
            and inputs.quality_gate_failure is None
            and rank >= c.trending_min_rank
        )

        path = None
        if is_trending and inputs.corroboration.has_tier12_corroboration:
            path = self.breaking_path(inputs, age_hours, rank)

        return RankResult(
            rank_score=rank,
            is_trending=is_trending,
            is_breaking=path is not None,
            breaking_path=path,
            recency_decay=round(recency, 4),
            label_quality=quality,
            evergreen_penalty=inputs.evergreen_penalty,
            volume_gate=gate,
            quality_gate_failure=inputs.quality_gate_failure,
            components={
                "velocity": round(velocity, 2),
                "confidence": round(confidence, 2),
                "activity": round(activity, 2),
                "raw": round(raw, 2),
            },
        )


__all__ = ["RankComposer", "RankInputs", "RankResult"]
