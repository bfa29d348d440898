"""Multi-source corroboration and confidence scoring.

Confidence combines three factors, each in [0, 1]:
- volume: log-scaled, tier-weighted evidence count
- diversity: distinct tiers and distinct sources
- authority: best tier present

and is then capped by a ceiling that depends on who corroborates:
- no tier-1/2 source at all: ``tier3_only_ceiling``
- tier-1/2 evidence from a single source: ``single_source_ceiling``
- tier-1/2 evidence plus other corroborating sources: 1.0

The ceilings make the tier-3 cap hold regardless of volume: a thousand
tier-3 mentions never outrank the ceiling.
"""

import math

from pydantic import BaseModel, Field

from trendpulse.config import CorroborationConfig


class EvidenceCounts(BaseModel):
    """Evidence tallies for one cluster over the scoring window.

    Tier counts cover original (non-duplicate) mentions only. Source
    presence includes duplicate articles, which corroborate coverage
    without adding volume.

    Attributes:
        tier1 / tier2 / tier3: Non-duplicate mentions per tier
        source_count: Distinct sources covering the cluster
        tier12_present: Any tier-1/2 source covers the cluster
        news_source_count: Distinct news sources
        social_source_count: Distinct social sources
    """

    tier1: int = Field(default=0, ge=0)
    tier2: int = Field(default=0, ge=0)
    tier3: int = Field(default=0, ge=0)
    source_count: int = Field(default=0, ge=0)
    tier12_present: bool = False
    news_source_count: int = Field(default=0, ge=0)
    social_source_count: int = Field(default=0, ge=0)

    @property
    def has_news_and_social(self) -> bool:
        return self.news_source_count > 0 and self.social_source_count > 0


class Corroboration(BaseModel):
    """Corroboration result with its factor breakdown."""

    confidence_score: float = Field(ge=0.0, le=1.0)
    has_tier12_corroboration: bool
    is_tier3_only: bool
    ceiling: float = Field(ge=0.0, le=1.0)
    factors: dict[str, float] = Field(default_factory=dict)


class CorroborationScorer:
    """Scores how well a cluster is corroborated across sources and tiers."""

    def __init__(self, config: CorroborationConfig | None = None):
        self.config = config or CorroborationConfig()

    def _volume(self, evidence: EvidenceCounts) -> float:
        weights = self.config.tier_weights
        weighted = (
            evidence.tier1 * weights.tier1
            + evidence.tier2 * weights.tier2
            + evidence.tier3 * weights.tier3
        )
        return min(1.0, math.log2(1 + weighted) / math.log2(1 + self.config.volume_saturation))

    def _diversity(self, evidence: EvidenceCounts) -> float:
        tiers = sum(1 for n in (evidence.tier1, evidence.tier2, evidence.tier3) if n > 0)
        tier_part = max(0, tiers - 1) / 2
        extra_sources = min(max(0, evidence.source_count - 1), self.config.diversity_source_cap)
        source_part = extra_sources / self.config.diversity_source_cap
        bonus = 0.1 if evidence.has_news_and_social else 0.0
        return min(1.0, 0.5 * tier_part + 0.5 * source_part + bonus)

    def _authority(self, evidence: EvidenceCounts) -> float:
        weights = self.config.tier_weights
        if evidence.tier1 > 0:
            return weights.tier1
        if evidence.tier2 > 0:
            return weights.tier2
        if evidence.tier3 > 0:
            return weights.tier3
        return 0.0

    def ceiling(self, evidence: EvidenceCounts) -> float:
        if not evidence.tier12_present:
            return self.config.tier3_only_ceiling
        if evidence.source_count < 2:
            return self.config.single_source_ceiling
        return 1.0

    def score(self, evidence: EvidenceCounts) -> Corroboration:
        """Compute the confidence score for a cluster's evidence."""
        volume = self._volume(evidence)
        diversity = self._diversity(evidence)
        authority = self._authority(evidence)
        raw = (
            self.config.volume_weight * volume
            + self.config.diversity_weight * diversity
            + self.config.authority_weight * authority
        )
        ceiling = self.ceiling(evidence)
        confidence = max(0.0, min(raw, ceiling, 1.0))

        return Corroboration(
            confidence_score=round(confidence, 4),
            has_tier12_corroboration=evidence.tier12_present,
            is_tier3_only=not evidence.tier12_present,
            ceiling=ceiling,
            factors={
                "volume": round(volume, 4),
                "diversity": round(diversity, 4),
                "authority": round(authority, 4),
                "raw": round(raw, 4),
            },
        )


__all__ = ["Corroboration", "CorroborationScorer", "EvidenceCounts"]
