"""Engine configuration models."""

from trendpulse.config.clustering import ArticleDedupConfig, ClusteringConfig
from trendpulse.config.detection import BaselineConfig, SpikeConfig
from trendpulse.config.engine import EngineConfig, FeedConfig, IngestConfig, PassConfig
from trendpulse.config.scoring import (
    BreakingConfig,
    CorroborationConfig,
    EvergreenConfig,
    EvergreenRelief,
    LabelModifiers,
    QualityGateConfig,
    RankConfig,
    TierWeights,
)

__all__ = [
    "ArticleDedupConfig",
    "BaselineConfig",
    "BreakingConfig",
    "ClusteringConfig",
    "CorroborationConfig",
    "EngineConfig",
    "EvergreenConfig",
    "EvergreenRelief",
    "FeedConfig",
    "IngestConfig",
    "LabelModifiers",
    "QualityGateConfig",
    "PassConfig",
    "RankConfig",
    "SpikeConfig",
    "TierWeights",
]
