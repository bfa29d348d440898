"""Velocity, trend stage and spike detection.

velocity_N is the window count normalized per hour; acceleration is the
1-hour velocity minus the 6-hour velocity. The z-score compares the
1-hour velocity against the topic's baseline and is only defined when the
baseline has enough history.

Stage classification is a pure function of (previous stage, metrics,
config). Spikes are episodes: ``spike_detected`` fires on the first
qualifying pass only and re-arms once a pass no longer qualifies.
"""

from datetime import datetime

from pydantic import BaseModel

from trendpulse.config import BaselineConfig, SpikeConfig
from trendpulse.core.logging import get_logger
from trendpulse.services.engine.base import TrendStage
from trendpulse.services.engine.baseline import Baseline
from trendpulse.services.engine.windows import WindowCounts, hours_between

logger = get_logger(__name__)


class VelocityMetrics(BaseModel):
    """Per-hour rates and deviation from baseline for one pass."""

    count_1h: int
    velocity_15m: float
    velocity_1h: float
    velocity_6h: float
    velocity_24h: float
    acceleration: float
    z_score: float | None
    baseline_mean: float
    baseline_std: float
    baseline_defined: bool


class SpikeResult(BaseModel):
    """Spike evaluation for one pass.

    Attributes:
        spike_detected: First qualifying pass of an episode
        episode_active: The pass qualifies (episode continues or starts)
        magnitude: Percent over baseline mean at detection, None without baseline
        qualifies: The pass met the spike rule
    """

    spike_detected: bool = False
    episode_active: bool = False
    magnitude: float | None = None
    qualifies: bool = False


def compute_velocity(
    counts: WindowCounts,
    baseline: Baseline,
    spike_config: SpikeConfig | None = None,
    baseline_config: BaselineConfig | None = None,
) -> VelocityMetrics:
    """Derive velocities, acceleration and the guarded z-score."""
    spike_config = spike_config or SpikeConfig()
    baseline_config = baseline_config or BaselineConfig()

    v15 = counts.count_15m * 4.0
    v1 = float(counts.count_1h)
    v6 = counts.count_6h / 6.0
    v24 = counts.count_24h / 24.0

    z: float | None = None
    if baseline.is_defined:
        std = max(baseline.hourly_std_dev, baseline_config.min_std_dev)
        raw = (v1 - baseline.avg_7d) / std
        z = round(min(spike_config.z_ceiling, max(spike_config.z_floor, raw)), 4)

    return VelocityMetrics(
        count_1h=counts.count_1h,
        velocity_15m=round(v15, 4),
        velocity_1h=round(v1, 4),
        velocity_6h=round(v6, 4),
        velocity_24h=round(v24, 4),
        acceleration=round(v1 - v6, 4),
        z_score=z,
        baseline_mean=baseline.avg_7d if baseline.is_defined else 0.0,
        baseline_std=baseline.hourly_std_dev,
        baseline_defined=baseline.is_defined,
    )


def next_trend_stage(
    previous: TrendStage | None,
    metrics: VelocityMetrics,
    config: SpikeConfig,
    last_seen_at: datetime | None = None,
    now: datetime | None = None,
) -> TrendStage:
    """Classify the stage for this pass. First matching rule wins.

    1. idle beyond the decay window -> STABLE (the event gets archived)
    2. z >= threshold and accelerating -> SURGING
    3. z >= threshold and not accelerating -> PEAKING
    4. no defined baseline and enough mentions in 1h -> EMERGING
    5. 1h velocity below baseline after being active -> DECLINING
    6. otherwise -> STABLE
    """
    if last_seen_at is not None and now is not None:
        if hours_between(last_seen_at, now) > config.decay_window_hours:
            return TrendStage.STABLE

    z = metrics.z_score
    if z is not None and z >= config.surge_z_threshold:
        if metrics.acceleration > 0:
            return TrendStage.SURGING
        return TrendStage.PEAKING

    if not metrics.baseline_defined and metrics.count_1h >= config.emerging_min_mentions:
        return TrendStage.EMERGING

    was_active = previous is not None and (previous.is_active or previous == TrendStage.DECLINING)
    if was_active and metrics.velocity_1h < metrics.baseline_mean:
        return TrendStage.DECLINING

    return TrendStage.STABLE


class SpikeDetector:
    """Fires once per spike episode.

    With a defined baseline a pass qualifies when z reaches the surge
    threshold and the hour holds at least ``spike_min_mentions``. Without
    one, ``absolute_spike_min`` mentions in the hour qualify and the
    magnitude is unknown.
    """

    def __init__(self, config: SpikeConfig | None = None):
        self.config = config or SpikeConfig()

    def qualifies(self, metrics: VelocityMetrics) -> bool:
        if metrics.baseline_defined:
            return (
                metrics.z_score is not None
                and metrics.z_score >= self.config.surge_z_threshold
                and metrics.count_1h >= self.config.spike_min_mentions
            )
        return metrics.count_1h >= self.config.absolute_spike_min

    def magnitude(self, metrics: VelocityMetrics) -> float | None:
        """Percent over baseline mean; None without a usable baseline."""
        if not metrics.baseline_defined or metrics.baseline_mean <= 0:
            return None
        pct = (metrics.velocity_1h - metrics.baseline_mean) / metrics.baseline_mean * 100
        return round(pct, 1)

    def evaluate(self, episode_active: bool, metrics: VelocityMetrics) -> SpikeResult:
        """Evaluate a pass given whether an episode was already running."""
        if not self.qualifies(metrics):
            return SpikeResult()

        if episode_active:
            return SpikeResult(episode_active=True, qualifies=True)

        magnitude = self.magnitude(metrics)
        logger.info(
            "Spike detected",
            velocity_1h=metrics.velocity_1h,
            baseline_mean=metrics.baseline_mean,
            z_score=metrics.z_score,
            magnitude=magnitude,
        )
        return SpikeResult(
            spike_detected=True,
            episode_active=True,
            magnitude=magnitude,
            qualifies=True,
        )


__all__ = [
    "SpikeDetector",
    "SpikeResult",
    "VelocityMetrics",
    "compute_velocity",
    "next_trend_stage",
]
