"""Baseline and spike detection configuration models."""

from pydantic import BaseModel, Field, model_validator


class BaselineConfig(BaseModel):
    """Rolling baseline configuration.

    Attributes:
        short_window_hours: Hours in the short (7-day) baseline window
        long_window_hours: Hours in the long (30-day) baseline window
        min_observations: Non-empty hourly buckets needed for a defined baseline
        stable_rsd_max: Relative std dev below which a baseline is stable
        stable_min_avg: Minimum hourly average for a stable baseline
        min_std_dev: Floor applied to the std dev when computing z-scores
    """

    short_window_hours: int = Field(default=168, ge=24, le=24 * 30)
    long_window_hours: int = Field(default=720, ge=24, le=24 * 90)
    min_observations: int = Field(default=3, ge=1)
    stable_rsd_max: float = Field(default=0.4, gt=0)
    stable_min_avg: float = Field(default=0.5, ge=0)
    min_std_dev: float = Field(default=1.0, gt=0, description="Epsilon for z denominators")

    @model_validator(mode="after")
    def check_windows(self) -> "BaselineConfig":
        """The long window must cover the short one; it also bounds retention."""
        if self.long_window_hours < self.short_window_hours:
            raise ValueError("long_window_hours must be >= short_window_hours")
        return self

    @property
    def retention_hours(self) -> int:
        """Hourly buckets older than this are folded into the running total."""
        return self.long_window_hours


class SpikeConfig(BaseModel):
    """Velocity, stage and spike configuration.

    Attributes:
        surge_z_threshold: z-score at which a topic is surging/peaking
        z_floor: Lower clamp for z-scores
        z_ceiling: Upper clamp for z-scores
        emerging_min_mentions: 1h mentions for an emerging topic without baseline
        spike_min_mentions: 1h mentions required alongside the z threshold
        absolute_spike_min: 1h mentions that count as a spike without baseline
        decay_window_hours: Idle hours after which an event is archived
    """

    surge_z_threshold: float = Field(default=3.0, gt=0)
    z_floor: float = Field(default=-2.0, le=0)
    z_ceiling: float = Field(default=10.0, gt=0)
    emerging_min_mentions: int = Field(default=3, ge=1)
    spike_min_mentions: int = Field(default=3, ge=1)
    absolute_spike_min: int = Field(default=10, ge=1)
    decay_window_hours: float = Field(default=24.0, gt=0)

    @model_validator(mode="after")
    def check_z_bounds(self) -> "SpikeConfig":
        if self.surge_z_threshold > self.z_ceiling:
            raise ValueError("surge_z_threshold cannot exceed z_ceiling")
        return self


__all__ = ["BaselineConfig", "SpikeConfig"]
