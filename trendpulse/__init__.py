"""TrendPulse: streaming trend detection and ranking."""

__version__ = "0.1.0"
