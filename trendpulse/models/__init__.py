"""SQLAlchemy ORM models for TrendPulse.

Import order matters: base first, then models.
"""

from trendpulse.models.base import Base, TimestampMixin, UUIDMixin
from trendpulse.models.baseline import BaselineRecord
from trendpulse.models.job import JobFailureRecord, JobRunRecord
from trendpulse.models.mention import MentionRecord
from trendpulse.models.trend_event import TrendEventRecord

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    # Models
    "BaselineRecord",
    "JobFailureRecord",
    "JobRunRecord",
    "MentionRecord",
    "TrendEventRecord",
]
