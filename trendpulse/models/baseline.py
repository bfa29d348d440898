"""Baseline state ORM model."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from trendpulse.models.base import Base, TimestampMixin


class BaselineRecord(Base, TimestampMixin):
    """Hourly bucket state for one topic key.

    ``buckets`` maps hour index (as a string, JSON object keys) to count.
    """

    __tablename__ = "baseline_states"

    topic_key: Mapped[str] = mapped_column(String(255), primary_key=True)
    buckets: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    folded_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_observations: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_observed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"<BaselineRecord(topic={self.topic_key}, total={self.total_observations})>"


__all__ = ["BaselineRecord"]
