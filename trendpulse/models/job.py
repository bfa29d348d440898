"""Scheduled job ORM models."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Enum, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from trendpulse.models.base import Base, TimestampMixin, UUIDMixin
from trendpulse.services.engine.base import PassStatus


class JobRunRecord(Base, UUIDMixin, TimestampMixin):
    """Counters of one finished scoring pass."""

    __tablename__ = "job_runs"

    job_name: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[PassStatus] = mapped_column(Enum(PassStatus), nullable=False)
    window_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    window_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    mentions_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    clusters_created: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    clusters_merged: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    events_scored: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    events_failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    events_skipped: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    events_archived: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    spikes_detected: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    duration_ms: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    errors: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    __table_args__ = (
        Index("idx_job_run_name_started", "job_name", "started_at"),
        Index("idx_job_run_name_window", "job_name", "window_end"),
    )

    def __repr__(self) -> str:
        return f"<JobRunRecord(job={self.job_name}, status={self.status})>"


class JobFailureRecord(Base, UUIDMixin):
    """A failed scheduled job."""

    __tablename__ = "job_failures"

    job_name: Mapped[str] = mapped_column(String(100), nullable=False)
    error: Mapped[str] = mapped_column(Text, nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    context: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    __table_args__ = (Index("idx_job_failure_name_occurred", "job_name", "occurred_at"),)

    def __repr__(self) -> str:
        return f"<JobFailureRecord(job={self.job_name}, at={self.occurred_at})>"


__all__ = ["JobFailureRecord", "JobRunRecord"]
