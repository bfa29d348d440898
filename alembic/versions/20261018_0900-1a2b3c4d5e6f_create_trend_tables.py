"""Create mention, baseline, trend event and job tables

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "1a2b3c4d5e6f"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SOURCE_TYPES = ("RSS", "GOOGLE_NEWS", "NEWS", "BLUESKY", "SOCIAL")
LABEL_SOURCES = ("EVENT_PHRASE", "FALLBACK_GENERATED", "ENTITY_ONLY")
TREND_STAGES = ("EMERGING", "SURGING", "PEAKING", "DECLINING", "STABLE")
PASS_STATUSES = ("SUCCEEDED", "PARTIAL", "FAILED", "TIMED_OUT", "CANCELLED")


def upgrade() -> None:
    op.create_table(
        "mentions",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("mention_key", sa.Text(), nullable=False),
        sa.Column("topic_key", sa.String(length=255), nullable=False),
        sa.Column("label", sa.String(length=500), nullable=True),
        sa.Column("entity_type", sa.String(length=50), nullable=True),
        sa.Column("entity_refs", postgresql.ARRAY(sa.String()), nullable=False),
        sa.Column("source_id", sa.String(length=255), nullable=False),
        sa.Column("source_type", sa.Enum(*SOURCE_TYPES, name="sourcetype"), nullable=False),
        sa.Column("source_tier", sa.Integer(), nullable=False),
        sa.Column("dedup_key", sa.String(length=500), nullable=False),
        sa.Column("raw_text_ref", sa.Text(), nullable=True),
        sa.Column("label_hint", sa.Enum(*LABEL_SOURCES, name="labelsource"), nullable=True),
        sa.Column("observed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_duplicate", sa.Boolean(), nullable=False),
        sa.Column("duplicate_of", sa.Text(), nullable=True),
        sa.Column("content_hash", sa.String(length=64), nullable=True),
        sa.Column("simhash", sa.BigInteger(), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_mentions")),
        sa.UniqueConstraint(
            "topic_key", "source_id", "source_type", "dedup_key", name="uq_mentions_identity"
        ),
    )
    op.create_index("idx_mention_topic_observed", "mentions", ["topic_key", "observed_at"])
    op.create_index("idx_mention_observed", "mentions", ["observed_at"])
    op.create_index("idx_mention_accepted", "mentions", ["accepted_at"])

    op.create_table(
        "baseline_states",
        sa.Column("topic_key", sa.String(length=255), nullable=False),
        sa.Column("buckets", sa.JSON(), nullable=False),
        sa.Column("folded_total", sa.Integer(), nullable=False),
        sa.Column("total_observations", sa.Integer(), nullable=False),
        sa.Column("last_observed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.PrimaryKeyConstraint("topic_key", name=op.f("pk_baseline_states")),
    )

    op.create_table(
        "trend_events",
        sa.Column("event_key", sa.String(length=64), nullable=False),
        sa.Column("canonical_label", sa.String(length=500), nullable=False),
        sa.Column("trend_stage", sa.Enum(*TREND_STAGES, name="trendstage"), nullable=False),
        sa.Column("is_trending", sa.Boolean(), nullable=False),
        sa.Column("is_breaking", sa.Boolean(), nullable=False),
        sa.Column("rank_score", sa.Float(), nullable=True),
        sa.Column("confidence_score", sa.Float(), nullable=False),
        sa.Column("last_updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.PrimaryKeyConstraint("event_key", name=op.f("pk_trend_events")),
    )
    op.create_index("idx_trend_event_feed", "trend_events", ["is_trending", "last_updated_at"])
    op.create_index("idx_trend_event_archived", "trend_events", ["archived_at"])

    op.create_table(
        "job_runs",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("job_name", sa.String(length=100), nullable=False),
        sa.Column("status", sa.Enum(*PASS_STATUSES, name="passstatus"), nullable=False),
        sa.Column("window_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("window_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("mentions_processed", sa.Integer(), nullable=False),
        sa.Column("clusters_created", sa.Integer(), nullable=False),
        sa.Column("clusters_merged", sa.Integer(), nullable=False),
        sa.Column("events_scored", sa.Integer(), nullable=False),
        sa.Column("events_failed", sa.Integer(), nullable=False),
        sa.Column("events_skipped", sa.Integer(), nullable=False),
        sa.Column("events_archived", sa.Integer(), nullable=False),
        sa.Column("spikes_detected", sa.Integer(), nullable=False),
        sa.Column("duration_ms", sa.Float(), nullable=False),
        sa.Column("errors", sa.JSON(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_job_runs")),
    )
    op.create_index("idx_job_run_name_started", "job_runs", ["job_name", "started_at"])

    op.create_table(
        "job_failures",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("job_name", sa.String(length=100), nullable=False),
        sa.Column("error", sa.Text(), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("context", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_job_failures")),
    )
    op.create_index("idx_job_failure_name_occurred", "job_failures", ["job_name", "occurred_at"])


def downgrade() -> None:
    op.drop_index("idx_job_failure_name_occurred", table_name="job_failures")
    op.drop_table("job_failures")
    op.drop_index("idx_job_run_name_started", table_name="job_runs")
    op.drop_table("job_runs")
    op.drop_index("idx_trend_event_archived", table_name="trend_events")
    op.drop_index("idx_trend_event_feed", table_name="trend_events")
    op.drop_table("trend_events")
    op.drop_table("baseline_states")
    op.drop_index("idx_mention_accepted", table_name="mentions")
    op.drop_index("idx_mention_observed", table_name="mentions")
    op.drop_index("idx_mention_topic_observed", table_name="mentions")
    op.drop_table("mentions")

    for enum_name in ("passstatus", "trendstage", "labelsource", "sourcetype"):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
