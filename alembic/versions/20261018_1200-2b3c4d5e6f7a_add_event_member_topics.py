"""Add member topic keys to trend events, a job run window index and mention signatures

Revision ID: 2b3c4d5e6f7a
Revises: 1a2b3c4d5e6f
Create Date: 2026-10-18 12:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "2b3c4d5e6f7a"
down_revision: Union[str, None] = "1a2b3c4d5e6f"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column(
        "trend_events",
        sa.Column(
            "member_topic_keys",
            postgresql.ARRAY(sa.String()),
            server_default="{}",
            nullable=False,
        ),
    )
    op.execute(
        "UPDATE trend_events SET member_topic_keys = ARRAY("
        "SELECT json_array_elements_text(payload -> 'member_topic_keys'))"
    )
    op.create_index(
        "idx_trend_event_member_topics",
        "trend_events",
        ["member_topic_keys"],
        postgresql_using="gin",
    )
    op.create_index("idx_job_run_name_window", "job_runs", ["job_name", "window_end"])
    op.add_column("mentions", sa.Column("content_signature", sa.Text(), nullable=True))


def downgrade() -> None:
    op.drop_column("mentions", "content_signature")
    op.drop_index("idx_job_run_name_window", table_name="job_runs")
    op.drop_index("idx_trend_event_member_topics", table_name="trend_events")
    op.drop_column("trend_events", "member_topic_keys")
