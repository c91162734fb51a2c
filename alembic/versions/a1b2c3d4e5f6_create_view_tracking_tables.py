"""Create content, view ledger and view counter tables

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-18

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "a1b2c3d4e5f6"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

VIEW_OUTCOMES = ("ADMITTED", "BOT_DETECTED", "RATE_LIMIT_EXCEEDED", "COOLDOWN_ACTIVE", "FAILED")


def upgrade() -> None:
    op.create_table(
        "content",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("slug", sa.String(), nullable=False),
        sa.Column("status", sa.Enum("DRAFT", "PENDING", "PUBLISHED", name="contentstatus"), nullable=False),
        sa.Column("published_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug", name="unique_slug"),
    )
    op.create_index("ix_content_id", "content", ["id"])
    op.create_index("ix_content_slug", "content", ["slug"], unique=True)
    op.create_index("idx_content_status", "content", ["status"])

    # Append-only view ledger
    op.create_table(
        "view_events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("content_slug", sa.String(length=255), nullable=False),
        sa.Column("ip_address", sa.String(length=45), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("referrer", sa.Text(), nullable=False),
        sa.Column(
            "outcome",
            sa.Enum(*VIEW_OUTCOMES, name="viewoutcome", native_enum=False, length=32),
            nullable=False,
        ),
        sa.Column("reason", sa.String(length=64), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_view_events_id", "view_events", ["id"])
    op.create_index(
        "idx_view_events_pair_created", "view_events", ["content_slug", "ip_address", "created_at"]
    )
    op.create_index("idx_view_events_created", "view_events", ["created_at"])

    op.create_table(
        "content_view_counters",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("content_slug", sa.String(length=255), nullable=False),
        sa.Column("view_count", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("content_slug", name="unique_counter_slug"),
    )
    op.create_index("ix_content_view_counters_id", "content_view_counters", ["id"])
    op.create_index("ix_content_view_counters_content_slug", "content_view_counters", ["content_slug"])


def downgrade() -> None:
    op.drop_index("ix_content_view_counters_content_slug", table_name="content_view_counters")
    op.drop_index("ix_content_view_counters_id", table_name="content_view_counters")
    op.drop_table("content_view_counters")

    op.drop_index("idx_view_events_created", table_name="view_events")
    op.drop_index("idx_view_events_pair_created", table_name="view_events")
    op.drop_index("ix_view_events_id", table_name="view_events")
    op.drop_table("view_events")

    op.drop_index("idx_content_status", table_name="content")
    op.drop_index("ix_content_slug", table_name="content")
    op.drop_index("ix_content_id", table_name="content")
    op.drop_table("content")
    sa.Enum(name="contentstatus").drop(op.get_bind(), checkfirst=True)
