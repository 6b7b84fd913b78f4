"""Create queries, groups, group_items and user_actions tables.

- queries: imported daily search-analytics rows (read-only to the API)
- groups: user-owned query collections with a metrics snapshot
- group_items: (group_id, query_id) membership rows
- user_actions: append-only audit trail

Revision ID: 0001
Revises:
Create Date: 2026-10-16

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create query clustering tables."""
    # --- queries table ---
    op.create_table(
        "queries",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=False),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("query_text", sa.Text(), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("impressions", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("clicks", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("ctr", sa.Numeric(6, 4), server_default=sa.text("0"), nullable=False),
        sa.Column("avg_position", sa.Float(), nullable=True),
        sa.Column(
            "is_opportunity",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_queries_impressions_date",
        "queries",
        ["impressions", "date"],
        unique=False,
    )

    # --- groups table ---
    op.create_table(
        "groups",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=False),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column(
            "ai_generated",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
        sa.Column("metrics_impressions", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("metrics_clicks", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("metrics_ctr", sa.Float(), server_default=sa.text("0"), nullable=False),
        sa.Column("metrics_avg_position", sa.Float(), server_default=sa.text("0"), nullable=False),
        sa.Column("query_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_groups_user_id"), "groups", ["user_id"], unique=False)
    op.create_index(
        "uq_groups_user_id_lower_name",
        "groups",
        ["user_id", sa.text("lower(name)")],
        unique=True,
    )

    # --- group_items table ---
    op.create_table(
        "group_items",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=False),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("group_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("query_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column(
            "added_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["group_id"],
            ["groups.id"],
            name="fk_group_items_group_id",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["query_id"],
            ["queries.id"],
            name="fk_group_items_query_id",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("group_id", "query_id", name="uq_group_items_group_query"),
    )
    op.create_index(op.f("ix_group_items_group_id"), "group_items", ["group_id"], unique=False)
    op.create_index(op.f("ix_group_items_query_id"), "group_items", ["query_id"], unique=False)

    # --- user_actions table ---
    op.create_table(
        "user_actions",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=False),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("action_type", sa.String(length=64), nullable=False),
        sa.Column("target_id", sa.String(length=255), nullable=True),
        sa.Column(
            "metadata",
            postgresql.JSONB(astext_type=sa.Text()),
            server_default=sa.text("'{}'::jsonb"),
            nullable=False,
        ),
        sa.Column(
            "occurred_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_user_actions_user_id"), "user_actions", ["user_id"], unique=False)
    op.create_index(
        op.f("ix_user_actions_action_type"), "user_actions", ["action_type"], unique=False
    )


def downgrade() -> None:
    """Drop query clustering tables."""
    op.drop_index(op.f("ix_user_actions_action_type"), table_name="user_actions")
    op.drop_index(op.f("ix_user_actions_user_id"), table_name="user_actions")
    op.drop_table("user_actions")

    op.drop_index(op.f("ix_group_items_query_id"), table_name="group_items")
    op.drop_index(op.f("ix_group_items_group_id"), table_name="group_items")
    op.drop_table("group_items")

    op.drop_index("uq_groups_user_id_lower_name", table_name="groups")
    op.drop_index(op.f("ix_groups_user_id"), table_name="groups")
    op.drop_table("groups")

    op.drop_index("ix_queries_impressions_date", table_name="queries")
    op.drop_table("queries")
