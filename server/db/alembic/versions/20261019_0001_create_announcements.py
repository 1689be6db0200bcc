"""Create announcements table.

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "announcements",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "status",
            sa.String(length=16),
            nullable=False,
            server_default=sa.text("'MISSING'"),
        ),
        sa.Column("photo_url", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_announcements_created_at",
        "announcements",
        ["created_at"],
    )
    op.create_index(
        "ix_announcements_status",
        "announcements",
        ["status"],
    )


def downgrade() -> None:
    op.drop_index("ix_announcements_status", table_name="announcements")
    op.drop_index("ix_announcements_created_at", table_name="announcements")
    op.drop_table("announcements")
