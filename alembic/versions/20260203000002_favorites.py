"""Favorite short URLs.

Revision ID: 20260203000002
Revises: 20260203000001
Create Date: 2026-02-03
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "20260203000002"
down_revision: Union[str, None] = "20260203000001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "favorites",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("short_url_id", sa.String(255), nullable=False),
        sa.Column("short_code", sa.String(255), nullable=False),
        sa.Column("long_url", sa.Text, nullable=False),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "user_id",
            sa.Integer,
            sa.ForeignKey("users.id", name="fk_favorite_user", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "server_id",
            sa.Integer,
            sa.ForeignKey("servers.id", name="fk_favorite_server", ondelete="CASCADE"),
            nullable=False,
        ),
    )
    op.create_index(
        "idx_favorite_user_server_shorturl",
        "favorites",
        ["user_id", "server_id", "short_url_id"],
        unique=True,
    )


def downgrade() -> None:
    op.drop_index("idx_favorite_user_server_shorturl", table_name="favorites")
    op.drop_table("favorites")
