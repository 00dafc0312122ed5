"""Registry of API keys issued on Shlink servers.

Revision ID: 20260203000004
Revises: 20260203000003
Create Date: 2026-02-03
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "20260203000004"
down_revision: Union[str, None] = "20260203000003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "api_key_registry",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("key_hint", sa.String(10), nullable=False),
        sa.Column("service", sa.String(50), nullable=False),
        sa.Column("tags", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("usage_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "user_id",
            sa.Integer,
            sa.ForeignKey("users.id", name="fk_apikey_user", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "server_id",
            sa.Integer,
            sa.ForeignKey("servers.id", name="fk_apikey_server", ondelete="CASCADE"),
            nullable=False,
        ),
    )
    op.create_index("idx_apikey_user_server", "api_key_registry", ["user_id", "server_id"])
    op.create_index("idx_apikey_service", "api_key_registry", ["service"])


def downgrade() -> None:
    op.drop_index("idx_apikey_service", table_name="api_key_registry")
    op.drop_index("idx_apikey_user_server", table_name="api_key_registry")
    op.drop_table("api_key_registry")
