"""Folders and the short URLs they hold.

Revision ID: 20260203000003
Revises: 20260203000002
Create Date: 2026-02-03
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "20260203000003"
down_revision: Union[str, None] = "20260203000002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Folders
    op.create_table(
        "folders",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("color", sa.String(7), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "user_id",
            sa.Integer,
            sa.ForeignKey("users.id", name="fk_folder_user", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "server_id",
            sa.Integer,
            sa.ForeignKey("servers.id", name="fk_folder_server", ondelete="CASCADE"),
            nullable=False,
        ),
    )
    op.create_index(
        "idx_folder_user_server_name",
        "folders",
        ["user_id", "server_id", "name"],
        unique=True,
    )

    # Folder items
    op.create_table(
        "folder_items",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("short_url_id", sa.String(255), nullable=False),
        sa.Column("short_code", sa.String(255), nullable=False),
        sa.Column("added_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "folder_id",
            sa.Integer,
            sa.ForeignKey("folders.id", name="fk_folder_item_folder", ondelete="CASCADE"),
            nullable=False,
        ),
    )
    op.create_index(
        "idx_folder_item_folder_shorturl",
        "folder_items",
        ["folder_id", "short_url_id"],
        unique=True,
    )


def downgrade() -> None:
    # Items reference folders, drop them first
    op.drop_index("idx_folder_item_folder_shorturl", table_name="folder_items")
    op.drop_table("folder_items")
    op.drop_index("idx_folder_user_server_name", table_name="folders")
    op.drop_table("folders")
