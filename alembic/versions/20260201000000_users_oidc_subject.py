"""Link users to their OIDC identity.

Revision ID: 20260201000000
Revises: 20260101000000
Create Date: 2026-02-01
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "20260201000000"
down_revision: Union[str, None] = "20260101000000"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # batch mode so SQLite can alter the table
    with op.batch_alter_table("users") as batch_op:
        batch_op.add_column(sa.Column("oidc_subject", sa.String(255), nullable=True))
        batch_op.create_index("idx_users_oidc_subject", ["oidc_subject"], unique=True)


def downgrade() -> None:
    with op.batch_alter_table("users") as batch_op:
        batch_op.drop_index("idx_users_oidc_subject")
        batch_op.drop_column("oidc_subject")
