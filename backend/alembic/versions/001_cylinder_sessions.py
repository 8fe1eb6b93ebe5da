"""Cylinder sessions — one row per cylinder with inline usage logs.

Revision ID: 001_cylinder_sessions
Revises: None
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_cylinder_sessions"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "cylinder_sessions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("start_date", sa.BigInteger, nullable=False),
        sa.Column("end_date", sa.BigInteger, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("logs", sa.JSON, nullable=False),
    )
    op.create_index(
        "ix_cylinder_sessions_is_active", "cylinder_sessions", ["is_active"],
    )


def downgrade() -> None:
    op.drop_index("ix_cylinder_sessions_is_active", table_name="cylinder_sessions")
    op.drop_table("cylinder_sessions")
