"""Permission access logs.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "permission_access_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("seq", sa.BigInteger(), sa.Identity(always=True), nullable=False),
        sa.Column("role_name", sa.String(100), nullable=False),
        sa.Column("resource", sa.String(50), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("scope", sa.String(20), nullable=False),
        sa.Column("granted", sa.Boolean(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("target_id", sa.String(255), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("seq", name="uq_permission_access_logs_seq"),
    )
    op.create_index(
        "ix_permission_access_logs_user_id_created_at",
        "permission_access_logs",
        ["user_id", "created_at"],
    )
    op.create_index(
        "ix_permission_access_logs_created_at", "permission_access_logs", ["created_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_permission_access_logs_created_at", table_name="permission_access_logs")
    op.drop_index(
        "ix_permission_access_logs_user_id_created_at", table_name="permission_access_logs"
    )
    op.drop_table("permission_access_logs")
