"""Role registry: roles and role_audit_logs.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "roles",
        sa.Column("name", sa.String(100), primary_key=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("parent_role", sa.String(100), nullable=True),
        sa.Column(
            "portals",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column(
            "permissions",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column(
            "can_manage_users", sa.Boolean(), nullable=False, server_default=sa.text("false")
        ),
        sa.Column(
            "can_manage_content", sa.Boolean(), nullable=False, server_default=sa.text("false")
        ),
        sa.Column(
            "can_view_all_data", sa.Boolean(), nullable=False, server_default=sa.text("false")
        ),
        sa.Column("is_system", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_roles_parent_role", "roles", ["parent_role"])

    op.create_table(
        "role_audit_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("seq", sa.BigInteger(), sa.Identity(always=True), nullable=False),
        sa.Column("role_name", sa.String(100), nullable=False),
        sa.Column("action", sa.String(10), nullable=False),
        sa.Column("previous_config", postgresql.JSONB(), nullable=True),
        sa.Column("new_config", postgresql.JSONB(), nullable=True),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("seq", name="uq_role_audit_logs_seq"),
        sa.CheckConstraint(
            "action IN ('create', 'update', 'delete')", name="ck_role_audit_logs_action"
        ),
    )
    op.create_index(
        "ix_role_audit_logs_role_name_created_at",
        "role_audit_logs",
        ["role_name", "created_at"],
    )
    op.create_index("ix_role_audit_logs_created_at", "role_audit_logs", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_role_audit_logs_created_at", table_name="role_audit_logs")
    op.drop_index("ix_role_audit_logs_role_name_created_at", table_name="role_audit_logs")
    op.drop_table("role_audit_logs")
    op.drop_index("ix_roles_parent_role", table_name="roles")
    op.drop_table("roles")
