"""
SQLAlchemy database models for Rolegraph.

All models use:
- snake_case column names
- Plural table names
- TIMESTAMPTZ with UTC for all timestamps
- Hard deletes for roles; the audit and access log tables are append-only
"""

import uuid
from datetime import UTC, datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import BigInteger, Boolean, DateTime, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def generate_uuid7() -> uuid.UUID:
    """Generate a UUIDv7 (time-sortable UUID)."""
    import time

    timestamp_ms = int(time.time() * 1000)
    rand_bytes = uuid.uuid4().bytes[6:]

    uuid_bytes = (
        timestamp_ms.to_bytes(6, "big")
        + bytes([0x70 | (rand_bytes[0] & 0x0F)])  # Version 7
        + bytes([0x80 | (rand_bytes[1] & 0x3F)])  # Variant
        + rand_bytes[2:]
    )
    return uuid.UUID(bytes=uuid_bytes)


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all models."""

    type_annotation_map = {
        dict[str, Any]: JSONB,
        list[str]: JSONB,
        list[dict[str, Any]]: JSONB,
    }


class RoleRecord(Base):
    """Role definition, system and custom alike.

    Built-in roles are seeded from rolegraph.auth.builtin_roles with
    is_system=true; everything else is created through the role admin API.
    parent_role is deliberately not a foreign key: inheritance integrity
    (existence and acyclicity) is enforced by the role admin service.
    """

    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(String(100), primary_key=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    parent_role: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)

    portals: Mapped[list[str]] = mapped_column(JSONB, default=list, nullable=False)
    permissions: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, default=list, nullable=False)
    can_manage_users: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    can_manage_content: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    can_view_all_data: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )


class RoleAuditLogRecord(Base):
    """Append-only history of role configuration changes.

    No UPDATE or DELETE is ever issued against this table. seq is a
    database-assigned identity used to break created_at ties in insertion order.
    """

    __tablename__ = "role_audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=generate_uuid7
    )
    seq: Mapped[int] = mapped_column(
        BigInteger, sa.Identity(always=True), nullable=False, unique=True
    )
    role_name: Mapped[str] = mapped_column(String(100), nullable=False)
    action: Mapped[str] = mapped_column(String(10), nullable=False)  # create, update, delete
    previous_config: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    new_config: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (
        Index("ix_role_audit_logs_role_name_created_at", "role_name", "created_at"),
        Index("ix_role_audit_logs_created_at", "created_at"),
    )


class PermissionAccessLogRecord(Base):
    """Append-only record of permission checks made with access logging on."""

    __tablename__ = "permission_access_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=generate_uuid7
    )
    seq: Mapped[int] = mapped_column(
        BigInteger, sa.Identity(always=True), nullable=False, unique=True
    )
    role_name: Mapped[str] = mapped_column(String(100), nullable=False)
    resource: Mapped[str] = mapped_column(String(50), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    scope: Mapped[str] = mapped_column(String(20), nullable=False)
    granted: Mapped[bool] = mapped_column(Boolean, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    target_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (
        Index("ix_permission_access_logs_user_id_created_at", "user_id", "created_at"),
        Index("ix_permission_access_logs_created_at", "created_at"),
    )
