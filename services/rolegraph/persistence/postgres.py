"""
PostgreSQL persistence backend (SQLAlchemy async over asyncpg).

A role write and its audit entry share one database transaction when issued
inside transaction(), so a failed audit append rolls the role write back.
Outside a transaction every call runs in its own short session.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from contextvars import ContextVar

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rolegraph.auth.audit import (
    AccessAttempt,
    AccessFilter,
    AuditAction,
    AuditFilter,
    AuditLogEntry,
)
from rolegraph.auth.permissions import Role, role_from_dict
from rolegraph.db.models import PermissionAccessLogRecord, RoleAuditLogRecord, RoleRecord
from rolegraph.errors import PersistenceError
from rolegraph.logging_config import get_logger

logger = get_logger(__name__)

_current_session: ContextVar[AsyncSession | None] = ContextVar(
    "rolegraph_pg_session", default=None
)


def role_to_record(role: Role, record: RoleRecord | None = None) -> RoleRecord:
    """Copy a Role onto a (new or existing) RoleRecord."""
    data = role.to_dict()
    if record is None:
        record = RoleRecord(name=role.name)
    record.description = role.description or None
    record.parent_role = role.parent_role
    record.portals = data["portals"]
    record.permissions = data["permissions"]
    record.can_manage_users = role.abilities.can_manage_users
    record.can_manage_content = role.abilities.can_manage_content
    record.can_view_all_data = role.abilities.can_view_all_data
    record.is_system = role.is_system
    return record


def role_from_record(record: RoleRecord) -> Role:
    return role_from_dict(
        {
            "name": record.name,
            "parentRole": record.parent_role,
            "portals": record.portals or [],
            "permissions": record.permissions or [],
            "abilities": {
                "canManageUsers": record.can_manage_users,
                "canManageContent": record.can_manage_content,
                "canViewAllData": record.can_view_all_data,
            },
            "isSystem": record.is_system,
            "description": record.description or "",
        }
    )


def entry_to_record(entry: AuditLogEntry) -> RoleAuditLogRecord:
    return RoleAuditLogRecord(
        id=entry.id,
        role_name=entry.role_name,
        action=str(entry.action),
        previous_config=entry.previous(),
        new_config=entry.new(),
        user_id=entry.user_id,
        ip_address=entry.ip_address,
        user_agent=entry.user_agent,
        created_at=entry.created_at,
    )


def entry_from_record(record: RoleAuditLogRecord) -> AuditLogEntry:
    return AuditLogEntry(
        id=record.id,
        role_name=record.role_name,
        action=AuditAction(record.action),
        previous_config=record.previous_config,
        new_config=record.new_config,
        user_id=record.user_id,
        ip_address=record.ip_address,
        user_agent=record.user_agent,
        created_at=record.created_at,
    )


def attempt_to_record(attempt: AccessAttempt) -> PermissionAccessLogRecord:
    return PermissionAccessLogRecord(
        id=attempt.id,
        role_name=attempt.role_name,
        resource=attempt.resource,
        action=attempt.action,
        scope=attempt.scope,
        granted=attempt.granted,
        reason=attempt.reason,
        user_id=attempt.user_id,
        target_id=attempt.target_id,
        ip_address=attempt.ip_address,
        user_agent=attempt.user_agent,
        created_at=attempt.created_at,
    )


def attempt_from_record(record: PermissionAccessLogRecord) -> AccessAttempt:
    return AccessAttempt(
        id=record.id,
        role_name=record.role_name,
        resource=record.resource,
        action=record.action,
        scope=record.scope,
        granted=record.granted,
        reason=record.reason,
        user_id=record.user_id,
        target_id=record.target_id,
        ip_address=record.ip_address,
        user_agent=record.user_agent,
        created_at=record.created_at,
    )

class PostgresPersistence:
    """Persistence over the roles, role_audit_logs and permission_access_logs tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncGenerator[AsyncSession]:
        current = _current_session.get()
        if current is not None:
            try:
                yield current
            except SQLAlchemyError as e:
                raise PersistenceError(f"{operation} failed: {e}", operation=operation) from e
            return

        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("Database operation failed", operation=operation, error=str(e))
                raise PersistenceError(f"{operation} failed: {e}", operation=operation) from e
            except Exception:
                await session.rollback()
                raise

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[None]:
        if _current_session.get() is not None:
            yield
            return

        async with self._session_factory() as session:
            token = _current_session.set(session)
            try:
                yield
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("Database transaction failed", error=str(e))
                raise PersistenceError(f"transaction failed: {e}", operation="commit") from e
            except Exception:
                await session.rollback()
                raise
            finally:
                _current_session.reset(token)

    async def persist_role(self, name: str, role: Role) -> None:
        async with self._session("persist_role") as session:
            record = await session.get(RoleRecord, name)
            if record is None:
                session.add(role_to_record(role))
            else:
                role_to_record(role, record)
            await session.flush()

    async def persist_role_deletion(self, name: str) -> None:
        async with self._session("persist_role_deletion") as session:
            await session.execute(delete(RoleRecord).where(RoleRecord.name == name))

    async def append_audit_entry(self, entry: AuditLogEntry) -> None:
        async with self._session("append_audit_entry") as session:
            session.add(entry_to_record(entry))
            await session.flush()

    async def fetch_audit_entries(self, audit_filter: AuditFilter) -> list[AuditLogEntry]:
        query = select(RoleAuditLogRecord)
        if audit_filter.role_name is not None:
            query = query.where(RoleAuditLogRecord.role_name == audit_filter.role_name)
        query = query.order_by(
            RoleAuditLogRecord.created_at.desc(), RoleAuditLogRecord.seq.desc()
        ).limit(audit_filter.limit)

        async with self._session("fetch_audit_entries") as session:
            result = await session.execute(query)
            return [entry_from_record(r) for r in result.scalars().all()]

    async def append_access_attempt(self, attempt: AccessAttempt) -> None:
        async with self._session("append_access_attempt") as session:
            session.add(attempt_to_record(attempt))
            await session.flush()

    async def fetch_access_attempts(self, access_filter: AccessFilter) -> list[AccessAttempt]:
        record = PermissionAccessLogRecord
        query = select(record)
        if access_filter.user_id is not None:
            query = query.where(record.user_id == access_filter.user_id)
        if access_filter.role_name is not None:
            query = query.where(record.role_name == access_filter.role_name)
        if access_filter.resource is not None:
            query = query.where(record.resource == access_filter.resource)
        if access_filter.action is not None:
            query = query.where(record.action == access_filter.action)
        if access_filter.granted is not None:
            query = query.where(record.granted.is_(access_filter.granted))
        query = query.order_by(record.created_at.desc(), record.seq.desc()).limit(
            access_filter.limit
        )

        async with self._session("fetch_access_attempts") as session:
            result = await session.execute(query)
            return [attempt_from_record(r) for r in result.scalars().all()]

    async def fetch_all_roles(self) -> list[Role]:
        async with self._session("fetch_all_roles") as session:
            result = await session.execute(select(RoleRecord).order_by(RoleRecord.name))
            return [role_from_record(r) for r in result.scalars().all()]

    async def close(self) -> None:
        from rolegraph.db.session import close_db

        await close_db()
