"""
Persistence protocol for Rolegraph.

Defines the interface the role admin service needs from a durable store.
Backends satisfy it structurally; no inheritance required. Every backend
failure is surfaced as rolegraph.errors.PersistenceError.
"""

from contextlib import AbstractAsyncContextManager
from typing import Protocol, runtime_checkable

from rolegraph.auth.audit import AccessAttempt, AccessFilter, AuditFilter, AuditLogEntry
from rolegraph.auth.permissions import Role


@runtime_checkable
class Persistence(Protocol):
    """Durable storage for role definitions and the role audit trail."""

    async def persist_role(self, name: str, role: Role) -> None:
        """Insert or replace the stored definition of a role.

        Raises:
            PersistenceError: If the write fails.
        """
        ...

    async def persist_role_deletion(self, name: str) -> None:
        """Remove a stored role definition. Idempotent.

        Raises:
            PersistenceError: If the write fails.
        """
        ...

    async def append_audit_entry(self, entry: AuditLogEntry) -> None:
        """Append an entry to the audit trail. Never overwrites.

        Raises:
            PersistenceError: If the write fails.
        """
        ...

    async def fetch_audit_entries(self, audit_filter: AuditFilter) -> list[AuditLogEntry]:
        """Return audit entries newest first.

        Entries sharing a created_at are returned most recently inserted first.
        """
        ...

    async def append_access_attempt(self, attempt: AccessAttempt) -> None:
        """Record one permission check.

        Raises:
            PersistenceError: If the write fails.
        """
        ...

    async def fetch_access_attempts(self, access_filter: AccessFilter) -> list[AccessAttempt]:
        """Return recorded permission checks newest first."""
        ...

    async def fetch_all_roles(self) -> list[Role]:
        """Return every stored role. Used to warm the role store at startup."""
        ...

    def transaction(self) -> AbstractAsyncContextManager[None]:
        """Group writes so they become visible together or not at all.

        Nested use joins the outer transaction.
        """
        ...

    async def close(self) -> None:
        """Release any resources held by the backend."""
        ...
