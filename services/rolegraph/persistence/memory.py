"""
Process-local persistence backend.

Keeps roles in a dict, and the audit trail and access attempts in lists.
Writes made inside transaction() are staged per task and applied together
when the block exits cleanly; an exception discards them.
"""

from collections.abc import AsyncGenerator, Callable, Iterable
from contextlib import asynccontextmanager
from contextvars import ContextVar
from functools import partial

from rolegraph.auth.audit import AccessAttempt, AccessFilter, AuditFilter, AuditLogEntry
from rolegraph.auth.permissions import Role
from rolegraph.logging_config import get_logger

logger = get_logger(__name__)

_pending: ContextVar[list[Callable[[], None]] | None] = ContextVar(
    "rolegraph_memory_pending", default=None
)


class MemoryPersistence:
    """Persistence backed by plain Python containers."""

    def __init__(
        self,
        roles: Iterable[Role] = (),
        audit_entries: Iterable[AuditLogEntry] = (),
        access_attempts: Iterable[AccessAttempt] = (),
    ) -> None:
        self._roles: dict[str, Role] = {role.name: role for role in roles}
        self._audit: list[AuditLogEntry] = list(audit_entries)
        self._access: list[AccessAttempt] = list(access_attempts)

    def _apply(self, op: Callable[[], None]) -> None:
        pending = _pending.get()
        if pending is None:
            op()
        else:
            pending.append(op)

    async def persist_role(self, name: str, role: Role) -> None:
        self._apply(partial(self._roles.__setitem__, name, role))

    async def persist_role_deletion(self, name: str) -> None:
        self._apply(partial(self._roles.pop, name, None))

    async def append_audit_entry(self, entry: AuditLogEntry) -> None:
        self._apply(partial(self._audit.append, entry))

    async def fetch_audit_entries(self, audit_filter: AuditFilter) -> list[AuditLogEntry]:
        matches = [
            entry
            for entry in reversed(self._audit)
            if audit_filter.role_name is None or entry.role_name == audit_filter.role_name
        ]
        return matches[: audit_filter.limit]

    async def append_access_attempt(self, attempt: AccessAttempt) -> None:
        self._apply(partial(self._access.append, attempt))

    async def fetch_access_attempts(self, access_filter: AccessFilter) -> list[AccessAttempt]:
        matches = [attempt for attempt in reversed(self._access) if access_filter.matches(attempt)]
        return matches[: access_filter.limit]

    async def fetch_all_roles(self) -> list[Role]:
        return list(self._roles.values())

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[None]:
        if _pending.get() is not None:
            yield
            return

        staged: list[Callable[[], None]] = []
        token = _pending.set(staged)
        try:
            yield
        finally:
            _pending.reset(token)

        for op in staged:
            op()
        logger.debug("Memory transaction committed", writes=len(staged))

    async def close(self) -> None:
        logger.debug("Memory persistence closed", roles=len(self._roles), entries=len(self._audit))
