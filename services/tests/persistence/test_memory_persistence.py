"""Tests for the process-local persistence backend."""

import pytest

from rolegraph.auth.audit import (
    AccessAttempt,
    AccessFilter,
    Actor,
    AuditAction,
    AuditFilter,
    AuditLogEntry,
)
from rolegraph.auth.permissions import Role
from rolegraph.persistence.memory import MemoryPersistence
from rolegraph.persistence.protocol import Persistence


def _entry(role_name: str) -> AuditLogEntry:
    return AuditLogEntry.for_change(
        role_name=role_name,
        action=AuditAction.CREATE,
        previous_config=None,
        new_config={"name": role_name},
        actor=Actor(user_id="u-1"),
    )


class TestMemoryPersistence:
    def test_satisfies_protocol(self):
        assert isinstance(MemoryPersistence(), Persistence)

    async def test_persist_and_delete(self):
        persistence = MemoryPersistence()
        await persistence.persist_role("Clerk", Role(name="Clerk"))
        assert [r.name for r in await persistence.fetch_all_roles()] == ["Clerk"]

        await persistence.persist_role_deletion("Clerk")
        await persistence.persist_role_deletion("Clerk")
        assert await persistence.fetch_all_roles() == []

    async def test_audit_newest_first_with_filter_and_limit(self):
        entries = [_entry("A"), _entry("B"), _entry("A"), _entry("A")]
        persistence = MemoryPersistence(audit_entries=entries)

        assert await persistence.fetch_audit_entries(AuditFilter()) == entries[::-1]
        assert await persistence.fetch_audit_entries(AuditFilter(role_name="A", limit=2)) == [
            entries[3],
            entries[2],
        ]


class TestMemoryTransaction:
    async def test_writes_visible_after_commit(self):
        persistence = MemoryPersistence()
        async with persistence.transaction():
            await persistence.persist_role("Clerk", Role(name="Clerk"))
            await persistence.append_audit_entry(_entry("Clerk"))
            assert await persistence.fetch_all_roles() == []

        assert [r.name for r in await persistence.fetch_all_roles()] == ["Clerk"]
        assert len(await persistence.fetch_audit_entries(AuditFilter())) == 1

    async def test_exception_discards_writes(self):
        persistence = MemoryPersistence(roles=[Role(name="Clerk")])

        with pytest.raises(RuntimeError):
            async with persistence.transaction():
                await persistence.persist_role_deletion("Clerk")
                await persistence.append_audit_entry(_entry("Clerk"))
                raise RuntimeError("boom")

        assert [r.name for r in await persistence.fetch_all_roles()] == ["Clerk"]
        assert await persistence.fetch_audit_entries(AuditFilter()) == []

    async def test_nested_transaction_joins_outer(self):
        persistence = MemoryPersistence()

        with pytest.raises(RuntimeError):
            async with persistence.transaction():
                async with persistence.transaction():
                    await persistence.persist_role("Clerk", Role(name="Clerk"))
                raise RuntimeError("outer fails")

        assert await persistence.fetch_all_roles() == []

    async def test_writes_apply_in_order(self):
        persistence = MemoryPersistence()
        async with persistence.transaction():
            await persistence.persist_role("Clerk", Role(name="Clerk", description="v1"))
            await persistence.persist_role("Clerk", Role(name="Clerk", description="v2"))

        (role,) = await persistence.fetch_all_roles()
        assert role.description == "v2"


def _attempt(role_name: str, granted: bool = True, user_id: str = "u-1") -> AccessAttempt:
    return AccessAttempt.for_check(
        role_name, "jobs", "view", "own", granted, "Direct permission", Actor(user_id=user_id)
    )


class TestMemoryAccessAttempts:
    async def test_newest_first_with_filters(self):
        attempts = [_attempt("A"), _attempt("B", granted=False), _attempt("A", user_id="u-2")]
        persistence = MemoryPersistence(access_attempts=attempts)

        assert await persistence.fetch_access_attempts(AccessFilter()) == attempts[::-1]
        assert await persistence.fetch_access_attempts(AccessFilter(role_name="A")) == [
            attempts[2],
            attempts[0],
        ]
        assert await persistence.fetch_access_attempts(AccessFilter(granted=False)) == [attempts[1]]
        assert await persistence.fetch_access_attempts(AccessFilter(user_id="u-2", limit=1)) == [
            attempts[2]
        ]

    async def test_append_joins_transaction(self):
        persistence = MemoryPersistence()

        with pytest.raises(RuntimeError):
            async with persistence.transaction():
                await persistence.append_access_attempt(_attempt("A"))
                raise RuntimeError("boom")
        assert await persistence.fetch_access_attempts(AccessFilter()) == []

        await persistence.append_access_attempt(_attempt("A"))
        assert len(await persistence.fetch_access_attempts(AccessFilter())) == 1
