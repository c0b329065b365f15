"""Tests for the in-memory role registry."""

import pytest

from rolegraph.auth.permissions import Portal, Role
from rolegraph.errors import RoleNotFoundError
from rolegraph.persistence.memory import MemoryPersistence
from rolegraph.services.role_store import RoleStore


class TestRoleStore:
    def test_get_and_find(self):
        store = RoleStore([Role(name="Clerk")])
        assert store.get("Clerk").name == "Clerk"
        assert store.find("Ghost") is None
        with pytest.raises(RoleNotFoundError):
            store.get("Ghost")

    def test_put_replaces_whole_role(self):
        store = RoleStore([Role(name="Clerk")])
        store.put(Role(name="Clerk", portals=frozenset({Portal.OFFICE})))
        assert store.get("Clerk").portals == frozenset({Portal.OFFICE})
        assert len(store) == 1

    def test_remove(self):
        store = RoleStore([Role(name="Clerk")])
        assert store.remove("Clerk").name == "Clerk"
        assert "Clerk" not in store
        with pytest.raises(RoleNotFoundError):
            store.remove("Clerk")

    def test_snapshot_is_detached(self):
        store = RoleStore([Role(name="Clerk")])
        snapshot = store.snapshot()
        store.put(Role(name="Other"))
        assert "Other" not in snapshot
        with pytest.raises(TypeError):
            snapshot["x"] = Role(name="x")  # type: ignore[index]

    def test_list_sorted_by_name(self):
        store = RoleStore([Role(name="b"), Role(name="C"), Role(name="a")])
        assert [r.name for r in store.list()] == ["C", "a", "b"]

    def test_children_of(self):
        store = RoleStore(
            [
                Role(name="Base"),
                Role(name="Two", parent_role="Base"),
                Role(name="One", parent_role="Base"),
                Role(name="Grandchild", parent_role="One"),
            ]
        )
        assert store.children_of("Base") == ["One", "Two"]
        assert store.children_of("Two") == []


class TestWarm:
    async def test_loads_persisted_roles(self):
        persistence = MemoryPersistence(roles=[Role(name="Clerk"), Role(name="Admin")])
        store = RoleStore([Role(name="Stale")])

        assert await store.warm(persistence) == 2
        assert [r.name for r in store.list()] == ["Admin", "Clerk"]

    async def test_builtin_names_marked_system(self):
        persistence = MemoryPersistence(roles=[Role(name="Admin", is_system=False)])
        store = RoleStore()
        await store.warm(persistence)
        assert store.get("Admin").is_system is True
