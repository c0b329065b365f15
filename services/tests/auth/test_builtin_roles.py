"""Tests for built-in system roles and seeding."""

from unittest.mock import AsyncMock

from rolegraph.auth.builtin_roles import (
    BUILTIN_ROLES,
    is_builtin_role,
    mark_builtin,
    seed_builtin_roles,
)
from rolegraph.auth.permissions import (
    Ability,
    PermissionAction,
    PermissionResource,
    Portal,
    Role,
    Scope,
)
from rolegraph.persistence.memory import MemoryPersistence
from rolegraph.services.permission_resolver import PermissionResolver
from rolegraph.services.role_store import RoleStore


class TestBuiltinRoles:
    def test_all_system(self):
        assert len(BUILTIN_ROLES) == 8
        assert all(role.is_system for role in BUILTIN_ROLES.values())
        assert all(role.parent_role is None for role in BUILTIN_ROLES.values())

    def test_admin_has_everything(self):
        resolver = PermissionResolver(RoleStore(BUILTIN_ROLES.values()))
        admin = resolver.resolve("Admin")

        assert admin.portals == frozenset(Portal)
        assert all(admin.abilities.has(a) for a in Ability)
        assert resolver.has_permission("Admin", PermissionResource.ROLES, PermissionAction.DELETE, Scope.ALL)

    def test_technician_scopes(self):
        resolver = PermissionResolver(RoleStore(BUILTIN_ROLES.values()))
        assert resolver.has_permission("NETA Technician", PermissionResource.JOBS, PermissionAction.VIEW, Scope.ALL)
        assert not resolver.has_permission(
            "NETA Technician", PermissionResource.JOBS, PermissionAction.EDIT, Scope.DIVISION
        )
        assert resolver.has_portal_access("NETA Technician", Portal.NETA)
        assert not resolver.has_portal_access("NETA Technician", Portal.SALES)

    def test_is_builtin_role(self):
        assert is_builtin_role("Engineer")
        assert not is_builtin_role("Field Tech")

    def test_mark_builtin(self):
        assert mark_builtin(Role(name="Scav")).is_system is True
        assert mark_builtin(Role(name="Field Tech")).is_system is False


class TestSeedBuiltinRoles:
    async def test_seeds_missing_only(self):
        persistence = MemoryPersistence()
        seeded = await seed_builtin_roles(persistence, {"Admin", "Engineer"})

        names = {role.name for role in seeded}
        assert "Admin" not in names
        assert len(names) == 6
        assert {r.name for r in await persistence.fetch_all_roles()} == names

    async def test_noop_when_complete(self):
        persistence = MemoryPersistence()
        persistence.persist_role = AsyncMock()

        assert await seed_builtin_roles(persistence, set(BUILTIN_ROLES)) == []
        persistence.persist_role.assert_not_called()

    async def test_writes_no_audit(self):
        persistence = MemoryPersistence()
        await seed_builtin_roles(persistence, set())
        assert persistence._audit == []
