"""
Shared fixtures for role service tests.

The registry used here mirrors the portal's day-to-day setup: a "Technician"
base role, a protected "Administrator" system role and an unrelated "Clerk".
"""

from __future__ import annotations

import pytest
import pytest_asyncio

from rolegraph.auth.audit import Actor
from rolegraph.auth.permissions import (
    Abilities,
    Permission,
    PermissionAction,
    PermissionResource,
    Portal,
    Role,
    Scope,
)
from rolegraph.persistence.memory import MemoryPersistence
from rolegraph.services.role_admin_service import RoleAdminService, create_role_admin_service


def technician() -> Role:
    return Role(
        name="Technician",
        portals=frozenset({Portal.NETA}),
        permissions=frozenset({Permission(PermissionResource.JOBS, PermissionAction.VIEW, Scope.OWN)}),
        description="Field technician",
    )


def administrator() -> Role:
    return Role(
        name="Administrator",
        portals=frozenset(Portal),
        permissions=frozenset(
            {Permission(PermissionResource.ROLES, PermissionAction.EDIT, Scope.ALL)}
        ),
        abilities=Abilities(can_manage_users=True, can_manage_content=True, can_view_all_data=True),
        is_system=True,
        description="Administrator",
    )


def clerk() -> Role:
    return Role(
        name="Clerk",
        portals=frozenset({Portal.OFFICE}),
        permissions=frozenset(
            {Permission(PermissionResource.DOCUMENTS, PermissionAction.VIEW, Scope.DIVISION)}
        ),
        description="Office clerk",
    )


@pytest.fixture
def actor() -> Actor:
    return Actor(user_id="admin-user-1", ip_address="10.0.0.5", user_agent="pytest")


@pytest.fixture
def seed_roles() -> list[Role]:
    return [technician(), administrator(), clerk()]


@pytest.fixture
def persistence(seed_roles: list[Role]) -> MemoryPersistence:
    return MemoryPersistence(roles=seed_roles)


@pytest_asyncio.fixture
async def service(persistence: MemoryPersistence) -> RoleAdminService:
    return await create_role_admin_service(persistence, seed_builtin=False)
