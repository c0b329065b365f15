"""Built-in system roles of the portal application.

System roles are defined in code and seeded into persistence at startup. They
can be edited in place but never renamed or deleted.
"""

from dataclasses import replace

from rolegraph.auth.permissions import (
    Abilities,
    Permission,
    PermissionAction,
    PermissionResource,
    Portal,
    Role,
    Scope,
)
from rolegraph.logging_config import get_logger
from rolegraph.persistence.protocol import Persistence

logger = get_logger(__name__)

R = PermissionResource
A = PermissionAction


def _grants(*triples: tuple[PermissionResource, PermissionAction, Scope]) -> frozenset[Permission]:
    return frozenset(Permission(resource, action, scope) for resource, action, scope in triples)


def _system_role(
    name: str,
    portals: list[Portal],
    permissions: frozenset[Permission],
    description: str,
    abilities: Abilities = Abilities(),
) -> Role:
    return Role(
        name=name,
        portals=frozenset(portals),
        permissions=permissions,
        abilities=abilities,
        is_system=True,
        description=description,
    )


_ADMIN_RESOURCES = (R.USERS, R.ROLES)
_ADMIN_CRUD = (A.VIEW, A.CREATE, A.EDIT, A.DELETE)
_ADMIN_SETTINGS = (R.SETTINGS, R.ENCRYPTION, R.SYSTEM)

BUILTIN_ROLES: dict[str, Role] = {
    role.name: role
    for role in (
        _system_role(
            "NETA Technician",
            [Portal.NETA],
            _grants(
                (R.CUSTOMERS, A.VIEW, Scope.ALL),
                (R.JOBS, A.VIEW, Scope.ALL),
                (R.JOBS, A.EDIT, Scope.OWN),
                (R.REPORTS, A.CREATE, Scope.OWN),
                (R.REPORTS, A.VIEW, Scope.OWN),
            ),
            "Field technician for NETA testing jobs",
            Abilities(can_view_all_data=True),
        ),
        _system_role(
            "Lab Technician",
            [Portal.LAB],
            _grants(
                (R.REPORTS, A.CREATE, Scope.OWN),
                (R.REPORTS, A.VIEW, Scope.OWN),
                (R.REPORTS, A.EDIT, Scope.OWN),
            ),
            "Calibration lab technician",
        ),
        _system_role(
            "Scav",
            [Portal.SCAVENGER],
            _grants(
                (R.JOBS, A.VIEW, Scope.OWN),
                (R.JOBS, A.EDIT, Scope.OWN),
            ),
            "Scavenger portal user",
        ),
        _system_role(
            "HR Rep",
            [Portal.HR],
            _grants(
                (R.USERS, A.VIEW, Scope.ALL),
                (R.DOCUMENTS, A.VIEW, Scope.ALL),
                (R.DOCUMENTS, A.CREATE, Scope.ALL),
            ),
            "Human resources representative",
        ),
        _system_role(
            "Office Admin",
            [Portal.OFFICE],
            _grants(
                (R.DOCUMENTS, A.VIEW, Scope.ALL),
                (R.DOCUMENTS, A.CREATE, Scope.ALL),
                (R.DOCUMENTS, A.EDIT, Scope.ALL),
                (R.DOCUMENTS, A.DELETE, Scope.ALL),
            ),
            "Office administration staff",
        ),
        _system_role(
            "Sales Representative",
            [Portal.SALES],
            _grants(
                (R.CUSTOMERS, A.VIEW, Scope.ALL),
                (R.CUSTOMERS, A.CREATE, Scope.ALL),
                (R.CUSTOMERS, A.EDIT, Scope.ALL),
                (R.OPPORTUNITIES, A.VIEW, Scope.ALL),
                (R.OPPORTUNITIES, A.CREATE, Scope.ALL),
                (R.OPPORTUNITIES, A.EDIT, Scope.ALL),
            ),
            "Sales team member",
            Abilities(can_view_all_data=True),
        ),
        _system_role(
            "Engineer",
            [Portal.ENGINEERING],
            _grants(
                (R.REPORTS, A.VIEW, Scope.ALL),
                (R.REPORTS, A.APPROVE, Scope.ALL),
            ),
            "Engineering reviewer",
        ),
        _system_role(
            "Admin",
            list(Portal),
            _grants(
                *((resource, action, Scope.ALL) for resource in _ADMIN_RESOURCES for action in _ADMIN_CRUD),
                *((resource, action, Scope.ALL) for resource in _ADMIN_SETTINGS for action in (A.VIEW, A.EDIT)),
            ),
            "Unrestricted access to every portal and administrative function",
            Abilities(can_manage_users=True, can_manage_content=True, can_view_all_data=True),
        ),
    )
}

BUILTIN_ROLE_NAMES: frozenset[str] = frozenset(BUILTIN_ROLES)


def is_builtin_role(name: str) -> bool:
    """Check if a role name is a built-in role."""
    return name in BUILTIN_ROLE_NAMES


def mark_builtin(role: Role) -> Role:
    """Stored copies of built-in roles are always system roles."""
    if is_builtin_role(role.name) and not role.is_system:
        return replace(role, is_system=True)
    return role


async def seed_builtin_roles(persistence: Persistence, existing: set[str]) -> list[Role]:
    """Persist any built-in role missing from `existing`. Idempotent.

    Seeding is bootstrap, not an administrative change, so no audit entries
    are written.
    """
    missing = [role for name, role in BUILTIN_ROLES.items() if name not in existing]
    if not missing:
        return []

    async with persistence.transaction():
        for role in missing:
            await persistence.persist_role(role.name, role)

    logger.info("Seeded built-in roles", roles=[r.name for r in missing])
    return missing
