"""
Role and permission types for portal RBAC.

Portals, resources, actions and scopes are closed enums. Raw dicts coming from
the admin API or the database are converted at the boundary by
role_config_from_dict() / role_from_dict(), which raise InvalidPermissionError
for anything outside those domains. Inside the service everything is an
immutable value, so a role can be swapped in the registry without readers
ever seeing a partially-written definition.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from rolegraph.errors import InvalidPermissionError, InvalidRoleError


class Portal(StrEnum):
    """Portals a role may be granted access to."""

    SALES = "sales"
    NETA = "neta"
    LAB = "lab"
    HR = "hr"
    OFFICE = "office"
    ENGINEERING = "engineering"
    SCAVENGER = "scavenger"
    ADMIN = "admin"


class PermissionResource(StrEnum):
    USERS = "users"
    ROLES = "roles"
    CUSTOMERS = "customers"
    JOBS = "jobs"
    OPPORTUNITIES = "opportunities"
    REPORTS = "reports"
    DOCUMENTS = "documents"
    SETTINGS = "settings"
    ENCRYPTION = "encryption"
    SYSTEM = "system"


class PermissionAction(StrEnum):
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    APPROVE = "approve"
    ASSIGN = "assign"


class Scope(StrEnum):
    """Breadth of a permission, totally ordered own < division < all."""

    OWN = "own"
    DIVISION = "division"
    ALL = "all"

    @property
    def rank(self) -> int:
        return _SCOPE_RANK[self]

    def covers(self, requested: Scope) -> bool:
        """A granted scope satisfies any requested scope at or below it."""
        return self.rank >= requested.rank


_SCOPE_RANK: dict[Scope, int] = {Scope.OWN: 0, Scope.DIVISION: 1, Scope.ALL: 2}

MAX_ROLE_NAME_LENGTH = 100


class Ability(StrEnum):
    """Coarse ability flags, named as they appear on the wire."""

    MANAGE_USERS = "canManageUsers"
    MANAGE_CONTENT = "canManageContent"
    VIEW_ALL_DATA = "canViewAllData"


@dataclass(frozen=True, order=True)
class Permission:
    """A (resource, action, scope) grant."""

    resource: PermissionResource
    action: PermissionAction
    scope: Scope = Scope.OWN

    @property
    def key(self) -> tuple[PermissionResource, PermissionAction]:
        return (self.resource, self.action)

    def to_dict(self) -> dict[str, str]:
        return {
            "resource": str(self.resource),
            "action": str(self.action),
            "scope": str(self.scope),
        }


@dataclass(frozen=True)
class Abilities:
    can_manage_users: bool = False
    can_manage_content: bool = False
    can_view_all_data: bool = False

    def merge(self, other: Abilities) -> Abilities:
        """OR-combine two ability sets."""
        return Abilities(
            can_manage_users=self.can_manage_users or other.can_manage_users,
            can_manage_content=self.can_manage_content or other.can_manage_content,
            can_view_all_data=self.can_view_all_data or other.can_view_all_data,
        )

    def has(self, ability: Ability) -> bool:
        return self.to_dict()[ability]

    def to_dict(self) -> dict[str, bool]:
        return {
            Ability.MANAGE_USERS: self.can_manage_users,
            Ability.MANAGE_CONTENT: self.can_manage_content,
            Ability.VIEW_ALL_DATA: self.can_view_all_data,
        }


@dataclass(frozen=True)
class RoleConfig:
    """The editable part of a role, as submitted by the role editor."""

    parent_role: str | None = None
    portals: frozenset[Portal] = frozenset()
    permissions: frozenset[Permission] = frozenset()
    abilities: Abilities = field(default_factory=Abilities)
    description: str = ""


@dataclass(frozen=True)
class Role:
    """A named policy bundle: portal access, ability flags and permissions."""

    name: str
    parent_role: str | None = None
    portals: frozenset[Portal] = frozenset()
    permissions: frozenset[Permission] = frozenset()
    abilities: Abilities = field(default_factory=Abilities)
    is_system: bool = False
    description: str = ""

    @classmethod
    def from_config(
        cls,
        name: str,
        config: RoleConfig,
        *,
        is_system: bool = False,
        description: str | None = None,
    ) -> Role:
        return cls(
            name=name,
            parent_role=config.parent_role,
            portals=frozenset(config.portals),
            permissions=frozenset(config.permissions),
            abilities=config.abilities,
            is_system=is_system,
            description=config.description if description is None else description,
        )

    def to_config(self) -> RoleConfig:
        return RoleConfig(
            parent_role=self.parent_role,
            portals=self.portals,
            permissions=self.permissions,
            abilities=self.abilities,
            description=self.description,
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible snapshot, also used for audit before/after configs."""
        return {
            "name": self.name,
            "parentRole": self.parent_role,
            "portals": sorted(str(p) for p in self.portals),
            "permissions": [p.to_dict() for p in sorted(self.permissions)],
            "abilities": {str(k): v for k, v in self.abilities.to_dict().items()},
            "isSystem": self.is_system,
            "description": self.description,
        }


def _parse_enum(enum_cls: type[StrEnum], value: Any, role_name: str, field_name: str) -> Any:
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidPermissionError(role_name, field_name, value) from None


def permission_from_dict(data: Any, role_name: str = "") -> Permission:
    """Parse a {resource, action, scope} mapping. A missing scope means 'own'."""
    if isinstance(data, Permission):
        return validate_permission(data, role_name)
    if not isinstance(data, Mapping):
        raise InvalidPermissionError(role_name, "permissions", data)
    return Permission(
        resource=_parse_enum(PermissionResource, data.get("resource"), role_name, "resource"),
        action=_parse_enum(PermissionAction, data.get("action"), role_name, "action"),
        scope=_parse_enum(Scope, data.get("scope") or Scope.OWN, role_name, "scope"),
    )


def validate_permission(permission: Permission, role_name: str = "") -> Permission:
    """Re-check a programmatically built Permission against the closed domains."""
    return Permission(
        resource=_parse_enum(PermissionResource, permission.resource, role_name, "resource"),
        action=_parse_enum(PermissionAction, permission.action, role_name, "action"),
        scope=_parse_enum(Scope, permission.scope, role_name, "scope"),
    )


def _parse_permissions(items: Any, role_name: str) -> frozenset[Permission]:
    if items is None:
        return frozenset()
    if isinstance(items, (str, bytes, Mapping)) or not isinstance(items, Iterable):
        raise InvalidPermissionError(role_name, "permissions", items)
    return frozenset(permission_from_dict(item, role_name) for item in items)


def _parse_portals(items: Any, role_name: str) -> frozenset[Portal]:
    if items is None:
        return frozenset()
    if isinstance(items, (str, bytes, Mapping)) or not isinstance(items, Iterable):
        raise InvalidPermissionError(role_name, "portals", items)
    return frozenset(_parse_enum(Portal, p, role_name, "portals") for p in items)


def _parse_flag(flags: Mapping[str, Any], ability: Ability, role_name: str) -> bool:
    """Only JSON booleans grant an ability; absent or null means False."""
    value = flags.get(ability)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise InvalidRoleError(
            f"{ability} for '{role_name}' must be true or false, got {value!r}",
            role_name,
            f"abilities.{ability}",
        )
    return value


def role_config_from_dict(data: Mapping[str, Any], role_name: str = "") -> RoleConfig:
    """Build a RoleConfig from its JSON shape.

    Ability flags are read from a nested "abilities" object, falling back to
    top-level canManageUsers/canManageContent/canViewAllData keys.
    """
    if not isinstance(data, Mapping):
        raise InvalidRoleError(f"Role definition for '{role_name}' must be an object", role_name)

    parent = data.get("parentRole") or None
    if parent is not None and not isinstance(parent, str):
        raise InvalidRoleError(
            f"parentRole for '{role_name}' must be a role name", role_name, "parentRole"
        )

    flags = data.get("abilities")
    if not isinstance(flags, Mapping):
        flags = data
    abilities = {ability: _parse_flag(flags, ability, role_name) for ability in Ability}

    return RoleConfig(
        parent_role=parent,
        portals=_parse_portals(data.get("portals"), role_name),
        permissions=_parse_permissions(data.get("permissions"), role_name),
        abilities=Abilities(
            can_manage_users=abilities[Ability.MANAGE_USERS],
            can_manage_content=abilities[Ability.MANAGE_CONTENT],
            can_view_all_data=abilities[Ability.VIEW_ALL_DATA],
        ),
        description=str(data.get("description") or ""),
    )


def validate_role_config(config: RoleConfig, role_name: str) -> RoleConfig:
    """Check a RoleConfig built in code against the closed enum domains."""
    return RoleConfig(
        parent_role=config.parent_role or None,
        portals=frozenset(_parse_enum(Portal, p, role_name, "portals") for p in config.portals),
        permissions=frozenset(validate_permission(p, role_name) for p in config.permissions),
        abilities=config.abilities,
        description=config.description,
    )


def role_from_dict(data: Mapping[str, Any]) -> Role:
    """Inverse of Role.to_dict()."""
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        raise InvalidRoleError("Role name is required", "", "name")
    config = role_config_from_dict(data, role_name=name)
    return Role.from_config(name, config, is_system=bool(data.get("isSystem", False)))
