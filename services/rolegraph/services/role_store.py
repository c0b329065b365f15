"""
In-memory role registry.

Pure data access: no validation, no audit. Roles are immutable values, so put()
and remove() swap whole definitions and a concurrent reader observes either
the old or the new role. Only RoleAdminService mutates the store.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType

from rolegraph.auth.builtin_roles import mark_builtin
from rolegraph.auth.permissions import Role
from rolegraph.errors import RoleNotFoundError
from rolegraph.logging_config import get_logger
from rolegraph.persistence.protocol import Persistence

logger = get_logger(__name__)


class RoleStore:
    """Authoritative in-process view of all role definitions, keyed by name."""

    def __init__(self, roles: Iterable[Role] = ()) -> None:
        self._roles: dict[str, Role] = {role.name: role for role in roles}

    def __contains__(self, name: object) -> bool:
        return name in self._roles

    def __len__(self) -> int:
        return len(self._roles)

    def get(self, name: str) -> Role:
        role = self._roles.get(name)
        if role is None:
            raise RoleNotFoundError(name)
        return role

    def find(self, name: str) -> Role | None:
        return self._roles.get(name)

    def put(self, role: Role) -> None:
        self._roles[role.name] = role

    def remove(self, name: str) -> Role:
        try:
            return self._roles.pop(name)
        except KeyError:
            raise RoleNotFoundError(name) from None

    def snapshot(self) -> Mapping[str, Role]:
        """Read-only point-in-time copy of the registry."""
        return MappingProxyType(dict(self._roles))

    def children_of(self, name: str) -> list[str]:
        """Names of roles whose parentRole is `name`."""
        return sorted(r.name for r in self._roles.values() if r.parent_role == name)

    async def warm(self, persistence: Persistence) -> int:
        """Replace the registry contents with everything in persistence."""
        roles = [mark_builtin(role) for role in await persistence.fetch_all_roles()]
        self._roles = {role.name: role for role in roles}
        logger.info("Role store warmed", roles=len(roles))
        return len(roles)

    def list(self) -> list[Role]:
        """All roles, sorted by name."""
        return [self._roles[name] for name in sorted(self._roles)]
