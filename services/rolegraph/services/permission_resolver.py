"""
Permission resolution over the role inheritance graph.

A role's effective permissions are its own grants merged with those of every
ancestor reached through parentRole links:

1. Walk from the role towards the root, tracking visited names.
2. Revisiting a name -> CircularInheritanceError.
   A parent that is not registered -> DanglingParentError.
3. Per (resource, action), keep the widest scope seen (own < division < all).
4. Union portals, OR ability flags.

The merge only ever takes maxima and ORs, so the result does not depend on the
order grants were inserted into each role, and resolving twice against the
same snapshot yields identical results. The same walk, started at a proposed
parent with the role being saved already marked visited, is the cycle check
used before saving and the filter for parent-role pickers.
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from rolegraph.auth.permissions import (
    Abilities,
    Ability,
    Permission,
    PermissionAction,
    PermissionResource,
    Portal,
    Role,
    Scope,
)
from rolegraph.errors import (
    CircularInheritanceError,
    DanglingParentError,
    RoleError,
    RoleNotFoundError,
)
from rolegraph.logging_config import get_logger
from rolegraph.services.role_store import RoleStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class EffectivePermissions:
    """Fully merged grants of a role after walking its inheritance chain."""

    role_name: str
    permissions: tuple[Permission, ...]
    portals: frozenset[Portal]
    abilities: Abilities
    chain: tuple[str, ...]

    def scope_for(self, resource: PermissionResource, action: PermissionAction) -> Scope | None:
        for permission in self.permissions:
            if permission.key == (resource, action):
                return permission.scope
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "role": self.role_name,
            "permissions": [p.to_dict() for p in self.permissions],
            "portals": sorted(str(p) for p in self.portals),
            "abilities": {str(k): v for k, v in self.abilities.to_dict().items()},
            "chain": list(self.chain),
        }


@dataclass(frozen=True)
class PermissionDecision:
    """Outcome of a single permission check."""

    granted: bool
    reason: str
    source_role: str | None = None
    granted_scope: Scope | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "granted": self.granted,
            "reason": self.reason,
            "sourceRole": self.source_role,
            "grantedScope": str(self.granted_scope) if self.granted_scope else None,
        }


def walk_chain(
    start: str,
    roles: Mapping[str, Role],
    seen: tuple[str, ...] = (),
) -> Iterator[Role]:
    """Yield `start` and its ancestors, nearest first.

    `seen` pre-populates the visited set; its first element names the role the
    errors are reported against.
    """
    visited = list(seen)
    visited_set = set(seen)
    origin = seen[0] if seen else start
    child = origin if seen else None
    current: str | None = start

    while current is not None:
        if current in visited_set:
            raise CircularInheritanceError(origin, visited + [current])
        role = roles.get(current)
        if role is None:
            if child is None:
                raise RoleNotFoundError(current)
            raise DanglingParentError(child, current)
        visited.append(current)
        visited_set.add(current)
        yield role
        child, current = current, role.parent_role


class PermissionResolver:
    """Stateless resolver; reads only RoleStore snapshots."""

    def __init__(self, store: RoleStore) -> None:
        self._store = store

    def _roles(self, snapshot: Mapping[str, Role] | None) -> Mapping[str, Role]:
        return self._store.snapshot() if snapshot is None else snapshot

    def resolve(self, name: str, snapshot: Mapping[str, Role] | None = None) -> EffectivePermissions:
        roles = self._roles(snapshot)
        merged: dict[tuple[PermissionResource, PermissionAction], Permission] = {}
        portals: set[Portal] = set()
        abilities = Abilities()
        chain: list[str] = []

        for role in walk_chain(name, roles):
            chain.append(role.name)
            for permission in role.permissions:
                current = merged.get(permission.key)
                if current is None or permission.scope.rank > current.scope.rank:
                    merged[permission.key] = permission
            portals |= role.portals
            abilities = abilities.merge(role.abilities)

        return EffectivePermissions(
            role_name=name,
            permissions=tuple(sorted(merged.values())),
            portals=frozenset(portals),
            abilities=abilities,
            chain=tuple(chain),
        )

    def check_parent(
        self,
        name: str,
        parent_role: str | None,
        snapshot: Mapping[str, Role] | None = None,
        aliases: tuple[str, ...] = (),
    ) -> None:
        """Raise if making `parent_role` the parent of `name` would cycle or dangle.

        `aliases` are further names that count as the role itself (its old
        name during a rename).
        """
        if parent_role is None:
            return
        roles = self._roles(snapshot)
        for _ in walk_chain(parent_role, roles, seen=(name, *aliases)):
            pass

    def parent_candidates(self, name: str, snapshot: Mapping[str, Role] | None = None) -> list[str]:
        """Roles that could legally become the parent of `name`."""
        roles = self._roles(snapshot)
        candidates = []
        for candidate in sorted(roles):
            try:
                self.check_parent(name, candidate, roles)
            except (CircularInheritanceError, DanglingParentError):
                continue
            candidates.append(candidate)
        return candidates

    def _try_resolve(self, name: str) -> EffectivePermissions | None:
        try:
            return self.resolve(name)
        except RoleError as e:
            logger.warning("Denying access: role cannot be resolved", role=name, error=str(e))
            return None

    def has_portal_access(self, name: str, portal: Portal) -> bool:
        effective = self._try_resolve(name)
        return effective is not None and portal in effective.portals

    def has_ability(self, name: str, ability: Ability) -> bool:
        effective = self._try_resolve(name)
        return effective is not None and effective.abilities.has(ability)

    def explain_permission(
        self,
        name: str,
        resource: PermissionResource,
        action: PermissionAction,
        scope: Scope = Scope.OWN,
    ) -> PermissionDecision:
        """Decide a fine-grained check and say which role in the chain decided it.

        The nearest role whose grant covers the requested scope is the source.
        Wider granted scopes satisfy narrower requests.
        """
        roles = self._store.snapshot()
        try:
            effective = self.resolve(name, roles)
        except RoleError as e:
            logger.warning("Denying access: role cannot be resolved", role=name, error=str(e))
            return PermissionDecision(False, f"Role cannot be resolved: {e}")

        key = (resource, action)
        for role_name in effective.chain:
            for permission in roles[role_name].permissions:
                if permission.key != key or not permission.scope.covers(scope):
                    continue
                if role_name == name:
                    reason = "Direct permission"
                else:
                    reason = f"Inherited from parent role: {role_name}"
                logger.debug(
                    "Access granted",
                    role=name,
                    resource=str(resource),
                    action=str(action),
                    scope=str(scope),
                    granted_scope=str(permission.scope),
                    source=role_name,
                )
                return PermissionDecision(True, reason, role_name, permission.scope)

        granted = effective.scope_for(resource, action)
        if granted is not None:
            reason = f"Granted scope '{granted}' does not cover requested scope '{scope}'"
        else:
            reason = "No matching permission found"
        logger.debug(
            "Access denied",
            role=name,
            resource=str(resource),
            action=str(action),
            scope=str(scope),
            reason=reason,
        )
        return PermissionDecision(False, reason, granted_scope=granted)

    def has_permission(
        self,
        name: str,
        resource: PermissionResource,
        action: PermissionAction,
        scope: Scope = Scope.OWN,
    ) -> bool:
        return self.explain_permission(name, resource, action, scope).granted
