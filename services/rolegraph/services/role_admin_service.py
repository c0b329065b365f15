"""
Role administration service.

The only component allowed to mutate the RoleStore. Every mutation runs as:

    validate -> persist role change + append audit entry (one transaction)
             -> update RoleStore

Validation failures (DuplicateRole, CircularInheritance, DanglingParent,
SystemRoleProtected, InvalidPermission) are raised before anything touches
persistence. A PersistenceError aborts the transaction, so neither the role
change nor its audit entry becomes visible and the RoleStore keeps its
pre-call state.

Mutations are serialized per role name. Saves that add or re-point a parent
link, renames and deletes additionally take the hierarchy lock, so two
concurrent saves on unrelated names cannot together close a cycle that
neither would see alone. Other edits on different names run in parallel.
"""

import asyncio
from collections.abc import AsyncGenerator, Mapping
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

from rolegraph.auth.audit import (
    MAX_USER_ID_LENGTH,
    AccessAttempt,
    Actor,
    AuditAction,
    AuditLogEntry,
)
from rolegraph.auth.builtin_roles import seed_builtin_roles
from rolegraph.auth.permissions import (
    MAX_ROLE_NAME_LENGTH,
    Ability,
    PermissionAction,
    PermissionResource,
    Portal,
    Role,
    RoleConfig,
    Scope,
    role_config_from_dict,
    validate_role_config,
)
from rolegraph.errors import (
    CircularInheritanceError,
    DanglingParentError,
    DuplicateRoleError,
    InvalidRoleError,
    RoleNotFoundError,
    SystemRoleProtectedError,
)
from rolegraph.logging_config import get_logger
from rolegraph.persistence.protocol import Persistence
from rolegraph.services.audit_service import AuditLog
from rolegraph.services.permission_resolver import (
    EffectivePermissions,
    PermissionDecision,
    PermissionResolver,
)
from rolegraph.services.role_store import RoleStore

logger = get_logger(__name__)


class _NameLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


def _check_actor(actor: Actor, role_name: str) -> None:
    if len(actor.user_id) > MAX_USER_ID_LENGTH:
        raise InvalidRoleError(
            f"User id must be at most {MAX_USER_ID_LENGTH} characters", role_name, "user_id"
        )


def _adds_edge(current: Role | None, config: RoleConfig) -> bool:
    """True if saving `config` over `current` introduces or re-points a parent link."""
    if config.parent_role is None:
        return False
    return current is None or current.parent_role != config.parent_role


class RoleAdminService:
    """Validated, audited role mutation plus read access for the admin UI."""

    def __init__(
        self,
        store: RoleStore,
        resolver: PermissionResolver,
        audit_log: AuditLog,
        persistence: Persistence,
        log_access: bool = False,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._audit = audit_log
        self._persistence = persistence
        self._log_access = log_access
        self._name_locks: dict[str, _NameLock] = {}
        self._hierarchy_lock = asyncio.Lock()

    # --- Locking ---

    @asynccontextmanager
    async def _name_lock(self, name: str) -> AsyncGenerator[None]:
        """Hold the lock for `name`; the entry is dropped once nobody holds or awaits it."""
        entry = self._name_locks.get(name)
        if entry is None:
            entry = self._name_locks[name] = _NameLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._name_locks[name]

    @asynccontextmanager
    async def _locked(self, names: set[str], hierarchy: bool) -> AsyncGenerator[None]:
        async with AsyncExitStack() as stack:
            if hierarchy:
                await stack.enter_async_context(self._hierarchy_lock)
            for name in sorted(names):
                await stack.enter_async_context(self._name_lock(name))
            yield

    # --- Reads ---

    def list_roles(self) -> list[Role]:
        return self._store.list()

    def get_role(self, name: str) -> Role:
        return self._store.get(name)

    def resolve_permissions(self, name: str) -> EffectivePermissions:
        """Effective permissions of `name` against the current registry.

        Circular or dangling inheritance here means stored data is corrupt.
        It is logged for that role and re-raised; other roles are unaffected.
        """
        try:
            return self._resolver.resolve(name)
        except (CircularInheritanceError, DanglingParentError) as e:
            logger.error(
                "Stored role inheritance is corrupt",
                role=name,
                field=e.field,
                error=str(e),
            )
            raise

    def parent_candidates(self, name: str) -> list[str]:
        return self._resolver.parent_candidates(name)

    def has_portal_access(self, name: str, portal: Portal) -> bool:
        return self._resolver.has_portal_access(name, portal)

    def has_ability(self, name: str, ability: Ability) -> bool:
        return self._resolver.has_ability(name, ability)

    def has_permission(
        self,
        name: str,
        resource: PermissionResource,
        action: PermissionAction,
        scope: Scope = Scope.OWN,
    ) -> bool:
        return self._resolver.has_permission(name, resource, action, scope)

    async def check_permission(
        self,
        name: str,
        resource: PermissionResource,
        action: PermissionAction,
        scope: Scope = Scope.OWN,
        actor: Actor | None = None,
        target_id: str | None = None,
        log_access: bool | None = None,
    ) -> PermissionDecision:
        """Decide a permission check and, when access logging is on, record it.

        `log_access` overrides the service-wide setting for this call. A failed
        write raises PersistenceError rather than returning an unrecorded answer.
        """
        decision = self._resolver.explain_permission(name, resource, action, scope)
        if log_access is None:
            log_access = self._log_access
        if log_access:
            await self._audit.record_access(
                AccessAttempt.for_check(
                    role_name=name,
                    resource=resource,
                    action=action,
                    scope=scope,
                    granted=decision.granted,
                    reason=decision.reason,
                    actor=actor,
                    target_id=target_id,
                )
            )
        return decision

    async def get_audit_logs(
        self, role_name: str | None = None, limit: int | None = None
    ) -> list[AuditLogEntry]:
        return await self._audit.query(role_name=role_name, limit=limit)

    async def get_access_logs(
        self,
        user_id: str | None = None,
        role_name: str | None = None,
        resource: str | None = None,
        action: str | None = None,
        granted: bool | None = None,
        limit: int | None = None,
    ) -> list[AccessAttempt]:
        return await self._audit.query_access(
            user_id=user_id,
            role_name=role_name,
            resource=resource,
            action=action,
            granted=granted,
            limit=limit,
        )

    # --- Mutations ---

    async def create_role(
        self,
        name: str,
        config: RoleConfig | Mapping[str, Any],
        actor: Actor,
    ) -> Role:
        """Create a new custom role; DuplicateRoleError if the name is taken."""
        return await self._save(name, config, actor, previous_name=None, create_only=True)

    async def save_role(
        self,
        name: str,
        config: RoleConfig | Mapping[str, Any],
        actor: Actor,
        previous_name: str | None = None,
    ) -> Role:
        """Create or update a role, renaming it from `previous_name` if given.

        Returns the authoritative stored role.
        """
        return await self._save(name, config, actor, previous_name, create_only=False)

    async def _save(
        self,
        name: str,
        config: RoleConfig | Mapping[str, Any],
        actor: Actor,
        previous_name: str | None,
        create_only: bool,
    ) -> Role:
        name = (name or "").strip()
        if not name:
            raise InvalidRoleError("Role name is required", "", "name")
        if len(name) > MAX_ROLE_NAME_LENGTH:
            raise InvalidRoleError(
                f"Role name must be at most {MAX_ROLE_NAME_LENGTH} characters", name, "name"
            )
        _check_actor(actor, name)

        if isinstance(config, RoleConfig):
            config = validate_role_config(config, name)
        else:
            config = role_config_from_dict(config, role_name=name)

        renaming = previous_name is not None and previous_name != name
        names = {name, previous_name} if renaming else {name}
        current = self._store.find(previous_name if renaming else name)
        hierarchy = renaming or _adds_edge(current, config)

        while True:
            async with self._locked(names, hierarchy=hierarchy):
                roles = self._store.snapshot()
                existing = roles.get(name)

                if renaming:
                    source = roles.get(previous_name)
                    if source is None:
                        raise RoleNotFoundError(previous_name)
                    if source.is_system:
                        raise SystemRoleProtectedError(previous_name, "rename")
                    if existing is not None:
                        raise DuplicateRoleError(name)
                    children = self._store.children_of(previous_name)
                    if children:
                        raise DanglingParentError(
                            children[0],
                            previous_name,
                            f"Cannot rename '{previous_name}': role '{children[0]}' inherits from it",
                        )
                    before = source
                else:
                    if create_only and existing is not None:
                        raise DuplicateRoleError(name)
                    before = existing

                if not hierarchy and _adds_edge(before, config):
                    # The stored parent moved while we waited; redo under the hierarchy lock.
                    hierarchy = True
                    continue

                aliases = (previous_name,) if renaming else ()
                self._resolver.check_parent(name, config.parent_role, roles, aliases=aliases)

                if before is None:
                    description = config.description or f"Custom role: {name}"
                else:
                    description = config.description or before.description
                role = Role.from_config(
                    name,
                    config,
                    is_system=before.is_system if before is not None else False,
                    description=description,
                )

                action = AuditAction.CREATE if before is None else AuditAction.UPDATE
                entry = AuditLogEntry.for_change(
                    role_name=name,
                    action=action,
                    previous_config=before.to_dict() if before is not None else None,
                    new_config=role.to_dict(),
                    actor=actor,
                )

                async with self._persistence.transaction():
                    await self._persistence.persist_role(name, role)
                    if renaming:
                        await self._persistence.persist_role_deletion(previous_name)
                    await self._audit.record(entry)

                if renaming:
                    self._store.remove(previous_name)
                self._store.put(role)

            logger.info(
                "Role saved",
                role=name,
                action=str(action),
                renamed_from=previous_name if renaming else None,
                user_id=actor.user_id,
            )
            return role

    async def delete_role(self, name: str, actor: Actor) -> None:
        """Delete a custom role. System roles and roles with children are refused."""
        _check_actor(actor, name)
        async with self._locked({name}, hierarchy=True):
            role = self._store.find(name)
            if role is None:
                raise RoleNotFoundError(name)
            if role.is_system:
                raise SystemRoleProtectedError(name, "delete")
            children = self._store.children_of(name)
            if children:
                raise DanglingParentError(
                    children[0],
                    name,
                    f"Cannot delete '{name}': role '{children[0]}' inherits from it",
                )

            entry = AuditLogEntry.for_change(
                role_name=name,
                action=AuditAction.DELETE,
                previous_config=role.to_dict(),
                new_config=None,
                actor=actor,
            )

            async with self._persistence.transaction():
                await self._persistence.persist_role_deletion(name)
                await self._audit.record(entry)

            self._store.remove(name)

        logger.info("Role deleted", role=name, user_id=actor.user_id)


async def create_role_admin_service(
    persistence: Persistence,
    seed_builtin: bool = True,
    default_audit_limit: int = 50,
    max_audit_limit: int = 500,
    log_access: bool = False,
) -> RoleAdminService:
    """Wire store, resolver and audit log around a persistence backend.

    Warms the store from persistence, seeding missing built-in roles first.
    """
    store = RoleStore()
    await store.warm(persistence)

    if seed_builtin:
        seeded = await seed_builtin_roles(persistence, {role.name for role in store.list()})
        for role in seeded:
            store.put(role)

    return RoleAdminService(
        store=store,
        resolver=PermissionResolver(store),
        audit_log=AuditLog(persistence, default_audit_limit, max_audit_limit),
        persistence=persistence,
        log_access=log_access,
    )
