"""Append-only history of role configuration changes and recorded permission checks."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from rolegraph.auth.audit import (
    AccessAttempt,
    AccessFilter,
    AuditAction,
    AuditFilter,
    AuditLogEntry,
)
from rolegraph.logging_config import get_logger
from rolegraph.persistence.protocol import Persistence

logger = get_logger(__name__)

_SCALAR_FIELDS = ("name", "parentRole", "description", "isSystem")


@dataclass(frozen=True)
class ConfigDiff:
    """Structural difference between two role snapshots, for display.

    `changed` maps a dotted field path to {"from": old, "to": new}.
    """

    added: dict[str, Any] = field(default_factory=dict)
    removed: dict[str, Any] = field(default_factory=dict)
    changed: dict[str, dict[str, Any]] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.changed)

    def to_dict(self) -> dict[str, Any]:
        return {"added": self.added, "removed": self.removed, "changed": self.changed}


def _permission_scopes(config: Mapping[str, Any]) -> dict[tuple[str, str], set[str]]:
    scopes: dict[tuple[str, str], set[str]] = {}
    for perm in config.get("permissions") or []:
        key = (perm.get("resource"), perm.get("action"))
        scopes.setdefault(key, set()).add(perm.get("scope") or "own")
    return scopes


def _permission_dicts(items: set[tuple[str, str, str]]) -> list[dict[str, str]]:
    return [{"resource": r, "action": a, "scope": s} for r, a, s in sorted(items)]


def diff_configs(
    previous: Mapping[str, Any] | None,
    new: Mapping[str, Any] | None,
) -> ConfigDiff:
    """Diff two Role.to_dict() snapshots.

    A missing previous snapshot means everything in `new` was added; a missing
    new snapshot means everything in `previous` was removed. A permission whose
    only change is its scope is reported under `changed` rather than as a
    remove/add pair.
    """
    if previous is None and new is None:
        return ConfigDiff()
    if previous is None:
        return ConfigDiff(added=dict(new or {}))
    if new is None:
        return ConfigDiff(removed=dict(previous))

    added: dict[str, Any] = {}
    removed: dict[str, Any] = {}
    changed: dict[str, dict[str, Any]] = {}

    old_scopes = _permission_scopes(previous)
    new_scopes = _permission_scopes(new)
    added_perms: set[tuple[str, str, str]] = set()
    removed_perms: set[tuple[str, str, str]] = set()

    for key in old_scopes.keys() | new_scopes.keys():
        before = old_scopes.get(key, set())
        after = new_scopes.get(key, set())
        if before == after:
            continue
        if len(before) == 1 and len(after) == 1:
            changed[f"permissions.{key[0]}.{key[1]}.scope"] = {
                "from": next(iter(before)),
                "to": next(iter(after)),
            }
            continue
        added_perms.update((*key, scope) for scope in after - before)
        removed_perms.update((*key, scope) for scope in before - after)

    if added_perms:
        added["permissions"] = _permission_dicts(added_perms)
    if removed_perms:
        removed["permissions"] = _permission_dicts(removed_perms)

    old_portals = set(previous.get("portals") or [])
    new_portals = set(new.get("portals") or [])
    if new_portals - old_portals:
        added["portals"] = sorted(new_portals - old_portals)
    if old_portals - new_portals:
        removed["portals"] = sorted(old_portals - new_portals)

    old_flags = previous.get("abilities") or {}
    new_flags = new.get("abilities") or {}
    for flag in sorted(old_flags.keys() | new_flags.keys()):
        before_flag = bool(old_flags.get(flag, False))
        after_flag = bool(new_flags.get(flag, False))
        if before_flag != after_flag:
            changed[f"abilities.{flag}"] = {"from": before_flag, "to": after_flag}

    for name in _SCALAR_FIELDS:
        if previous.get(name) != new.get(name):
            changed[name] = {"from": previous.get(name), "to": new.get(name)}

    return ConfigDiff(added=added, removed=removed, changed=changed)


class AuditLog:
    """Records and queries immutable role audit entries and access attempts."""

    def __init__(
        self,
        persistence: Persistence,
        default_limit: int = 50,
        max_limit: int = 500,
    ) -> None:
        self._persistence = persistence
        self.default_limit = default_limit
        self.max_limit = max_limit

    async def record(self, entry: AuditLogEntry) -> AuditLogEntry:
        """Append a fully populated entry.

        PersistenceError propagates to the caller; nothing is retried here.
        """
        await self._persistence.append_audit_entry(entry)
        logger.info(
            "Role change recorded",
            role=entry.role_name,
            action=str(entry.action),
            user_id=entry.user_id,
            entry_id=str(entry.id),
        )
        return entry

    async def query(
        self,
        role_name: str | None = None,
        limit: int | None = None,
    ) -> list[AuditLogEntry]:
        """Entries newest first, optionally for one role, at most `limit` of them."""
        limit = self._clamp(limit)
        if limit <= 0:
            return []

        entries = await self._persistence.fetch_audit_entries(
            AuditFilter(role_name=role_name, limit=limit)
        )
        # Stable sort: entries sharing a timestamp keep the backend's
        # newest-insertion-first order.
        ordered = sorted(entries, key=lambda e: e.created_at, reverse=True)
        return ordered[:limit]

    def _clamp(self, limit: int | None) -> int:
        return self.default_limit if limit is None else min(limit, self.max_limit)

    async def record_access(self, attempt: AccessAttempt) -> AccessAttempt:
        await self._persistence.append_access_attempt(attempt)
        logger.info(
            "Permission access checked",
            role=attempt.role_name,
            resource=attempt.resource,
            action=attempt.action,
            scope=attempt.scope,
            granted=attempt.granted,
            reason=attempt.reason,
            user_id=attempt.user_id,
            target_id=attempt.target_id,
        )
        return attempt

    async def query_access(
        self,
        user_id: str | None = None,
        role_name: str | None = None,
        resource: str | None = None,
        action: str | None = None,
        granted: bool | None = None,
        limit: int | None = None,
    ) -> list[AccessAttempt]:
        """Recorded permission checks newest first, narrowed by any given field."""
        limit = self._clamp(limit)
        if limit <= 0:
            return []

        attempts = await self._persistence.fetch_access_attempts(
            AccessFilter(
                user_id=user_id,
                role_name=role_name,
                resource=resource,
                action=action,
                granted=granted,
                limit=limit,
            )
        )
        return sorted(attempts, key=lambda a: a.created_at, reverse=True)[:limit]

    @staticmethod
    def diff(entry: AuditLogEntry) -> ConfigDiff:
        if entry.action == AuditAction.CREATE:
            return diff_configs(None, entry.new())
        if entry.action == AuditAction.DELETE:
            return diff_configs(entry.previous(), None)
        return diff_configs(entry.previous(), entry.new())
