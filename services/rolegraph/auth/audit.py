"""Audit trail value types: who changed which role, and how."""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from types import MappingProxyType
from typing import Any

from rolegraph.db.models import generate_uuid7, utc_now

MAX_USER_ID_LENGTH = 255


class AuditAction(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class Actor:
    """The user behind a role mutation, as seen by the API."""

    user_id: str
    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True)
class AuditFilter:
    role_name: str | None = None
    limit: int = 50


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


@dataclass(frozen=True)
class AuditLogEntry:
    """Immutable record of one role mutation.

    previous_config is None for create, new_config is None for delete. Both are
    Role.to_dict() snapshots, frozen into read-only mappings and tuples when
    the entry is built. previous() and new() return plain JSON-shaped copies.
    """

    id: uuid.UUID
    role_name: str
    action: AuditAction
    previous_config: Mapping[str, Any] | None
    new_config: Mapping[str, Any] | None
    user_id: str
    ip_address: str | None
    user_agent: str | None
    created_at: datetime

    def __post_init__(self) -> None:
        for name in ("previous_config", "new_config"):
            snapshot = getattr(self, name)
            object.__setattr__(self, name, _freeze(snapshot) if snapshot else None)

    @classmethod
    def for_change(
        cls,
        role_name: str,
        action: AuditAction,
        previous_config: Mapping[str, Any] | None,
        new_config: Mapping[str, Any] | None,
        actor: Actor,
    ) -> AuditLogEntry:
        return cls(
            id=generate_uuid7(),
            role_name=role_name,
            action=action,
            previous_config=previous_config,
            new_config=new_config,
            user_id=actor.user_id,
            ip_address=actor.ip_address,
            user_agent=actor.user_agent,
            created_at=utc_now(),
        )

    def previous(self) -> dict[str, Any] | None:
        return _thaw(self.previous_config) if self.previous_config else None

    def new(self) -> dict[str, Any] | None:
        return _thaw(self.new_config) if self.new_config else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "role_name": self.role_name,
            "action": str(self.action),
            "previous_config": self.previous(),
            "new_config": self.new(),
            "user_id": self.user_id,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "created_at": rfc3339(self.created_at),
        }


ANONYMOUS_USER_ID = "anonymous"


@dataclass(frozen=True)
class AccessFilter:
    """Criteria for querying recorded permission checks. None matches anything."""

    user_id: str | None = None
    role_name: str | None = None
    resource: str | None = None
    action: str | None = None
    granted: bool | None = None
    limit: int = 50

    def matches(self, attempt: AccessAttempt) -> bool:
        return (
            (self.user_id is None or attempt.user_id == self.user_id)
            and (self.role_name is None or attempt.role_name == self.role_name)
            and (self.resource is None or attempt.resource == self.resource)
            and (self.action is None or attempt.action == self.action)
            and (self.granted is None or attempt.granted == self.granted)
        )


@dataclass(frozen=True)
class AccessAttempt:
    """One recorded permission check: what was asked, the answer, and why."""

    id: uuid.UUID
    role_name: str
    resource: str
    action: str
    scope: str
    granted: bool
    reason: str
    user_id: str
    target_id: str | None
    ip_address: str | None
    user_agent: str | None
    created_at: datetime

    @classmethod
    def for_check(
        cls,
        role_name: str,
        resource: str,
        action: str,
        scope: str,
        granted: bool,
        reason: str,
        actor: Actor | None = None,
        target_id: str | None = None,
    ) -> AccessAttempt:
        return cls(
            id=generate_uuid7(),
            role_name=role_name,
            resource=str(resource),
            action=str(action),
            scope=str(scope),
            granted=granted,
            reason=reason,
            user_id=actor.user_id if actor is not None else ANONYMOUS_USER_ID,
            target_id=target_id,
            ip_address=actor.ip_address if actor is not None else None,
            user_agent=actor.user_agent if actor is not None else None,
            created_at=utc_now(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "role_name": self.role_name,
            "resource": self.resource,
            "action": self.action,
            "scope": self.scope,
            "granted": self.granted,
            "reason": self.reason,
            "user_id": self.user_id,
            "target_id": self.target_id,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "created_at": rfc3339(self.created_at),
        }


def rfc3339(dt: datetime | None) -> str:
    if dt is None:
        return ""
    return dt.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
