"""RBAC value types shared by the catalog, stores and resolver."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID

WILDCARD_TOKEN = "*"


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class Permission:
    """Explicit grant: a resource and the actions allowed on it."""

    resource: str
    actions: frozenset[str]

    def allows(self, action: str) -> bool:
        return action in self.actions


@dataclass(frozen=True, slots=True)
class WildcardGrant:
    """Grant covering every resource and every action."""

    def __str__(self) -> str:
        return WILDCARD_TOKEN


WILDCARD = WildcardGrant()

type Grant = Permission | WildcardGrant


@dataclass(frozen=True, slots=True)
class Role:
    """Stored role snapshot. Mutations replace the whole value."""

    id: UUID
    name: str
    description: str | None
    is_system_role: bool
    is_active: bool
    grants: tuple[Grant, ...] = ()
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def permissions(self) -> tuple[Permission, ...]:
        return tuple(grant for grant in self.grants if isinstance(grant, Permission))

    @property
    def has_wildcard(self) -> bool:
        return any(isinstance(grant, WildcardGrant) for grant in self.grants)

    def actions_for(self, resource: str) -> frozenset[str]:
        for grant in self.permissions:
            if grant.resource == resource:
                return grant.actions
        return frozenset()


@dataclass(frozen=True, slots=True)
class User:
    """User record as far as the engine cares: existence and identity."""

    id: UUID
    email: str
    display_name: str | None = None
    is_active: bool = True


@dataclass(frozen=True, slots=True)
class Membership:
    """Current user -> role binding. ``role`` is ``None`` for a roleless user."""

    user_id: UUID
    role: Role | None


class AccessDecision(str, enum.Enum):
    ALLOW = "allow"
    DENY = "deny"

    @property
    def allowed(self) -> bool:
        return self is AccessDecision.ALLOW


@dataclass(frozen=True)
class PermissionDef:
    """Static catalog entry for one resource/action pair."""

    key: str
    resource: str
    action: str
    label: str
    description: str


@dataclass(frozen=True)
class ResourceDef:
    """Static catalog entry for a protected resource."""

    key: str
    label: str
    actions: tuple[str, ...]


@dataclass(frozen=True)
class SystemRoleDef:
    """Static system role definition seeded at startup."""

    name: str
    description: str
    grants: tuple[Grant, ...]
    is_active: bool = True


__all__ = [
    "WILDCARD",
    "WILDCARD_TOKEN",
    "AccessDecision",
    "Grant",
    "Membership",
    "Permission",
    "PermissionDef",
    "ResourceDef",
    "Role",
    "SystemRoleDef",
    "User",
    "WildcardGrant",
    "utc_now",
]
