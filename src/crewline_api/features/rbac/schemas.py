from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import Field

from crewline_api.common.schema import BaseSchema


class PermissionOut(BaseSchema):
    """API representation of one catalog permission."""

    key: str
    resource: str
    action: str
    label: str
    description: str


class ResourceOut(BaseSchema):
    key: str
    label: str
    actions: list[str]


class CatalogOut(BaseSchema):
    """Resources, actions and permission keys the engine understands."""

    resources: list[ResourceOut]
    actions: list[str]
    permissions: list[PermissionOut]


class PermissionEntry(BaseSchema):
    """A resource and the actions granted on it."""

    resource: str
    actions: list[str]


class RoleCreate(BaseSchema):
    """Payload for creating a custom role."""

    name: str
    description: str | None = None
    permissions: list[PermissionEntry] = Field(default_factory=list)
    is_active: bool = Field(default=True, alias="isActive")


class RoleUpdate(BaseSchema):
    """Partial update for a custom role.

    Each ``permissions`` entry replaces the actions of its resource; an entry
    with no actions removes the resource. Omitted resources are untouched.
    """

    name: str | None = None
    description: str | None = None
    is_active: bool | None = Field(default=None, alias="isActive")
    permissions: list[PermissionEntry] | None = None


class PermissionToggle(BaseSchema):
    resource: str
    action: str


class RoleOut(BaseSchema):
    """API representation of a role. The wildcard grant renders as ``"*"``."""

    id: UUID
    name: str
    description: str | None
    is_system_role: bool = Field(alias="isSystemRole")
    is_active: bool = Field(alias="isActive")
    permissions: list[PermissionEntry | Literal["*"]]
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")


class MemberRequest(BaseSchema):
    user_id: UUID = Field(alias="userId")


class UserOut(BaseSchema):
    id: UUID
    email: str
    display_name: str | None = Field(default=None, alias="displayName")
    is_active: bool = Field(alias="isActive")


class UserCreate(BaseSchema):
    """Register a user known to the upstream identity provider."""

    id: UUID | None = None
    email: str = Field(min_length=3, max_length=320)
    display_name: str | None = Field(default=None, alias="displayName")


class RoleMembersOut(BaseSchema):
    role_id: UUID = Field(alias="roleId")
    role_name: str = Field(alias="roleName")
    members: list[UserOut]


class MembershipOut(BaseSchema):
    """A user's role after an assign or unassign; ``None`` when roleless."""

    user_id: UUID = Field(alias="userId")
    role_id: UUID | None = Field(default=None, alias="roleId")
    role_name: str | None = Field(default=None, alias="roleName")


class PermissionCheckRequest(BaseSchema):
    """Authorization query. Fields are untyped so malformed input denies, not 422s."""

    user_id: Any = Field(default=None, alias="userId")
    resource: Any = None
    action: Any = None


class PermissionCheckOut(BaseSchema):
    allowed: bool
    decision: Literal["allow", "deny"]


class UserPermissionsOut(BaseSchema):
    user_id: UUID = Field(alias="userId")
    role_name: str | None = Field(default=None, alias="roleName")
    permissions: list[str]


__all__ = [
    "CatalogOut",
    "MemberRequest",
    "MembershipOut",
    "PermissionCheckOut",
    "PermissionCheckRequest",
    "PermissionEntry",
    "PermissionOut",
    "PermissionToggle",
    "ResourceOut",
    "RoleCreate",
    "RoleMembersOut",
    "RoleOut",
    "RoleUpdate",
    "UserCreate",
    "UserOut",
    "UserPermissionsOut",
]
