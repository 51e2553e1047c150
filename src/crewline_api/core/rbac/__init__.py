"""Authorization primitives: catalog, value types and domain errors."""

from .errors import (
    DuplicateRoleName,
    ImmutableRoleError,
    InvalidPermission,
    InvalidRoleName,
    NotAMember,
    RbacError,
    RoleHasMembers,
    RoleNotFound,
    UserNotFound,
)
from .registry import (
    PERMISSION_REGISTRY,
    PERMISSIONS,
    SYSTEM_ROLES,
    is_registered,
    list_actions,
    list_resources,
)
from .types import (
    WILDCARD,
    AccessDecision,
    Grant,
    Membership,
    Permission,
    Role,
    User,
    WildcardGrant,
)

__all__ = [
    "PERMISSIONS",
    "PERMISSION_REGISTRY",
    "SYSTEM_ROLES",
    "WILDCARD",
    "AccessDecision",
    "DuplicateRoleName",
    "Grant",
    "ImmutableRoleError",
    "InvalidPermission",
    "InvalidRoleName",
    "Membership",
    "NotAMember",
    "Permission",
    "RbacError",
    "Role",
    "RoleHasMembers",
    "RoleNotFound",
    "User",
    "UserNotFound",
    "WildcardGrant",
    "is_registered",
    "list_actions",
    "list_resources",
]
