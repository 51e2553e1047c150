"""Domain errors raised by the role store, membership registry and catalog."""

from __future__ import annotations


class RbacError(ValueError):
    """Base class for recoverable authorization-engine errors."""

    code = "rbac_error"


class RoleNotFound(RbacError):
    code = "role_not_found"

    def __init__(self, role_ref: object) -> None:
        super().__init__(f"Role '{role_ref}' not found")
        self.role_ref = role_ref


class UserNotFound(RbacError):
    code = "user_not_found"

    def __init__(self, user_id: object) -> None:
        super().__init__(f"User '{user_id}' not found")
        self.user_id = user_id


class DuplicateRoleName(RbacError):
    code = "duplicate_role_name"

    def __init__(self, name: str) -> None:
        super().__init__(f"A role named '{name}' already exists")
        self.name = name


class DuplicateUserEmail(RbacError):
    code = "duplicate_user_email"

    def __init__(self, email: str) -> None:
        super().__init__(f"A user with email '{email}' is already registered")
        self.email = email


class ImmutableRoleError(RbacError):
    code = "immutable_role"

    def __init__(self, name: str) -> None:
        super().__init__(f"System role '{name}' cannot be modified")
        self.name = name


class InvalidPermission(RbacError):
    code = "invalid_permission"

    def __init__(self, resource: object, action: object, reason: str | None = None) -> None:
        message = reason or f"Permission '{resource}.{action}' is not in the catalog"
        super().__init__(message)
        self.resource = resource
        self.action = action


class InvalidRoleName(RbacError):
    code = "invalid_role_name"


class NotAMember(RbacError):
    code = "not_a_member"

    def __init__(self, user_id: object, role_ref: object) -> None:
        super().__init__(f"User '{user_id}' is not a member of role '{role_ref}'")
        self.user_id = user_id
        self.role_ref = role_ref


class RoleHasMembers(RbacError):
    code = "role_has_members"

    def __init__(self, name: str, member_count: int) -> None:
        noun = "member" if member_count == 1 else "members"
        super().__init__(
            f"Role '{name}' still has {member_count} {noun}; reassign them before deleting it"
        )
        self.name = name
        self.member_count = member_count


__all__ = [
    "DuplicateRoleName",
    "DuplicateUserEmail",
    "ImmutableRoleError",
    "InvalidPermission",
    "InvalidRoleName",
    "NotAMember",
    "RbacError",
    "RoleHasMembers",
    "RoleNotFound",
    "UserNotFound",
]
