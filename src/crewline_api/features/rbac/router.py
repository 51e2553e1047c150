from __future__ import annotations

from typing import Annotated, Literal
from uuid import UUID, uuid4

from fastapi import APIRouter, Body, Path, Response, Security, status

from crewline_api.app.dependencies import (
    PrincipalDep,
    RbacServiceDep,
    require_permission,
)
from crewline_api.core.auth.errors import PermissionDeniedError
from crewline_api.core.rbac.registry import list_actions
from crewline_api.core.rbac.types import (
    WILDCARD_TOKEN,
    Membership,
    Permission,
    Role,
    User,
    WildcardGrant,
)

from .roles import RolePatch
from .schemas import (
    CatalogOut,
    MemberRequest,
    MembershipOut,
    PermissionCheckOut,
    PermissionCheckRequest,
    PermissionEntry,
    PermissionOut,
    PermissionToggle,
    ResourceOut,
    RoleCreate,
    RoleMembersOut,
    RoleOut,
    RoleUpdate,
    UserCreate,
    UserOut,
    UserPermissionsOut,
)

router = APIRouter(tags=["rbac"])

RoleRefPath = Annotated[
    str,
    Path(description="Role identifier or exact role name", alias="roleRef"),
]
UserPath = Annotated[
    UUID,
    Path(description="User identifier", alias="userId"),
]

_READ_ROLES = Security(require_permission("users.view"))
_MANAGE_ROLES = Security(require_permission("users.manage"))
_CREATE_USERS = Security(require_permission("users.create"))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _serialize_role(role: Role) -> RoleOut:
    permissions: list[PermissionEntry | Literal["*"]] = []
    for grant in role.grants:
        if isinstance(grant, WildcardGrant):
            permissions.append(WILDCARD_TOKEN)
        elif isinstance(grant, Permission):
            ordered = [action for action in list_actions() if action in grant.actions]
            permissions.append(PermissionEntry(resource=grant.resource, actions=ordered))
    return RoleOut(
        id=role.id,
        name=role.name,
        description=role.description,
        is_system_role=role.is_system_role,
        is_active=role.is_active,
        permissions=permissions,
        created_at=role.created_at,
        updated_at=role.updated_at,
    )


def _serialize_user(user: User) -> UserOut:
    return UserOut(
        id=user.id,
        email=user.email,
        display_name=user.display_name,
        is_active=user.is_active,
    )


def _serialize_membership(membership: Membership) -> MembershipOut:
    role = membership.role
    return MembershipOut(
        user_id=membership.user_id,
        role_id=role.id if role is not None else None,
        role_name=role.name if role is not None else None,
    )


def _entries(payload: list[PermissionEntry]) -> list[tuple[str, list[str]]]:
    return [(entry.resource, entry.actions) for entry in payload]


# ---------------------------------------------------------------------------
# Catalog and decisions
# ---------------------------------------------------------------------------


@router.get(
    "/permissions",
    response_model=CatalogOut,
    summary="List the permission catalog",
)
def read_catalog(_principal: PrincipalDep, rbac: RbacServiceDep) -> CatalogOut:
    catalog = rbac.catalog()
    return CatalogOut(
        resources=[
            ResourceOut(key=resource.key, label=resource.label, actions=list(resource.actions))
            for resource in catalog.resources
        ],
        actions=list(list_actions()),
        permissions=[
            PermissionOut(
                key=definition.key,
                resource=definition.resource,
                action=definition.action,
                label=definition.label,
                description=definition.description,
            )
            for definition in catalog.permissions
        ],
    )


@router.post(
    "/permissions/check",
    response_model=PermissionCheckOut,
    summary="Decide whether a user may perform an action on a resource",
)
def check_permission(
    _principal: PrincipalDep,
    rbac: RbacServiceDep,
    payload: Annotated[PermissionCheckRequest | None, Body()] = None,
) -> PermissionCheckOut:
    query = payload or PermissionCheckRequest()
    decision = rbac.check_permission(query.user_id, query.resource, query.action)
    return PermissionCheckOut(allowed=decision.allowed, decision=decision.value)


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------


@router.get(
    "/roles",
    dependencies=[_READ_ROLES],
    response_model=list[RoleOut],
    summary="List system and custom roles",
)
def list_roles(rbac: RbacServiceDep) -> list[RoleOut]:
    return [_serialize_role(role) for role in rbac.list_roles()]


@router.post(
    "/roles",
    dependencies=[_MANAGE_ROLES],
    response_model=RoleOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a custom role",
)
def create_role(payload: RoleCreate, rbac: RbacServiceDep) -> RoleOut:
    role = rbac.create_role(
        name=payload.name,
        description=payload.description,
        permissions=_entries(payload.permissions),
        is_active=payload.is_active,
    )
    return _serialize_role(role)


@router.get(
    "/roles/{roleRef}",
    dependencies=[_READ_ROLES],
    response_model=RoleOut,
    summary="Retrieve a role by id or name",
)
def read_role(role_ref: RoleRefPath, rbac: RbacServiceDep) -> RoleOut:
    return _serialize_role(rbac.get_role(role_ref))


@router.patch(
    "/roles/{roleRef}",
    dependencies=[_MANAGE_ROLES],
    response_model=RoleOut,
    summary="Update a custom role",
)
def update_role(role_ref: RoleRefPath, payload: RoleUpdate, rbac: RbacServiceDep) -> RoleOut:
    patch = RolePatch(
        name=payload.name,
        description=payload.description,
        is_active=payload.is_active,
        permissions=_entries(payload.permissions) if payload.permissions is not None else None,
    )
    return _serialize_role(rbac.update_role(role_ref, patch))


@router.post(
    "/roles/{roleRef}/permissions/toggle",
    dependencies=[_MANAGE_ROLES],
    response_model=RoleOut,
    summary="Toggle one action on one resource of a custom role",
)
def toggle_role_permission(
    role_ref: RoleRefPath,
    payload: PermissionToggle,
    rbac: RbacServiceDep,
) -> RoleOut:
    role = rbac.toggle_permission(role_ref, resource=payload.resource, action=payload.action)
    return _serialize_role(role)


@router.delete(
    "/roles/{roleRef}",
    dependencies=[_MANAGE_ROLES],
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete a custom role without members",
)
def delete_role(role_ref: RoleRefPath, rbac: RbacServiceDep) -> Response:
    rbac.delete_role(role_ref)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------


@router.get(
    "/roles/{roleRef}/members",
    dependencies=[_READ_ROLES],
    response_model=RoleMembersOut,
    summary="List the members of a role",
)
def list_role_members(role_ref: RoleRefPath, rbac: RbacServiceDep) -> RoleMembersOut:
    role = rbac.get_role(role_ref)
    members = rbac.list_members(role.id)
    return RoleMembersOut(
        role_id=role.id,
        role_name=role.name,
        members=[_serialize_user(user) for user in members],
    )


@router.put(
    "/roles/{roleRef}/assign",
    dependencies=[_MANAGE_ROLES],
    response_model=MembershipOut,
    summary="Make a user a member of a role, replacing their current role",
)
def assign_member(
    role_ref: RoleRefPath,
    payload: MemberRequest,
    rbac: RbacServiceDep,
) -> MembershipOut:
    return _serialize_membership(rbac.assign_member(role_ref, payload.user_id))


@router.put(
    "/roles/{roleRef}/unassign",
    dependencies=[_MANAGE_ROLES],
    response_model=MembershipOut,
    summary="Remove a user from a role",
)
def unassign_member(
    role_ref: RoleRefPath,
    payload: MemberRequest,
    rbac: RbacServiceDep,
) -> MembershipOut:
    return _serialize_membership(rbac.unassign_member(role_ref, payload.user_id))


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@router.post(
    "/users",
    dependencies=[_CREATE_USERS],
    response_model=UserOut,
    status_code=status.HTTP_201_CREATED,
    summary="Register a user so it can be given a role",
)
def register_user(payload: UserCreate, rbac: RbacServiceDep) -> UserOut:
    user_id = payload.id or uuid4()
    user = rbac.register_user(
        User(id=user_id, email=payload.email.strip(), display_name=payload.display_name)
    )
    return _serialize_user(user)


@router.get(
    "/users/{userId}/permissions",
    response_model=UserPermissionsOut,
    summary="List the permission keys a user currently holds",
)
def read_user_permissions(
    user_id: UserPath,
    principal: PrincipalDep,
    rbac: RbacServiceDep,
) -> UserPermissionsOut:
    if (
        not principal.auth_disabled
        and principal.user_id != user_id
        and not rbac.is_allowed(principal.user_id, "users", "view")
    ):
        raise PermissionDeniedError("users.view", user_id=str(principal.user_id))
    role = rbac.role_of(user_id)
    return UserPermissionsOut(
        user_id=user_id,
        role_name=role.name if role is not None else None,
        permissions=rbac.user_permissions(user_id),
    )


__all__ = ["router"]
