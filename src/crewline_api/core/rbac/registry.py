"""Permission catalog and system role seed table.

This module is the only place resources, actions and built-in role grants are
written down. Stores seed system roles from :data:`SYSTEM_ROLES`; nothing
resolves permissions against this table directly.
"""

from __future__ import annotations

from crewline_api.core.rbac.types import (
    WILDCARD,
    Grant,
    Permission,
    PermissionDef,
    ResourceDef,
    SystemRoleDef,
)

ACTIONS: tuple[str, ...] = ("view", "create", "edit", "delete", "manage", "invite")

_ACTION_LABELS: dict[str, str] = {
    "view": "View",
    "create": "Create",
    "edit": "Edit",
    "delete": "Delete",
    "manage": "Manage",
    "invite": "Invite",
}

_CRUD: tuple[str, ...] = ("view", "create", "edit", "delete", "manage")

RESOURCES: tuple[ResourceDef, ...] = (
    ResourceDef(key="jobs", label="Jobs", actions=_CRUD),
    ResourceDef(key="schedules", label="Schedules", actions=_CRUD),
    ResourceDef(key="customers", label="Customers", actions=_CRUD),
    ResourceDef(key="estimates", label="Estimates", actions=_CRUD),
    ResourceDef(key="invoices", label="Invoices", actions=_CRUD),
    ResourceDef(key="reports", label="Reports", actions=_CRUD),
    ResourceDef(key="users", label="Users", actions=(*_CRUD, "invite")),
    ResourceDef(key="purchasing", label="Purchasing", actions=_CRUD),
    ResourceDef(key="equipment", label="Equipment", actions=_CRUD),
    ResourceDef(key="work", label="Work board", actions=_CRUD),
    ResourceDef(key="inbox", label="Inbox", actions=("view",)),
)

RESOURCE_REGISTRY: dict[str, ResourceDef] = {resource.key: resource for resource in RESOURCES}


def _permission(resource: ResourceDef, action: str) -> PermissionDef:
    return PermissionDef(
        key=f"{resource.key}.{action}",
        resource=resource.key,
        action=action,
        label=f"{_ACTION_LABELS[action]} {resource.label.lower()}",
        description=f"{_ACTION_LABELS[action]} access to {resource.label.lower()}.",
    )


PERMISSIONS: tuple[PermissionDef, ...] = tuple(
    _permission(resource, action) for resource in RESOURCES for action in resource.actions
)

PERMISSION_REGISTRY: dict[str, PermissionDef] = {
    definition.key: definition for definition in PERMISSIONS
}


def list_resources() -> tuple[str, ...]:
    """Return resource ids in catalog order."""
    return tuple(resource.key for resource in RESOURCES)


def list_actions() -> tuple[str, ...]:
    """Return action ids in catalog order."""
    return ACTIONS


def is_registered(resource: object, action: object) -> bool:
    if not isinstance(resource, str) or not isinstance(action, str):
        return False
    return f"{resource}.{action}" in PERMISSION_REGISTRY


def permission_key(resource: str, action: str) -> str:
    return f"{resource}.{action}"


def _grant(resource: str, *actions: str) -> Permission:
    return Permission(resource=resource, actions=frozenset(actions))


_OPERATIONS_MANAGER: tuple[Grant, ...] = (
    _grant("jobs", "view", "create", "edit", "delete"),
    _grant("schedules", "view", "create", "edit", "delete"),
    _grant("customers", "view", "create", "edit"),
    _grant("estimates", "view", "create", "edit"),
    _grant("invoices", "view", "create", "edit"),
    _grant("reports", "view"),
    _grant("users", "view", "invite"),
    _grant("work", "view", "manage"),
    _grant("inbox", "view"),
)

_ESTIMATOR: tuple[Grant, ...] = (
    _grant("jobs", "view"),
    _grant("customers", "view", "create", "edit"),
    _grant("estimates", "view", "create", "edit", "delete"),
    _grant("work", "view"),
    _grant("inbox", "view"),
)

_ACCOUNTANT: tuple[Grant, ...] = (
    _grant("jobs", "view"),
    _grant("customers", "view"),
    _grant("invoices", "view", "create", "edit", "delete"),
    _grant("reports", "view"),
    _grant("work", "view"),
    _grant("inbox", "view"),
)

_STAFF: tuple[Grant, ...] = (
    _grant("jobs", "view", "edit"),
    _grant("schedules", "view"),
    _grant("work", "view"),
    _grant("inbox", "view"),
)

_CLIENT: tuple[Grant, ...] = (
    _grant("jobs", "view"),
    _grant("invoices", "view"),
    _grant("schedules", "view"),
    _grant("work", "view"),
    _grant("inbox", "view"),
)

SUPER_ADMIN = "Super Admin"
COMPANY_OWNER = "Company Owner"

SYSTEM_ROLES: tuple[SystemRoleDef, ...] = (
    SystemRoleDef(
        name=SUPER_ADMIN,
        description="Platform operator with unrestricted access.",
        grants=(WILDCARD,),
    ),
    SystemRoleDef(
        name=COMPANY_OWNER,
        description="Owns the company account; full access including role management.",
        grants=(WILDCARD,),
    ),
    SystemRoleDef(
        name="Operations Manager",
        description="Runs day-to-day operations: jobs, schedules, billing and the team.",
        grants=_OPERATIONS_MANAGER,
    ),
    SystemRoleDef(
        name="Estimator",
        description="Prepares estimates and manages customer records.",
        grants=_ESTIMATOR,
    ),
    SystemRoleDef(
        name="Accountant",
        description="Handles invoicing and financial reporting.",
        grants=_ACCOUNTANT,
    ),
    SystemRoleDef(
        name="Staff",
        description="Field staff working assigned jobs.",
        grants=_STAFF,
    ),
    SystemRoleDef(
        name="Client",
        description="External customer with read-only access to their jobs and invoices.",
        grants=_CLIENT,
    ),
)

SYSTEM_ROLE_BY_NAME: dict[str, SystemRoleDef] = {role.name: role for role in SYSTEM_ROLES}


__all__ = [
    "ACTIONS",
    "COMPANY_OWNER",
    "PERMISSIONS",
    "PERMISSION_REGISTRY",
    "RESOURCES",
    "RESOURCE_REGISTRY",
    "SUPER_ADMIN",
    "SYSTEM_ROLES",
    "SYSTEM_ROLE_BY_NAME",
    "is_registered",
    "list_actions",
    "list_resources",
    "permission_key",
]
