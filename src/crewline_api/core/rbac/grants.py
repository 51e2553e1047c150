"""Pure helpers for building and editing a role's grant list.

All functions take and return tuples of grants; none mutate their input.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from crewline_api.core.rbac.errors import InvalidPermission
from crewline_api.core.rbac.registry import RESOURCE_REGISTRY, is_registered
from crewline_api.core.rbac.types import WILDCARD_TOKEN, Grant, Permission, WildcardGrant

type PermissionInput = Permission | tuple[str, Iterable[str]] | Mapping[str, object]


def coerce_permission(entry: PermissionInput) -> Permission:
    """Accept a :class:`Permission`, a ``(resource, actions)`` pair or a mapping."""

    if isinstance(entry, Permission):
        return entry
    if isinstance(entry, Mapping):
        resource = entry.get("resource")
        actions = entry.get("actions", ())
    else:
        try:
            resource, actions = entry
        except (TypeError, ValueError) as exc:
            raise InvalidPermission(
                entry, None, reason=f"Malformed permission entry: {entry!r}"
            ) from exc

    if resource == WILDCARD_TOKEN:
        raise InvalidPermission(
            resource, None, reason="The wildcard grant is reserved for system roles"
        )
    if not isinstance(resource, str):
        raise InvalidPermission(resource, None, reason=f"Resource must be a string: {resource!r}")
    if isinstance(actions, str) or not isinstance(actions, Iterable):
        raise InvalidPermission(
            resource, actions, reason=f"Actions for '{resource}' must be a list of strings"
        )
    collected: set[str] = set()
    for action in actions:
        if not isinstance(action, str):
            raise InvalidPermission(resource, action)
        collected.add(action)
    return Permission(resource=resource, actions=frozenset(collected))


def validate_permission(permission: Permission) -> None:
    if permission.resource not in RESOURCE_REGISTRY:
        raise InvalidPermission(
            permission.resource,
            None,
            reason=f"Resource '{permission.resource}' is not in the catalog",
        )
    for action in sorted(permission.actions):
        if action == WILDCARD_TOKEN or not is_registered(permission.resource, action):
            raise InvalidPermission(permission.resource, action)


def normalize_permissions(entries: Iterable[PermissionInput]) -> tuple[Permission, ...]:
    """Validate entries against the catalog, merge repeats and drop empty sets.

    Resources keep the position of their first appearance.
    """

    merged: dict[str, set[str]] = {}
    for entry in entries:
        permission = coerce_permission(entry)
        validate_permission(permission)
        merged.setdefault(permission.resource, set()).update(permission.actions)
    return tuple(
        Permission(resource=resource, actions=frozenset(actions))
        for resource, actions in merged.items()
        if actions
    )


def toggle_permission(grants: tuple[Grant, ...], resource: str, action: str) -> tuple[Grant, ...]:
    """Flip ``action`` on ``resource``.

    An entry whose action set becomes empty is removed; a missing entry is
    appended with the single action. Applying the same toggle twice returns
    the original grants.
    """

    updated: list[Grant] = []
    found = False
    for grant in grants:
        if isinstance(grant, Permission) and grant.resource == resource:
            found = True
            actions = grant.actions ^ {action}
            if actions:
                updated.append(Permission(resource=resource, actions=actions))
            continue
        updated.append(grant)
    if not found:
        updated.append(Permission(resource=resource, actions=frozenset({action})))
    return tuple(updated)


def merge_permissions(
    grants: tuple[Grant, ...],
    changes: Iterable[Permission],
) -> tuple[Grant, ...]:
    """Apply a per-resource patch.

    Each change replaces the action set of the resource it names, an empty set
    removes that resource, and resources the patch does not mention are kept.
    Repeated changes for the same resource are combined, as on create.
    """

    pending: dict[str, frozenset[str]] = {}
    for change in changes:
        pending[change.resource] = pending.get(change.resource, frozenset()) | change.actions

    updated: list[Grant] = []
    for grant in grants:
        if isinstance(grant, Permission) and grant.resource in pending:
            actions = pending.pop(grant.resource)
            if actions:
                updated.append(Permission(resource=grant.resource, actions=actions))
            continue
        updated.append(grant)
    for resource, actions in pending.items():
        if actions:
            updated.append(Permission(resource=resource, actions=actions))
    return tuple(updated)


def grant_keys(grants: Iterable[Grant]) -> list[str]:
    """Render grants as ``resource.action`` keys, the wildcard as ``*``."""

    keys: list[str] = []
    for grant in grants:
        if isinstance(grant, WildcardGrant):
            keys.append(WILDCARD_TOKEN)
            continue
        keys.extend(f"{grant.resource}.{action}" for action in sorted(grant.actions))
    return keys


__all__ = [
    "PermissionInput",
    "coerce_permission",
    "grant_keys",
    "merge_permissions",
    "normalize_permissions",
    "toggle_permission",
    "validate_permission",
]
