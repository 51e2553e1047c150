"""Role store: system role seeding and custom role lifecycle."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from uuid import UUID, uuid4

from crewline_api.common.locks import KeyedLock, role_key, role_name_key
from crewline_api.common.logging import log_context
from crewline_api.core.rbac.errors import (
    DuplicateRoleName,
    ImmutableRoleError,
    InvalidPermission,
    InvalidRoleName,
    RoleHasMembers,
    RoleNotFound,
)
from crewline_api.core.rbac.grants import (
    PermissionInput,
    coerce_permission,
    merge_permissions,
    normalize_permissions,
    toggle_permission,
    validate_permission,
)
from crewline_api.core.rbac.registry import SYSTEM_ROLES, is_registered
from crewline_api.core.rbac.types import Role, utc_now

from .store import RbacStore

logger = logging.getLogger(__name__)

MAX_ROLE_NAME_LENGTH = 150

type RoleRef = UUID | str

_SYSTEM_ORDER: dict[str, int] = {
    definition.name: index for index, definition in enumerate(SYSTEM_ROLES)
}


@dataclass(frozen=True, slots=True)
class RolePatch:
    """Partial update for a custom role.

    ``None`` leaves a field unchanged; an empty ``description`` clears it.
    ``permissions`` replaces the action set of each resource it names (an
    empty set removes the resource). ``toggles`` flip single actions, in order,
    after ``permissions`` is applied.
    """

    name: str | None = None
    description: str | None = None
    is_active: bool | None = None
    permissions: Sequence[PermissionInput] | None = None
    toggles: Sequence[tuple[str, str]] = ()


def normalize_role_name(value: object) -> str:
    if not isinstance(value, str):
        raise InvalidRoleName("Role name must be a string")
    candidate = value.strip()
    if not candidate:
        raise InvalidRoleName("Role name is required")
    if len(candidate) > MAX_ROLE_NAME_LENGTH:
        raise InvalidRoleName(f"Role name must be at most {MAX_ROLE_NAME_LENGTH} characters")
    if _parse_uuid(candidate) is not None:
        raise InvalidRoleName("Role name must not be a role id")
    return candidate


def _normalize_description(value: str | None) -> str | None:
    if value is None:
        return None
    candidate = value.strip()
    return candidate or None


def _parse_uuid(value: str) -> UUID | None:
    try:
        return UUID(value)
    except ValueError:
        return None


class RoleStore:
    """Owns role records: lookup, seeding and custom role mutations.

    Mutations on one role are serialized by its key in ``locks``; name claims
    are serialized by the claimed name, so two creates racing for the same
    name cannot both succeed.
    """

    def __init__(self, store: RbacStore, *, locks: KeyedLock | None = None) -> None:
        self._store = store
        self._locks = locks or KeyedLock()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_role(self, role_ref: object) -> Role | None:
        """Resolve a role by id, id string or exact name."""
        if isinstance(role_ref, UUID):
            return self._store.get_role(role_ref)
        if not isinstance(role_ref, str):
            return None
        role_id = _parse_uuid(role_ref)
        if role_id is not None:
            role = self._store.get_role(role_id)
            if role is not None:
                return role
        return self._store.get_role_by_name(role_ref)

    def get_role(self, role_ref: object) -> Role:
        role = self.find_role(role_ref)
        if role is None:
            raise RoleNotFound(role_ref)
        return role

    def list_roles(self) -> list[Role]:
        """System roles in catalog order, then custom roles in creation order."""
        roles = self._store.list_roles()
        system = sorted(
            (role for role in roles if role.is_system_role),
            key=lambda role: _SYSTEM_ORDER.get(role.name, len(_SYSTEM_ORDER)),
        )
        custom = [role for role in roles if not role.is_system_role]
        return [*system, *custom]

    # ------------------------------------------------------------------
    # System roles
    # ------------------------------------------------------------------

    def sync_system_roles(self) -> list[Role]:
        """Ensure every catalog system role exists with its canonical grants."""
        logger.debug("rbac.system_roles.sync.start")
        synced: list[Role] = []

        for definition in SYSTEM_ROLES:
            with self._locks.hold(role_name_key(definition.name)):
                existing = self._store.get_role_by_name(definition.name)
                if existing is not None and not existing.is_system_role:
                    logger.error(
                        "rbac.system_roles.sync.name_taken",
                        extra=log_context(role_id=existing.id, role_name=definition.name),
                    )
                    raise DuplicateRoleName(definition.name)

                if existing is None:
                    role = Role(
                        id=uuid4(),
                        name=definition.name,
                        description=definition.description,
                        is_system_role=True,
                        is_active=definition.is_active,
                        grants=definition.grants,
                    )
                    self._store.save_role(role)
                    logger.info(
                        "rbac.system_roles.created",
                        extra=log_context(role_id=role.id, role_name=role.name),
                    )
                elif (
                    existing.grants != definition.grants
                    or existing.description != definition.description
                    or existing.is_active != definition.is_active
                ):
                    role = replace(
                        existing,
                        description=definition.description,
                        is_active=definition.is_active,
                        grants=definition.grants,
                        updated_at=utc_now(),
                    )
                    self._store.save_role(role)
                    logger.info(
                        "rbac.system_roles.updated",
                        extra=log_context(role_id=role.id, role_name=role.name),
                    )
                else:
                    role = existing
                synced.append(role)

        logger.debug("rbac.system_roles.sync.success", extra=log_context(count=len(synced)))
        return synced

    # ------------------------------------------------------------------
    # Custom roles
    # ------------------------------------------------------------------

    def create_custom_role(
        self,
        name: object,
        description: str | None = None,
        permissions: Iterable[PermissionInput] = (),
        *,
        is_active: bool = True,
    ) -> Role:
        normalized_name = normalize_role_name(name)

        with self._locks.hold(role_name_key(normalized_name)):
            if self._store.get_role_by_name(normalized_name) is not None:
                raise DuplicateRoleName(normalized_name)
            grants = normalize_permissions(permissions)
            now = utc_now()
            role = Role(
                id=uuid4(),
                name=normalized_name,
                description=_normalize_description(description),
                is_system_role=False,
                is_active=is_active,
                grants=grants,
                created_at=now,
                updated_at=now,
            )
            self._store.save_role(role)

        logger.info(
            "rbac.role.created",
            extra=log_context(
                role_id=role.id,
                role_name=role.name,
                resource_count=len(role.permissions),
            ),
        )
        return role

    def update_custom_role(self, role_ref: object, patch: RolePatch) -> Role:
        target = self._require_custom(role_ref)
        new_name = normalize_role_name(patch.name) if patch.name is not None else None

        keys = [role_key(target.id)]
        if new_name is not None and new_name != target.name:
            keys.append(role_name_key(new_name))

        with self._locks.hold(*keys):
            current = self._store.get_role(target.id)
            if current is None:
                raise RoleNotFound(role_ref)
            if current.is_system_role:
                raise ImmutableRoleError(current.name)

            if new_name is not None and new_name != current.name:
                holder = self._store.get_role_by_name(new_name)
                if holder is not None and holder.id != current.id:
                    raise DuplicateRoleName(new_name)

            grants = current.grants
            if patch.permissions is not None:
                changes = [coerce_permission(entry) for entry in patch.permissions]
                for change in changes:
                    validate_permission(change)
                grants = merge_permissions(grants, changes)
            for resource, action in patch.toggles:
                if not is_registered(resource, action):
                    raise InvalidPermission(resource, action)
                grants = toggle_permission(grants, resource, action)

            updated = replace(
                current,
                name=new_name if new_name is not None else current.name,
                description=(
                    _normalize_description(patch.description)
                    if patch.description is not None
                    else current.description
                ),
                is_active=patch.is_active if patch.is_active is not None else current.is_active,
                grants=grants,
                updated_at=utc_now(),
            )
            self._store.save_role(updated)

        logger.info(
            "rbac.role.updated",
            extra=log_context(
                role_id=updated.id,
                role_name=updated.name,
                renamed=updated.name != current.name,
                toggles=len(patch.toggles),
            ),
        )
        return updated

    def toggle_permission(self, role_ref: object, resource: str, action: str) -> Role:
        """Flip one action on one resource of a custom role, atomically."""
        return self.update_custom_role(role_ref, RolePatch(toggles=((resource, action),)))

    def delete_custom_role(self, role_ref: object) -> None:
        """Delete a custom role; roles that still have members are kept."""
        target = self._require_custom(role_ref)

        with self._locks.hold(role_key(target.id)):
            current = self._store.get_role(target.id)
            if current is None:
                raise RoleNotFound(role_ref)
            member_count = self._store.count_members(current.id)
            if member_count:
                raise RoleHasMembers(current.name, member_count)
            self._store.delete_role(current.id)

        logger.info(
            "rbac.role.deleted",
            extra=log_context(role_id=current.id, role_name=current.name),
        )

    def _require_custom(self, role_ref: object) -> Role:
        role = self.get_role(role_ref)
        if role.is_system_role:
            raise ImmutableRoleError(role.name)
        return role


__all__ = ["MAX_ROLE_NAME_LENGTH", "RolePatch", "RoleRef", "RoleStore", "normalize_role_name"]
