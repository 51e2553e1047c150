"""RBAC service facade composing the role store, registry and resolver."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from uuid import UUID

from crewline_api.common.locks import KeyedLock
from crewline_api.common.logging import log_context
from crewline_api.core.rbac.grants import PermissionInput
from crewline_api.core.rbac.registry import PERMISSIONS, RESOURCES, SYSTEM_ROLES
from crewline_api.core.rbac.types import (
    AccessDecision,
    Membership,
    PermissionDef,
    ResourceDef,
    Role,
    User,
)

from .members import MembershipRegistry
from .resolver import PermissionResolver
from .roles import RolePatch, RoleStore
from .store import RbacStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Catalog:
    resources: tuple[ResourceDef, ...]
    permissions: tuple[PermissionDef, ...]


class RbacService:
    """Library surface of the authorization engine.

    All four components share one store and one lock table, so a role being
    deleted and a member being assigned to it are serialized on the same key.
    """

    def __init__(
        self,
        store: RbacStore,
        *,
        unassign_fallback_role: str | None = None,
    ) -> None:
        self._store = store
        locks = KeyedLock()
        self.roles = RoleStore(store, locks=locks)
        self.members = MembershipRegistry(
            store,
            self.roles,
            locks=locks,
            fallback_role=unassign_fallback_role,
        )
        self.resolver = PermissionResolver(self.members)

    @property
    def store(self) -> RbacStore:
        return self._store

    # Startup ----------------------------------------------------------------

    def sync_registry(self) -> list[Role]:
        """Seed or refresh the catalog's system roles."""
        roles = self.roles.sync_system_roles()
        logger.info(
            "rbac.registry.synced",
            extra=log_context(system_roles=len(roles), catalog_roles=len(SYSTEM_ROLES)),
        )
        return roles

    # Catalog ----------------------------------------------------------------

    def catalog(self) -> Catalog:
        return Catalog(resources=RESOURCES, permissions=PERMISSIONS)

    # Roles ------------------------------------------------------------------

    def list_roles(self) -> list[Role]:
        return self.roles.list_roles()

    def get_role(self, role_ref: object) -> Role:
        return self.roles.get_role(role_ref)

    def create_role(
        self,
        *,
        name: object,
        description: str | None = None,
        permissions: Iterable[PermissionInput] = (),
        is_active: bool = True,
    ) -> Role:
        return self.roles.create_custom_role(
            name,
            description,
            permissions,
            is_active=is_active,
        )

    def update_role(self, role_ref: object, patch: RolePatch) -> Role:
        return self.roles.update_custom_role(role_ref, patch)

    def toggle_permission(self, role_ref: object, *, resource: str, action: str) -> Role:
        return self.roles.toggle_permission(role_ref, resource, action)

    def delete_role(self, role_ref: object) -> None:
        self.roles.delete_custom_role(role_ref)

    # Members ----------------------------------------------------------------

    def assign_member(self, role_ref: object, user_id: object) -> Membership:
        return self.members.assign(user_id, role_ref)

    def unassign_member(self, role_ref: object, user_id: object) -> Membership:
        return self.members.unassign(user_id, role_ref)

    def list_members(self, role_ref: object) -> list[User]:
        """Members of a role, as user records, ordered by email."""
        member_ids = self.members.members_of(role_ref)
        users = [self._store.get_user(user_id) for user_id in member_ids]
        return sorted(
            (user for user in users if user is not None),
            key=lambda user: (user.email, str(user.id)),
        )

    def list_member_ids(self, role_ref: object) -> set[UUID]:
        return self.members.members_of(role_ref)

    def role_of(self, user_id: object) -> Role | None:
        return self.members.role_of(user_id)

    def register_user(self, user: User) -> User:
        return self.members.ensure_user(user)

    def get_user(self, user_id: UUID) -> User | None:
        return self._store.get_user(user_id)

    # Decisions --------------------------------------------------------------

    def check_permission(
        self,
        user_id: object,
        resource: object,
        action: object,
    ) -> AccessDecision:
        """Total: unknown users, roles, resources or actions all resolve to deny."""
        return self.resolver.check(user_id, resource, action)

    def is_allowed(self, user_id: object, resource: object, action: object) -> bool:
        return self.resolver.is_allowed(user_id, resource, action)

    def user_permissions(self, user_id: object) -> list[str]:
        return self.resolver.effective_permissions(user_id)


__all__ = ["Catalog", "RbacService"]
