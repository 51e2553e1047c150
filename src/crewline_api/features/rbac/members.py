"""Membership registry: the single current role of each user."""

from __future__ import annotations

import logging
from uuid import UUID

from crewline_api.common.locks import KeyedLock, role_key, user_email_key, user_key
from crewline_api.common.logging import log_context
from crewline_api.core.rbac.errors import (
    DuplicateUserEmail,
    NotAMember,
    RoleNotFound,
    UserNotFound,
)
from crewline_api.core.rbac.types import Membership, Role, User

from .roles import RoleStore
from .store import RbacStore

logger = logging.getLogger(__name__)


def _coerce_user_id(value: object) -> UUID | None:
    if isinstance(value, UUID):
        return value
    if isinstance(value, str):
        try:
            return UUID(value)
        except ValueError:
            return None
    return None


class MembershipRegistry:
    """Assigns users to roles; at most one role per user.

    ``assign`` overwrites whatever role the user held before. ``unassign``
    leaves the user roleless, or moves them to ``fallback_role`` when one is
    configured and usable.
    """

    def __init__(
        self,
        store: RbacStore,
        roles: RoleStore,
        *,
        locks: KeyedLock | None = None,
        fallback_role: str | None = None,
    ) -> None:
        self._store = store
        self._roles = roles
        self._locks = locks or KeyedLock()
        self._fallback_role = fallback_role

    @property
    def fallback_role(self) -> str | None:
        return self._fallback_role

    def assign(self, user_id: object, role_ref: object) -> Membership:
        target = self._roles.find_role(role_ref)
        if target is None or not target.is_active:
            raise RoleNotFound(role_ref)
        resolved_user = _coerce_user_id(user_id)
        if resolved_user is None:
            raise UserNotFound(user_id)

        with self._locks.hold(user_key(resolved_user), role_key(target.id)):
            role = self._store.get_role(target.id)
            if role is None or not role.is_active:
                raise RoleNotFound(role_ref)
            if self._store.get_user(resolved_user) is None:
                raise UserNotFound(user_id)
            previous_role_id = self._store.get_membership(resolved_user)
            self._store.set_membership(resolved_user, role.id)

        logger.info(
            "rbac.member.assigned",
            extra=log_context(
                role_id=role.id,
                user_id=resolved_user,
                role_name=role.name,
                previous_role_id=str(previous_role_id) if previous_role_id else None,
            ),
        )
        return Membership(user_id=resolved_user, role=role)

    def unassign(self, user_id: object, role_ref: object) -> Membership:
        resolved_user = _coerce_user_id(user_id)
        target = self._roles.find_role(role_ref)
        if resolved_user is None or target is None:
            raise NotAMember(user_id, role_ref)

        fallback = self._resolve_fallback(exclude=target)
        keys = [user_key(resolved_user), role_key(target.id)]
        if fallback is not None:
            keys.append(role_key(fallback.id))

        with self._locks.hold(*keys):
            if self._store.get_membership(resolved_user) != target.id:
                raise NotAMember(user_id, role_ref)
            if fallback is not None:
                fallback = self._store.get_role(fallback.id)
                if fallback is not None and not fallback.is_active:
                    fallback = None
            self._store.set_membership(
                resolved_user, fallback.id if fallback is not None else None
            )

        logger.info(
            "rbac.member.unassigned",
            extra=log_context(
                role_id=target.id,
                user_id=resolved_user,
                role_name=target.name,
                fallback_role=fallback.name if fallback is not None else None,
            ),
        )
        return Membership(user_id=resolved_user, role=fallback)

    def members_of(self, role_ref: object) -> set[UUID]:
        role = self._roles.get_role(role_ref)
        return self._store.members_of(role.id)

    def role_of(self, user_id: object) -> Role | None:
        resolved_user = _coerce_user_id(user_id)
        if resolved_user is None:
            return None
        role_id = self._store.get_membership(resolved_user)
        if role_id is None:
            return None
        return self._store.get_role(role_id)

    def ensure_user(self, user: User) -> User:
        """Register ``user`` with the store if it is not known yet.

        Re-registering a known id returns the stored user unchanged. Emails are
        unique ignoring case; a new id claiming a taken email raises
        :class:`DuplicateUserEmail`.
        """
        existing = self._store.get_user(user.id)
        if existing is not None:
            return existing
        with self._locks.hold(user_key(user.id), user_email_key(user.email)):
            existing = self._store.get_user(user.id)
            if existing is not None:
                return existing
            holder = self._store.get_user_by_email(user.email)
            if holder is not None:
                raise DuplicateUserEmail(user.email)
            self._store.save_user(user)
        logger.info("rbac.user.registered", extra=log_context(user_id=user.id))
        return user

    def _resolve_fallback(self, *, exclude: Role) -> Role | None:
        if not self._fallback_role:
            return None
        fallback = self._roles.find_role(self._fallback_role)
        if fallback is None:
            logger.warning(
                "rbac.member.fallback_missing",
                extra=log_context(fallback_role=self._fallback_role),
            )
            return None
        if fallback.id == exclude.id or not fallback.is_active:
            return None
        return fallback


__all__ = ["MembershipRegistry"]
