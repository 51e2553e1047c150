"""Persistence interface for roles, users and memberships.

The engine calls the store synchronously, once per read or write. Stores only
persist snapshots; validation and serialization of concurrent edits live in
:mod:`crewline_api.features.rbac.roles` and ``members``.
"""

from __future__ import annotations

import threading
from typing import Protocol, runtime_checkable
from uuid import UUID

from crewline_api.core.rbac.types import Role, User


@runtime_checkable
class RbacStore(Protocol):
    """Storage collaborator consumed by the role store and membership registry."""

    def list_roles(self) -> list[Role]:
        """Return every role in insertion order."""
        ...

    def get_role(self, role_id: UUID) -> Role | None: ...

    def get_role_by_name(self, name: str) -> Role | None: ...

    def save_role(self, role: Role) -> None:
        """Insert ``role`` or replace the stored role with the same id."""
        ...

    def delete_role(self, role_id: UUID) -> None: ...

    def get_user(self, user_id: UUID) -> User | None: ...

    def get_user_by_email(self, email: str) -> User | None:
        """Return the user whose email matches ``email`` ignoring case."""
        ...

    def save_user(self, user: User) -> None: ...

    def get_membership(self, user_id: UUID) -> UUID | None:
        """Return the id of the user's current role, if any."""
        ...

    def set_membership(self, user_id: UUID, role_id: UUID | None) -> None:
        """Bind ``user_id`` to ``role_id``; ``None`` clears the binding."""
        ...

    def members_of(self, role_id: UUID) -> set[UUID]: ...

    def count_members(self, role_id: UUID) -> int: ...


class InMemoryRbacStore:
    """Process-local store backed by dictionaries.

    Point reads take no lock. Writes and listing copies hold a short internal
    lock for the duration of the dictionary update.
    """

    def __init__(self) -> None:
        self._roles: dict[UUID, Role] = {}
        self._role_ids_by_name: dict[str, UUID] = {}
        self._users: dict[UUID, User] = {}
        self._memberships: dict[UUID, UUID] = {}
        self._commit_lock = threading.Lock()

    # Roles ---------------------------------------------------------------

    def list_roles(self) -> list[Role]:
        with self._commit_lock:
            return list(self._roles.values())

    def get_role(self, role_id: UUID) -> Role | None:
        return self._roles.get(role_id)

    def get_role_by_name(self, name: str) -> Role | None:
        role_id = self._role_ids_by_name.get(name)
        if role_id is None:
            return None
        return self._roles.get(role_id)

    def save_role(self, role: Role) -> None:
        with self._commit_lock:
            previous = self._roles.get(role.id)
            if previous is not None and previous.name != role.name:
                self._role_ids_by_name.pop(previous.name, None)
            self._roles[role.id] = role
            self._role_ids_by_name[role.name] = role.id

    def delete_role(self, role_id: UUID) -> None:
        with self._commit_lock:
            role = self._roles.pop(role_id, None)
            if role is not None:
                self._role_ids_by_name.pop(role.name, None)

    # Users ---------------------------------------------------------------

    def get_user(self, user_id: UUID) -> User | None:
        return self._users.get(user_id)

    def get_user_by_email(self, email: str) -> User | None:
        wanted = email.strip().lower()
        with self._commit_lock:
            users = list(self._users.values())
        return next((user for user in users if user.email.lower() == wanted), None)

    def save_user(self, user: User) -> None:
        with self._commit_lock:
            self._users[user.id] = user

    # Memberships -----------------------------------------------------------

    def get_membership(self, user_id: UUID) -> UUID | None:
        return self._memberships.get(user_id)

    def set_membership(self, user_id: UUID, role_id: UUID | None) -> None:
        with self._commit_lock:
            if role_id is None:
                self._memberships.pop(user_id, None)
            else:
                self._memberships[user_id] = role_id

    def members_of(self, role_id: UUID) -> set[UUID]:
        with self._commit_lock:
            snapshot = list(self._memberships.items())
        return {user_id for user_id, bound_role in snapshot if bound_role == role_id}

    def count_members(self, role_id: UUID) -> int:
        return len(self.members_of(role_id))


__all__ = ["InMemoryRbacStore", "RbacStore"]
