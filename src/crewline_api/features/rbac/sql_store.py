"""SQLAlchemy implementation of :class:`RbacStore`."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from crewline_api.core.rbac.types import WILDCARD, Grant, Permission, Role, User
from crewline_api.db.engine import session_scope
from crewline_api.models import RoleGrantRecord, RoleMembershipRecord, RoleRecord, UserRecord


def _to_role(record: RoleRecord) -> Role:
    grouped: dict[str, set[str]] = {}
    for grant in sorted(record.grants, key=lambda item: (item.position, item.action)):
        grouped.setdefault(grant.resource, set()).add(grant.action)

    grants: list[Grant] = []
    if record.has_wildcard:
        grants.append(WILDCARD)
    grants.extend(
        Permission(resource=resource, actions=frozenset(actions))
        for resource, actions in grouped.items()
    )
    return Role(
        id=record.id,
        name=record.name,
        description=record.description,
        is_system_role=record.is_system,
        is_active=record.is_active,
        grants=tuple(grants),
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _to_user(record: UserRecord) -> User:
    return User(
        id=record.id,
        email=record.email,
        display_name=record.display_name,
        is_active=record.is_active,
    )


def _sync_grants(record: RoleRecord, role: Role) -> None:
    desired: dict[tuple[str, str], int] = {}
    for position, permission in enumerate(role.permissions):
        for action in permission.actions:
            desired[(permission.resource, action)] = position

    for grant in list(record.grants):
        key = (grant.resource, grant.action)
        if key not in desired:
            record.grants.remove(grant)
            continue
        grant.position = desired.pop(key)

    for (resource, action), position in desired.items():
        record.grants.append(
            RoleGrantRecord(resource=resource, action=action, position=position)
        )


class SqlAlchemyRbacStore:
    """Store that persists roles, users and memberships through SQLAlchemy.

    Each call runs in its own session and commits before returning.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    # Roles ---------------------------------------------------------------

    def list_roles(self) -> list[Role]:
        with self._session_factory() as session:
            stmt = select(RoleRecord).order_by(
                RoleRecord.ordinal, RoleRecord.created_at, RoleRecord.id
            )
            records = session.scalars(stmt).all()
            return [_to_role(record) for record in records]

    def get_role(self, role_id: UUID) -> Role | None:
        with self._session_factory() as session:
            record = session.get(RoleRecord, role_id)
            return _to_role(record) if record is not None else None

    def get_role_by_name(self, name: str) -> Role | None:
        with self._session_factory() as session:
            record = session.scalars(select(RoleRecord).where(RoleRecord.name == name)).first()
            return _to_role(record) if record is not None else None

    def save_role(self, role: Role) -> None:
        with session_scope(self._session_factory) as session:
            record = session.get(RoleRecord, role.id)
            if record is None:
                last_ordinal = session.scalar(select(func.max(RoleRecord.ordinal)))
                record = RoleRecord(id=role.id, ordinal=int(last_ordinal or 0) + 1)
                record.created_at = role.created_at
                session.add(record)
            record.name = role.name
            record.description = role.description
            record.is_system = role.is_system_role
            record.is_active = role.is_active
            record.has_wildcard = role.has_wildcard
            record.updated_at = role.updated_at
            _sync_grants(record, role)

    def delete_role(self, role_id: UUID) -> None:
        with session_scope(self._session_factory) as session:
            record = session.get(RoleRecord, role_id)
            if record is not None:
                session.delete(record)

    # Users ---------------------------------------------------------------

    def get_user(self, user_id: UUID) -> User | None:
        with self._session_factory() as session:
            record = session.get(UserRecord, user_id)
            return _to_user(record) if record is not None else None

    def get_user_by_email(self, email: str) -> User | None:
        with self._session_factory() as session:
            stmt = select(UserRecord).where(
                func.lower(UserRecord.email) == email.strip().lower()
            )
            record = session.scalars(stmt).first()
            return _to_user(record) if record is not None else None

    def save_user(self, user: User) -> None:
        with session_scope(self._session_factory) as session:
            record = session.get(UserRecord, user.id)
            if record is None:
                record = UserRecord(id=user.id)
                session.add(record)
            record.email = user.email
            record.display_name = user.display_name
            record.is_active = user.is_active

    # Memberships -----------------------------------------------------------

    def get_membership(self, user_id: UUID) -> UUID | None:
        with self._session_factory() as session:
            record = session.get(RoleMembershipRecord, user_id)
            return record.role_id if record is not None else None

    def set_membership(self, user_id: UUID, role_id: UUID | None) -> None:
        with session_scope(self._session_factory) as session:
            record = session.get(RoleMembershipRecord, user_id)
            if role_id is None:
                if record is not None:
                    session.delete(record)
                return
            if record is None:
                session.add(RoleMembershipRecord(user_id=user_id, role_id=role_id))
            else:
                record.role_id = role_id

    def members_of(self, role_id: UUID) -> set[UUID]:
        with self._session_factory() as session:
            stmt = select(RoleMembershipRecord.user_id).where(
                RoleMembershipRecord.role_id == role_id
            )
            return set(session.scalars(stmt).all())

    def count_members(self, role_id: UUID) -> int:
        with self._session_factory() as session:
            stmt = (
                select(func.count())
                .select_from(RoleMembershipRecord)
                .where(RoleMembershipRecord.role_id == role_id)
            )
            return int(session.scalar(stmt) or 0)


__all__ = ["SqlAlchemyRbacStore"]
