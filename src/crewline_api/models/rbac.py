"""Tables backing the SQL role and membership store."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, false, true
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crewline_api.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from crewline_api.db.types import UUIDType


class UserRecord(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """User known to the console; identities are issued upstream."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )


class RoleRecord(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Role definition. System roles are seeded and never edited through the API."""

    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(String(150), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_system: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )
    has_wildcard: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    ordinal: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    grants: Mapped[list[RoleGrantRecord]] = relationship(
        "RoleGrantRecord",
        back_populates="role",
        cascade="all, delete-orphan",
        order_by="RoleGrantRecord.position",
        lazy="selectin",
    )


class RoleGrantRecord(Base):
    """One allowed action on one resource for a role."""

    __tablename__ = "role_permissions"

    role_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True
    )
    resource: Mapped[str] = mapped_column(String(100), primary_key=True)
    action: Mapped[str] = mapped_column(String(100), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    role: Mapped[RoleRecord] = relationship("RoleRecord", back_populates="grants")


class RoleMembershipRecord(TimestampMixin, Base):
    """Current role of a user; the primary key keeps it to one per user."""

    __tablename__ = "role_memberships"

    user_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    role_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("roles.id", ondelete="NO ACTION"), nullable=False, index=True
    )


__all__ = ["RoleGrantRecord", "RoleMembershipRecord", "RoleRecord", "UserRecord"]
