"""FastAPI dependencies: settings, the RBAC service and route guards."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, Request

from crewline_api.common.logging import log_context
from crewline_api.core.auth.errors import AuthenticationError, PermissionDeniedError
from crewline_api.core.rbac.types import User
from crewline_api.features.rbac.service import RbacService
from crewline_api.settings import Settings

logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-User-Id"


@dataclass(frozen=True, slots=True)
class Principal:
    """Caller identity as asserted by the authenticating gateway."""

    user: User | None
    auth_disabled: bool = False

    @property
    def user_id(self) -> UUID | None:
        return self.user.id if self.user is not None else None


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_rbac_service(request: Request) -> RbacService:
    service = getattr(request.app.state, "rbac_service", None)
    if service is None:
        raise RuntimeError("RBAC service not initialized; the application lifespan did not run.")
    return service


SettingsDep = Annotated[Settings, Depends(get_settings_dep)]
RbacServiceDep = Annotated[RbacService, Depends(get_rbac_service)]


def get_current_principal(
    settings: SettingsDep,
    rbac: RbacServiceDep,
    user_header: Annotated[str | None, Header(alias=USER_ID_HEADER)] = None,
) -> Principal:
    """Resolve the caller from the ``X-User-Id`` header."""

    if not user_header:
        if settings.auth_disabled:
            return Principal(user=None, auth_disabled=True)
        raise AuthenticationError("Authentication required")

    try:
        user_id = UUID(user_header.strip())
    except ValueError as exc:
        raise AuthenticationError("Malformed caller identity") from exc

    user = rbac.get_user(user_id)
    if user is None or not user.is_active:
        if settings.auth_disabled:
            return Principal(user=None, auth_disabled=True)
        logger.info("auth.unknown_user", extra=log_context(user_id=user_id))
        raise AuthenticationError("Unknown or inactive user")
    return Principal(user=user, auth_disabled=settings.auth_disabled)


PrincipalDep = Annotated[Principal, Depends(get_current_principal)]

type PermissionDependency = Callable[..., Principal]


def require_permission(permission_key: str) -> PermissionDependency:
    """Return a dependency enforcing ``resource.action`` for the caller."""

    resource, _, action = permission_key.partition(".")

    def dependency(principal: PrincipalDep, rbac: RbacServiceDep) -> Principal:
        if principal.auth_disabled:
            return principal
        if not rbac.is_allowed(principal.user_id, resource, action):
            logger.info(
                "auth.permission_denied",
                extra=log_context(user_id=principal.user_id, permission=permission_key),
            )
            raise PermissionDeniedError(
                permission_key,
                user_id=str(principal.user_id) if principal.user_id else None,
            )
        return principal

    return dependency


__all__ = [
    "USER_ID_HEADER",
    "PermissionDependency",
    "Principal",
    "PrincipalDep",
    "RbacServiceDep",
    "SettingsDep",
    "get_current_principal",
    "get_rbac_service",
    "get_settings_dep",
    "require_permission",
]
