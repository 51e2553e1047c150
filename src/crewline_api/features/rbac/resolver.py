"""Permission resolver: the allow/deny decision for a user."""

from __future__ import annotations

import logging

from crewline_api.common.logging import log_context
from crewline_api.core.rbac.registry import PERMISSIONS
from crewline_api.core.rbac.types import AccessDecision, Permission, Role, WildcardGrant

from .members import MembershipRegistry

logger = logging.getLogger(__name__)


def _describe(value: object) -> str:
    try:
        return str(value)
    except Exception:
        return f"<unprintable {type(value).__name__}>"


def decide(role: Role | None, resource: object, action: object) -> AccessDecision:
    """Evaluate one request against one role, first matching rule wins.

    1. no role, an inactive role or a non-string request: deny
    2. a wildcard grant: allow
    3. an entry for exactly ``resource`` that contains ``action``: allow
    4. anything else: deny
    """
    if role is None or not role.is_active:
        return AccessDecision.DENY
    if not isinstance(resource, str) or not isinstance(action, str):
        return AccessDecision.DENY
    if any(isinstance(grant, WildcardGrant) for grant in role.grants):
        return AccessDecision.ALLOW
    for grant in role.grants:
        if isinstance(grant, Permission) and grant.resource == resource:
            return AccessDecision.ALLOW if grant.allows(action) else AccessDecision.DENY
    return AccessDecision.DENY


class PermissionResolver:
    """Answers "may user U perform action A on resource R?".

    Reads the user's role through the membership registry and that role's
    grants from the same store the role store writes; there is no second
    grant table. ``check`` never raises.
    """

    def __init__(self, members: MembershipRegistry) -> None:
        self._members = members

    def check(self, user_id: object, resource: object, action: object) -> AccessDecision:
        try:
            role = self._members.role_of(user_id)
            decision = decide(role, resource, action)
        except Exception:
            logger.exception(
                "rbac.check.failed",
                extra=log_context(
                    user_id=_describe(user_id),
                    resource=_describe(resource),
                    action=_describe(action),
                ),
            )
            return AccessDecision.DENY

        logger.debug(
            "rbac.check",
            extra=log_context(
                user_id=_describe(user_id),
                resource=_describe(resource),
                action=_describe(action),
                decision=decision.value,
            ),
        )
        return decision

    def is_allowed(self, user_id: object, resource: object, action: object) -> bool:
        return self.check(user_id, resource, action).allowed

    def effective_permissions(self, user_id: object) -> list[str]:
        """Catalog keys the user currently holds, sorted.

        A convenience listing for UI gating; authorization goes through
        :meth:`check`.
        """
        try:
            role = self._members.role_of(user_id)
        except Exception:
            logger.exception(
                "rbac.effective_permissions.failed",
                extra=log_context(user_id=_describe(user_id)),
            )
            return []
        if role is None or not role.is_active:
            return []
        return sorted(
            definition.key
            for definition in PERMISSIONS
            if decide(role, definition.resource, definition.action).allowed
        )


__all__ = ["PermissionResolver", "decide"]
