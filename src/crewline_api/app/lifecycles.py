"""FastAPI lifespan helpers for the Crewline application."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.routing import Lifespan
from sqlalchemy.engine import make_url

from crewline_api.common.logging import log_context
from crewline_api.core.rbac.errors import RoleNotFound
from crewline_api.core.rbac.registry import COMPANY_OWNER
from crewline_api.core.rbac.types import User, utc_now
from crewline_api.db.engine import init_db, shutdown_db
from crewline_api.features.rbac.service import RbacService
from crewline_api.features.rbac.sql_store import SqlAlchemyRbacStore
from crewline_api.features.rbac.store import InMemoryRbacStore, RbacStore
from crewline_api.settings import Settings

logger = logging.getLogger(__name__)


def build_rbac_store(app: FastAPI, settings: Settings) -> RbacStore:
    """Return the store selected by ``CREWLINE_RBAC_STORE``."""

    if settings.rbac_store == "memory":
        return InMemoryRbacStore()

    safe_url = make_url(settings.database_url).render_as_string(hide_password=True)
    logger.info("db.init.start", extra={"database_url": safe_url})
    session_factory = init_db(app, settings)
    logger.info("db.init.complete", extra={"database_url": safe_url})
    return SqlAlchemyRbacStore(session_factory)


def seed_bootstrap_owner(service: RbacService, settings: Settings) -> None:
    """Register the configured owner and give them the owner role if roleless."""

    if settings.bootstrap_owner_id is None or not settings.bootstrap_owner_email:
        return

    user = service.register_user(
        User(
            id=settings.bootstrap_owner_id,
            email=settings.bootstrap_owner_email,
            display_name=settings.bootstrap_owner_name,
        )
    )
    if service.role_of(user.id) is not None:
        return
    try:
        service.assign_member(COMPANY_OWNER, user.id)
    except RoleNotFound:
        logger.warning(
            "rbac.bootstrap_owner.role_missing",
            extra=log_context(user_id=user.id, role_name=COMPANY_OWNER),
        )
        return
    logger.info(
        "rbac.bootstrap_owner.assigned",
        extra=log_context(user_id=user.id, role_name=COMPANY_OWNER),
    )


def create_application_lifespan(
    *,
    settings: Settings,
) -> Lifespan[FastAPI]:
    """Return the FastAPI lifespan handler used by the app factory."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.settings = settings
        app.state.started_at = utc_now()

        logger.info(
            "crewline_api.startup",
            extra=log_context(
                logging_level=settings.log_level,
                rbac_store=settings.rbac_store,
                auth_disabled=bool(settings.auth_disabled),
                version=settings.app_version,
            ),
        )
        if settings.auth_disabled:
            logger.warning("auth.disabled", extra=log_context(auth_disabled=True))

        store = build_rbac_store(app, settings)
        service = RbacService(
            store,
            unassign_fallback_role=settings.rbac_unassign_fallback_role,
        )

        def _bootstrap() -> None:
            service.sync_registry()
            seed_bootstrap_owner(service, settings)

        try:
            await asyncio.to_thread(_bootstrap)
        except Exception:
            logger.error("rbac.registry.sync.failed", exc_info=True)
            shutdown_db(app)
            raise

        app.state.rbac_service = service
        try:
            yield
        finally:
            app.state.rbac_service = None
            shutdown_db(app)
            logger.info("crewline_api.shutdown")

    return lifespan


__all__ = [
    "build_rbac_store",
    "create_application_lifespan",
    "seed_bootstrap_owner",
]
