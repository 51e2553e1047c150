"""Crewline FastAPI application entry point."""

from __future__ import annotations

from fastapi import FastAPI

from .api.v1.router import create_api_router
from .app.lifecycles import create_application_lifespan
from .common.exceptions import register_exception_handlers
from .common.logging import setup_logging
from .common.middleware import register_middleware
from .features.health.router import router as health_router
from .settings import Settings, get_settings

API_PREFIX = "/api/v1"


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the Crewline FastAPI application."""
    # Settings and logging first so everything else uses the configured root logger.
    settings = settings or get_settings()
    setup_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=False,
        lifespan=create_application_lifespan(settings=settings),
    )
    app.state.settings = settings

    register_exception_handlers(app)
    register_middleware(app, settings=settings)
    app.include_router(health_router, include_in_schema=False)
    app.include_router(create_api_router(), prefix=API_PREFIX)
    return app


__all__ = ["API_PREFIX", "create_app"]
