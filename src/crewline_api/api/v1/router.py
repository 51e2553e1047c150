"""Version 1 API router."""

from __future__ import annotations

from fastapi import APIRouter

from crewline_api.features.rbac.router import router as rbac_router


def create_api_router() -> APIRouter:
    router = APIRouter()
    router.include_router(rbac_router)
    return router


__all__ = ["create_api_router"]
