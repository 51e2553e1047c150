"""Operational liveness/readiness endpoints."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Literal

from fastapi import APIRouter, status

from crewline_api.app.dependencies import RbacServiceDep, SettingsDep
from crewline_api.common.problem_details import ApiError
from crewline_api.common.schema import BaseSchema
from crewline_api.core.rbac.registry import SYSTEM_ROLES
from crewline_api.core.rbac.types import utc_now

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthCheckResponse(BaseSchema):
    status: Literal["ok"]
    version: str
    store: str
    timestamp: datetime


@router.get(
    "/health",
    response_model=HealthCheckResponse,
    status_code=status.HTTP_200_OK,
    summary="Service liveness probe",
)
def read_liveness(settings: SettingsDep) -> HealthCheckResponse:
    return HealthCheckResponse(
        status="ok",
        version=settings.app_version,
        store=settings.rbac_store,
        timestamp=utc_now(),
    )


@router.get(
    "/ready",
    response_model=HealthCheckResponse,
    status_code=status.HTTP_200_OK,
    summary="Service readiness probe",
)
def read_readiness(settings: SettingsDep, rbac: RbacServiceDep) -> HealthCheckResponse:
    """Ready once the role store answers and every system role is seeded."""
    try:
        seeded = sum(1 for role in rbac.list_roles() if role.is_system_role)
    except Exception as exc:
        logger.warning("health.ready.store_failed", exc_info=True)
        raise ApiError(
            error_type="service_unavailable",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Role store is not reachable",
        ) from exc
    if seeded < len(SYSTEM_ROLES):
        raise ApiError(
            error_type="service_unavailable",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="System roles are not seeded",
        )
    return read_liveness(settings)
