"""Centralized FastAPI exception handlers with structured logging."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import cast

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from crewline_api.core.auth.errors import AuthenticationError, PermissionDeniedError
from crewline_api.core.rbac.errors import (
    DuplicateRoleName,
    DuplicateUserEmail,
    ImmutableRoleError,
    InvalidPermission,
    InvalidRoleName,
    NotAMember,
    RbacError,
    RoleHasMembers,
    RoleNotFound,
    UserNotFound,
)

from .logging import log_context
from .problem_details import (
    ApiError,
    ProblemDetailsErrorItem,
    build_problem_details,
    error_items_from_pydantic,
    resolve_error_definition,
)

type HttpExceptionHandler = Callable[[Request, Exception], Response | Awaitable[Response]]

_UNHANDLED_LOGGER = logging.getLogger("crewline_api.errors")
_HTTP_LOGGER = logging.getLogger("crewline_api.http")
_PROBLEM_MEDIA_TYPE = "application/problem+json"

RBAC_ERROR_STATUS: dict[type[RbacError], int] = {
    RoleNotFound: status.HTTP_404_NOT_FOUND,
    UserNotFound: status.HTTP_404_NOT_FOUND,
    DuplicateRoleName: status.HTTP_409_CONFLICT,
    DuplicateUserEmail: status.HTTP_409_CONFLICT,
    NotAMember: status.HTTP_409_CONFLICT,
    RoleHasMembers: status.HTTP_409_CONFLICT,
    ImmutableRoleError: status.HTTP_403_FORBIDDEN,
    InvalidPermission: 422,
    InvalidRoleName: 422,
}


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "correlation_id", None)


def _problem_response(
    *,
    request: Request,
    status_code: int,
    detail: str | dict[str, object] | None,
    errors: list[ProblemDetailsErrorItem] | None,
    error_type: str | None = None,
    title: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    problem = build_problem_details(
        status_code=status_code,
        instance=str(request.url.path),
        request_id=_request_id(request),
        detail=detail,
        errors=errors,
        error_type=error_type,
        title=title,
    )
    return JSONResponse(
        status_code=problem.status,
        content=problem.serializable_dict(),
        media_type=_PROBLEM_MEDIA_TYPE,
        headers=headers,
    )


def rbac_status_for(exc: RbacError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in RBAC_ERROR_STATUS:
            return RBAC_ERROR_STATUS[error_type]
    return status.HTTP_400_BAD_REQUEST


def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected exceptions.

    Logs the stack trace at ERROR and answers with an opaque HTTP 500.
    """
    _UNHANDLED_LOGGER.exception(
        "unhandled_exception",
        extra=log_context(
            path=str(request.url.path),
            method=request.method,
            exception_type=type(exc).__name__,
        ),
    )
    return _problem_response(
        request=request,
        status_code=500,
        detail="Internal server error",
        errors=None,
        error_type=resolve_error_definition(500).type,
    )


def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for HTTPException; 5xx responses are logged, 4xx are not."""
    if exc.status_code >= 500:
        _HTTP_LOGGER.error(
            "http_exception",
            extra=log_context(
                path=str(request.url.path),
                method=request.method,
                status_code=exc.status_code,
                detail=exc.detail,
            ),
        )

    detail = exc.detail if isinstance(exc.detail, (str, dict)) else None
    if exc.status_code == 500:
        detail = "Internal server error"

    return _problem_response(
        request=request,
        status_code=exc.status_code,
        detail=detail,
        errors=None,
        headers=getattr(exc, "headers", None),
    )


def request_validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    return _problem_response(
        request=request,
        status_code=422,
        detail="Invalid request",
        errors=error_items_from_pydantic(exc.errors()),
        error_type=resolve_error_definition(422).type,
    )


def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return _problem_response(
        request=request,
        status_code=exc.status_code,
        detail=exc.detail,
        errors=exc.errors,
        error_type=exc.error_type,
        title=exc.title,
        headers=exc.headers,
    )


def rbac_error_handler(request: Request, exc: RbacError) -> JSONResponse:
    """Translate role store and membership errors into Problem Details."""
    return _problem_response(
        request=request,
        status_code=rbac_status_for(exc),
        detail=str(exc),
        errors=None,
        error_type=exc.code,
    )


def authentication_error_handler(request: Request, exc: AuthenticationError) -> JSONResponse:
    error = ApiError(
        error_type="unauthorized",
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=str(exc) or "Authentication required",
    )
    return api_error_handler(request, error)


def permission_denied_handler(request: Request, exc: PermissionDeniedError) -> JSONResponse:
    error = ApiError(
        error_type="forbidden",
        status_code=status.HTTP_403_FORBIDDEN,
        detail=str(exc) or "Forbidden",
    )
    return api_error_handler(request, error)


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the Problem Details handlers to ``app``."""

    def _handler(fn: Callable[..., Response]) -> HttpExceptionHandler:
        return cast(HttpExceptionHandler, fn)

    app.add_exception_handler(
        RequestValidationError, _handler(request_validation_exception_handler)
    )
    app.add_exception_handler(HTTPException, _handler(http_exception_handler))
    app.add_exception_handler(StarletteHTTPException, _handler(http_exception_handler))
    app.add_exception_handler(ApiError, _handler(api_error_handler))
    app.add_exception_handler(RbacError, _handler(rbac_error_handler))
    app.add_exception_handler(AuthenticationError, _handler(authentication_error_handler))
    app.add_exception_handler(PermissionDeniedError, _handler(permission_denied_handler))
    app.add_exception_handler(Exception, _handler(unhandled_exception_handler))


__all__ = [
    "RBAC_ERROR_STATUS",
    "api_error_handler",
    "authentication_error_handler",
    "http_exception_handler",
    "permission_denied_handler",
    "rbac_error_handler",
    "rbac_status_for",
    "register_exception_handlers",
    "request_validation_exception_handler",
    "unhandled_exception_handler",
]
