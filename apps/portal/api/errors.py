"""Map lifecycle and request errors onto the portal's JSON error envelope.

Every error body has the shape
``{"error": {"code", "message", "details", "correlationId"}}``.
"""

from __future__ import annotations

from typing import Any, Mapping

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from apps.portal.core.context import get_correlation_id, new_correlation_id
from apps.portal.requests.concurrency import format_etag
from apps.portal.requests.errors import (
    AuthorizationError,
    ConflictError,
    LifecycleError,
    NotFoundError,
    PreconditionError,
    TransitionError,
    ValidationError,
)

# ordered most specific first; PreconditionError must win over ValidationError
_STATUS_BY_ERROR: tuple[tuple[type[LifecycleError], int], ...] = (
    (PreconditionError, 400),
    (ValidationError, 422),
    (TransitionError, 422),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
)

_CODE_BY_STATUS: Mapping[int, str] = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    503: "SERVICE_UNAVAILABLE",
}


def status_for(exc: LifecycleError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", None) or get_correlation_id() or new_correlation_id()


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: Any = None,
    headers: Mapping[str, str] | None = None,
) -> JSONResponse:
    body = {
        "error": {
            "code": code,
            "message": message,
            "details": details,
            "correlationId": _correlation_id(request),
        }
    }
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body), headers=dict(headers or {}))


async def lifecycle_error_handler(request: Request, exc: LifecycleError) -> JSONResponse:
    headers: dict[str, str] = {}
    if isinstance(exc, ConflictError) and "currentVersion" in exc.details:
        headers["ETag"] = format_etag(int(exc.details["currentVersion"]))
    return error_response(
        request,
        status_code=status_for(exc),
        code=exc.code,
        message=exc.message,
        details=exc.details or None,
        headers=headers,
    )


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(
        request,
        status_code=400,
        code="VALIDATION_ERROR",
        message="Invalid request data",
        details=exc.errors(),
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(
        request,
        status_code=exc.status_code,
        code=_CODE_BY_STATUS.get(exc.status_code, "HTTP_ERROR"),
        message=str(exc.detail),
        headers=getattr(exc, "headers", None),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LifecycleError, lifecycle_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
