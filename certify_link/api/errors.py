"""
Exception handlers.

Every error leaves the API as an RFC 7807 problem-details document
with two extra members, trace_id and timestamp:

    {"type", "title", "status", "detail", "instance",
     "code", "details", "trace_id", "timestamp"}
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from certify_link.exceptions import ERROR_TYPE_BASE_URL, AppError, ErrorCode

logger = logging.getLogger(__name__)

PROBLEM_CONTENT_TYPE = "application/problem+json"
TRACE_HEADER = "X-Request-ID"

_DEFAULT_ERROR_CODES: dict[int, ErrorCode] = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    405: ErrorCode.VALIDATION_ERROR,
    409: ErrorCode.CONFLICT,
    422: ErrorCode.VALIDATION_ERROR,
    423: ErrorCode.ACCOUNT_LOCKED,
    429: ErrorCode.RATE_LIMIT_EXCEEDED,
}


def trace_id_for(request: Request) -> str:
    return request.headers.get(TRACE_HEADER) or uuid.uuid4().hex


def _problem(
    request: Request,
    status: int,
    title: str,
    detail: str,
    code: str,
    details: Any = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = {
        "type": f"{ERROR_TYPE_BASE_URL}/{code}",
        "title": title,
        "status": status,
        "detail": detail,
        "instance": request.url.path,
        "code": code,
        "details": details or {},
        "trace_id": trace_id_for(request),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    return JSONResponse(
        content=jsonable_encoder(body),
        status_code=status,
        headers=headers,
        media_type=PROBLEM_CONTENT_TYPE,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", exc.code, request.url.path, exc.message)
    else:
        logger.info("%s on %s: %s", exc.code, request.url.path, exc.message)

    problem = exc.to_problem_details(instance=request.url.path)
    return _problem(
        request,
        status=problem["status"],
        title=problem["title"],
        detail=problem["detail"],
        code=problem["code"],
        details=problem["details"],
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    code = _DEFAULT_ERROR_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    detail = exc.detail if isinstance(exc.detail, str) else "Request failed"
    details = exc.detail if isinstance(exc.detail, dict) else None
    return _problem(
        request,
        status=exc.status_code,
        title="HTTPException",
        detail=detail,
        code=code.value,
        details=details,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return _problem(
        request,
        status=422,
        title="ValidationError",
        detail="Request validation failed",
        code=ErrorCode.VALIDATION_ERROR.value,
        details={"errors": jsonable_encoder(exc.errors())},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Never leak internals to the client.
    logger.exception("Unhandled error on %s", request.url.path)
    return _problem(
        request,
        status=500,
        title="InternalServerError",
        detail="An unexpected error occurred",
        code=ErrorCode.INTERNAL_ERROR.value,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
