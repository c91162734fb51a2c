"""
Exception handlers

Every error leaves the API in one envelope:

    {"error": {"status_code": 429, "error_code": "VIEW_REJECTED",
               "message": "View not counted: cooldown_active",
               "type": "Too Many Requests",
               "details": {"reason": "cooldown_active", "content_slug": "alpha"},
               "path": "/views/alpha"}}
"""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from viewguard.exceptions import CMSError, ErrorCode

logger = logging.getLogger(__name__)

# Status codes this service answers with, and how plain HTTP errors are labelled
_STATUS_LABELS: dict[int, tuple[str, ErrorCode]] = {
    400: ("Bad Request", ErrorCode.VALIDATION_FAILED),
    403: ("Forbidden", ErrorCode.AUTH_PERMISSION_DENIED),
    404: ("Not Found", ErrorCode.RESOURCE_NOT_FOUND),
    405: ("Method Not Allowed", ErrorCode.VALIDATION_FAILED),
    422: ("Validation Error", ErrorCode.VALIDATION_FAILED),
    429: ("Too Many Requests", ErrorCode.RATE_LIMIT_EXCEEDED),
    500: ("Internal Server Error", ErrorCode.INTERNAL_ERROR),
    503: ("Service Unavailable", ErrorCode.SERVICE_UNAVAILABLE),
}


def error_type_for(status_code: int) -> str:
    return _STATUS_LABELS.get(status_code, ("Error", None))[0]


def error_code_for(status_code: int) -> ErrorCode:
    if status_code in _STATUS_LABELS:
        return _STATUS_LABELS[status_code][1]
    return ErrorCode.INTERNAL_ERROR if status_code >= 500 else ErrorCode.UNKNOWN_ERROR


def create_error_response(
    status_code: int,
    message: str,
    error_code: ErrorCode,
    details: dict[str, Any] | None = None,
    path: str | None = None,
) -> JSONResponse:
    body: dict[str, Any] = {
        "status_code": status_code,
        "error_code": error_code.value,
        "message": message,
        "type": error_type_for(status_code),
    }
    if details:
        body["details"] = details
    if path:
        body["path"] = path
    return JSONResponse(status_code=status_code, content={"error": body})


async def app_error_handler(request: Request, exc: CMSError) -> JSONResponse:
    """Rejections are routine and logged at INFO; storage and overflow faults at ERROR."""
    level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    logger.log(
        level,
        f"{type(exc).__name__} on {request.url.path}: {exc.message}",
        extra={"status_code": exc.status_code, "error_code": exc.error_code.value, "details": exc.details},
    )
    return create_error_response(exc.status_code, exc.message, exc.error_code, exc.details, request.url.path)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    logger.warning(f"HTTP {exc.status_code} on {request.url.path}: {exc.detail}")
    return create_error_response(
        exc.status_code, str(exc.detail), error_code_for(exc.status_code), path=request.url.path
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(f"Validation error on {request.url.path}", extra={"errors": errors})
    return create_error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation error",
        ErrorCode.VALIDATION_FAILED,
        {"validation_errors": errors},
        request.url.path,
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the failure in full; the caller only gets a generic message."""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    return create_error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred. Please try again later.",
        ErrorCode.INTERNAL_ERROR,
        path=request.url.path,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CMSError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
