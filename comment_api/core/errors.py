"""Exception handlers shared by all routes.

Error bodies have the form::

    {"error": true, "message": ..., "status_code": ..., "request_id": ...}

except admin authentication failures, which answer
``{"error": <reason>, "timestamp": <RFC3339>}`` for compatibility with
existing admin clients. Stack traces are logged, never returned.
"""

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from comment_api.auth import AdminAuthError
from comment_api.core.context import get_request_id
from comment_api.core.logging import get_logger


logger = get_logger(__name__)

GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please try again later."

# 5xx details that are safe to show (e.g. "Comment service not available")
PUBLIC_SERVER_ERRORS = frozenset({status.HTTP_503_SERVICE_UNAVAILABLE})


def error_response(
    request: Request, status_code: int, message: str, **extra: Any
) -> ORJSONResponse:
    request_id = getattr(request.state, "request_id", None) or get_request_id()
    return ORJSONResponse(
        status_code=status_code,
        content={
            "error": True,
            "message": message,
            "status_code": status_code,
            "request_id": request_id,
            **extra,
        },
    )


async def admin_auth_error_handler(
    request: Request, exc: AdminAuthError
) -> ORJSONResponse:
    logger.info(
        "admin_auth_failed",
        reason=exc.message,
        path=request.url.path,
        method=request.method,
    )
    return ORJSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "timestamp": exc.timestamp},
    )


async def http_error_handler(
    request: Request, exc: StarletteHTTPException
) -> ORJSONResponse:
    logger.warning(
        "http_exception",
        status_code=exc.status_code,
        detail=str(exc.detail),
        path=request.url.path,
        method=request.method,
    )
    public = (
        exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
        or exc.status_code in PUBLIC_SERVER_ERRORS
    )
    message = str(exc.detail) if public else "Internal server error"
    response = error_response(request, exc.status_code, message)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> ORJSONResponse:
    """Malformed JSON, missing fields and bad path parameters answer 400."""
    errors = exc.errors()
    logger.warning(
        "validation_error",
        errors=errors,
        path=request.url.path,
        method=request.method,
    )
    return error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        "Invalid request",
        details=[
            {
                "field": ".".join(str(loc) for loc in err.get("loc", ())),
                "message": err.get("msg", "Invalid value"),
            }
            for err in errors
        ],
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> ORJSONResponse:
    logger.exception(
        "unhandled_exception",
        error_type=type(exc).__name__,
        error_message=str(exc),
        path=request.url.path,
        method=request.method,
    )
    return error_response(
        request, status.HTTP_500_INTERNAL_SERVER_ERROR, GENERIC_ERROR_MESSAGE
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AdminAuthError, admin_auth_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
