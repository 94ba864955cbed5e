"""Error responses for the HTTP layer.

The import pipeline reports row and batch problems inside its results;
the exceptions here cover what happens around it: bad requests,
authentication, request decoding and anything unexpected. Every error
response has the shape ``{"error": {"code", "message", "request_id",
"details"?}}``.
"""

from __future__ import annotations

import logging
import traceback
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import DatabaseError, IntegrityError

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for API errors.

    Attributes:
        status_code: HTTP status code
        error_code: Machine-readable error code
        message: Human-readable error message
        details: Extra context returned to the caller
    """

    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(message)


class BadRequestError(APIError):
    """Request is well-formed but cannot be processed as submitted."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(status.HTTP_400_BAD_REQUEST, "bad_request", message, details)


class UnauthorizedError(APIError):
    """No valid bearer token."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, "unauthorized", message)


class ForbiddenError(APIError):
    """Authenticated, but not allowed to act."""

    def __init__(self, message: str = "Forbidden"):
        super().__init__(status.HTTP_403_FORBIDDEN, "forbidden", message)


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _describe(exc: Exception) -> dict[str, Any]:
    return {"type": type(exc).__name__, "message": str(exc)}


def _error_body(
    request: Request,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "code": code,
        "message": message,
        "request_id": _request_id(request),
    }
    if details is not None:
        body["details"] = details
    return {"error": body}


def format_error_response(
    error: Exception,
    request: Request,
    include_details: bool = False,
) -> dict[str, Any]:
    """Build the error body for any exception.

    Args:
        error: The exception that occurred
        request: Request being handled
        include_details: Attach internal details for unexpected errors

    Returns:
        Dictionary with the error response structure
    """
    if isinstance(error, APIError):
        details = error.details if (error.details or include_details) else None
        return _error_body(request, error.error_code, error.message, details)

    if isinstance(error, (RequestValidationError, ValidationError)):
        field_errors = [
            {
                "field": ".".join(str(part) for part in err.get("loc", [])),
                "message": err.get("msg", "Invalid value"),
                "type": err.get("type", "validation_error"),
            }
            for err in error.errors()
        ]
        return _error_body(
            request, "validation_error", "Validation failed", {"errors": field_errors}
        )

    details = _describe(error) if include_details else None
    return _error_body(request, "internal_error", "An internal error occurred", details)


def _log_context(request: Request, **extra: Any) -> dict[str, Any]:
    return {
        "request_id": _request_id(request),
        "path": request.url.path,
        "method": request.method,
        **extra,
    }


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    logger.warning(
        f"API error: {exc.error_code} - {exc.message}",
        extra=_log_context(request, status_code=exc.status_code),
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=format_error_response(exc, request, include_details=True),
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed request bodies, e.g. an unreadable preference flag."""
    logger.info(f"Request validation failed: {str(exc)}", extra=_log_context(request))
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
        content=format_error_response(exc, request),
    )


async def database_error_handler(request: Request, exc: DatabaseError) -> JSONResponse:
    """Database errors that escaped the import repository."""
    logger.error(
        f"Database error: {str(exc)}",
        extra=_log_context(request, exception_type=type(exc).__name__),
        exc_info=True,
    )

    message = "A database error occurred"
    if isinstance(exc, IntegrityError):
        message = "Database integrity constraint violated"

    # Database internals only leave the server in debug mode
    details = _describe(exc) if request.app.state.debug else None
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(request, "database_error", message, details),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {str(exc)}",
        extra=_log_context(request, exception_type=type(exc).__name__),
        exc_info=True,
    )

    details = None
    if request.app.state.debug:
        details = {**_describe(exc), "traceback": traceback.format_exc().split("\n")}
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(request, "internal_error", "An internal error occurred", details),
    )


def setup_error_handlers(app: FastAPI, debug: bool = False) -> None:
    """Register global exception handlers.

    Args:
        app: FastAPI application instance
        debug: Include internal error details in responses
    """
    app.state.debug = debug

    # Most specific first
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(DatabaseError, database_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
