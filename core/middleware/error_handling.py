"""
Error handling middleware with error message sanitization.
Keeps nonces and credentials out of error responses and logs.
"""

import logging
import traceback
from typing import Any, Callable
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import SQLAlchemyError, IntegrityError, OperationalError
import re

from core.middleware.authorization import AuthorizationError

logger = logging.getLogger(__name__)

# Patterns for sensitive data that should never be logged
SENSITIVE_PATTERNS = [
    re.compile(r'nonce["\s:=]+[^"\s,}&]+', re.IGNORECASE),
    re.compile(r'password["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'token["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'secret["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'authorization["\s:]+[^"\s,}]+', re.IGNORECASE),
]


def sanitize_error_message(message: Any) -> str:
    """
    Remove sensitive information from error messages.

    Args:
        message: Original error message

    Returns:
        Sanitized error message
    """
    sanitized = str(message)
    for pattern in SENSITIVE_PATTERNS:
        sanitized = pattern.sub('[REDACTED]', sanitized)
    return sanitized


def get_safe_error_details(exc: Exception, include_details: bool = False) -> dict[str, Any]:
    """
    Extract error details without exposing sensitive information.

    Args:
        exc: The exception to extract details from
        include_details: Whether to include the traceback (development only)
    """
    details = {
        "type": type(exc).__name__,
        "message": sanitize_error_message(str(exc)),
    }
    if include_details:
        details["traceback"] = traceback.format_exc()
    return details


def _error_body(code: str, message: str, path: str, method: str, details: Any = None) -> dict:
    body = {
        "error": {
            "code": code,
            "message": message,
            "path": path,
            "method": method,
        }
    }
    if details is not None:
        body["error"]["details"] = details
    return body


def _format_validation_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    return [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": sanitize_error_message(error["msg"]),
            "type": error["type"],
        }
        for error in exc.errors()
    ]


class ErrorHandlingMiddleware:
    """
    Outermost ASGI middleware turning any escaped exception into a
    sanitized JSON error response.
    """

    def __init__(self, app: Callable, debug: bool = False):
        self.app = app
        self.debug = debug

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        try:
            await self.app(scope, receive, send)
        except Exception as exc:
            response = self._handle_exception(exc, scope)
            await response(scope, receive, send)

    def _handle_exception(self, exc: Exception, scope: dict) -> Response:
        """Map an exception to a status code and error body."""
        request_path = scope.get("path", "unknown")
        request_method = scope.get("method", "unknown")
        where = f"{request_method} {request_path}"
        details = None

        if isinstance(exc, StarletteHTTPException):
            status_code, error_code = exc.status_code, "HTTP_EXCEPTION"
            message = sanitize_error_message(exc.detail)
            logger.warning(f"HTTP exception: {where} - Status: {status_code}, Message: {message}")

        elif isinstance(exc, RequestValidationError):
            status_code, error_code = status.HTTP_422_UNPROCESSABLE_ENTITY, "VALIDATION_ERROR"
            message = "Request validation failed"
            details = _format_validation_errors(exc)
            logger.warning(f"Validation error: {where} - Errors: {details}")

        elif isinstance(exc, ValueError):
            status_code, error_code = status.HTTP_400_BAD_REQUEST, "INVALID_INPUT"
            message = sanitize_error_message(str(exc)) or "Invalid input provided"
            logger.warning(f"Value error: {where} - {message}")

        else:
            status_code, error_code, message = _classify(exc)
            if status_code >= 500:
                logger.error(
                    f"{type(exc).__name__} while handling {where}: "
                    f"{sanitize_error_message(str(exc))}",
                    exc_info=True,
                )
            else:
                logger.warning(f"{error_code}: {where}")

        if self.debug and status_code >= 500:
            details = get_safe_error_details(exc, include_details=True)

        return JSONResponse(
            status_code=status_code,
            content=_error_body(error_code, message, request_path, request_method, details),
        )


# Checked in order; the first matching type wins
EXCEPTION_MAP: list[tuple[type, int, str, str]] = [
    (IntegrityError, status.HTTP_409_CONFLICT, "INTEGRITY_ERROR", "Database integrity constraint violated"),
    (OperationalError, status.HTTP_503_SERVICE_UNAVAILABLE, "DATABASE_ERROR", "Database service temporarily unavailable"),
    (SQLAlchemyError, status.HTTP_500_INTERNAL_SERVER_ERROR, "DATABASE_ERROR", "A database error occurred"),
    (PermissionError, status.HTTP_403_FORBIDDEN, "PERMISSION_DENIED", "You don't have permission to perform this action"),
]


def _classify(exc: Exception) -> tuple[int, str, str]:
    for exc_type, status_code, error_code, message in EXCEPTION_MAP:
        if isinstance(exc, exc_type):
            return status_code, error_code, message
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_SERVER_ERROR", "An unexpected error occurred"


def setup_error_handlers(app):
    """
    Set up exception handlers for FastAPI application.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(
                "HTTP_EXCEPTION",
                sanitize_error_message(exc.detail),
                str(request.url.path),
                request.method,
            ),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle validation errors."""
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=_error_body(
                "VALIDATION_ERROR",
                "Request validation failed",
                str(request.url.path),
                request.method,
                _format_validation_errors(exc),
            ),
        )

    @app.exception_handler(AuthorizationError)
    async def authorization_exception_handler(request: Request, exc: AuthorizationError):
        """Handle missing capabilities."""
        logger.warning(f"Authorization failed: {request.method} {request.url.path} - {exc}")
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content=_error_body(
                "PERMISSION_DENIED",
                "You don't have permission to perform this action",
                str(request.url.path),
                request.method,
            ),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Handle all other exceptions."""
        logger.error(
            f"Unhandled exception: {request.method} {request.url.path} - "
            f"{type(exc).__name__}: {sanitize_error_message(str(exc))}",
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(
                "INTERNAL_SERVER_ERROR",
                "An unexpected error occurred",
                str(request.url.path),
                request.method,
            ),
        )
