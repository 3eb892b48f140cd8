"""
Shared API Middleware
======================

Common middleware and exception handlers for the FastAPI application.
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Callable

from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from helpdesk.core import (
    ApplicationException,
    AuthenticationException,
    ExternalServiceException,
    PermissionDeniedException,
    ResourceNotFoundException,
    ValidationException,
)
from helpdesk.shared.infrastructure.logging import get_context_logger, get_logger

logger = get_logger(__name__)

# Ordered most specific first; anything else is a 500.
EXCEPTION_STATUS_CODES = (
    (ValidationException, status.HTTP_400_BAD_REQUEST),
    (AuthenticationException, status.HTTP_401_UNAUTHORIZED),
    (PermissionDeniedException, status.HTTP_403_FORBIDDEN),
    (ResourceNotFoundException, status.HTTP_404_NOT_FOUND),
    (ExternalServiceException, status.HTTP_502_BAD_GATEWAY),
)


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Adds correlation ID to requests for tracing.

    Correlation IDs link every log line and activity record
    produced while serving one request.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())

        # Store in request state for access in endpoints
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs all requests and responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = getattr(request.state, "correlation_id", "unknown")
        request_logger = get_context_logger(__name__, correlation_id)
        start_time = time.perf_counter()

        request_logger.info(
            "Request started",
            extra={
                "method": request.method,
                "path": request.url.path,
                "client": request.client.host if request.client else None
            }
        )

        try:
            response = await call_next(request)
        except Exception as e:
            request_logger.error(
                "Request failed",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "error": str(e),
                    "response_time_ms": int((time.perf_counter() - start_time) * 1000)
                }
            )
            raise

        request_logger.info(
            "Request completed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "response_time_ms": int((time.perf_counter() - start_time) * 1000)
            }
        )
        return response


def _error_body(request: Request, message: str, **extra) -> dict:
    body = {
        "detail": message,
        "correlation_id": getattr(request.state, "correlation_id", "unknown"),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    body.update({key: value for key, value in extra.items() if value})
    return body


async def application_exception_handler(request: Request, exc: ApplicationException) -> JSONResponse:
    """Map application exceptions onto their HTTP status codes."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for exc_type, code in EXCEPTION_STATUS_CODES:
        if isinstance(exc, exc_type):
            status_code = code
            break

    if status_code >= 500:
        logger.error(
            "Application error",
            extra={
                "correlation_id": getattr(request.state, "correlation_id", "unknown"),
                "path": request.url.path,
                "error_type": type(exc).__name__,
                "error_message": exc.message,
            }
        )

    # Downstream failures keep their message; anything else is hidden
    if status_code >= 500 and not isinstance(exc, ExternalServiceException):
        return JSONResponse(
            status_code=status_code,
            content=_error_body(request, "Internal server error")
        )

    return JSONResponse(
        status_code=status_code,
        content=_error_body(request, exc.message, errors=exc.details.get("errors"))
    )


async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed input as 400 with field-level errors."""
    errors = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "form")]
        errors.append({
            "field": ".".join(location) or None,
            "message": error.get("msg", "Invalid value"),
        })

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body(request, "Validation failed", errors=errors)
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler for unhandled exceptions.

    Returns consistent error responses for all exceptions.
    """
    correlation_id = getattr(request.state, "correlation_id", "unknown")

    logger.error(
        "Unhandled exception",
        extra={
            "correlation_id": correlation_id,
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "error_message": str(exc)
        }
    )

    # Don't expose internal details outside development
    is_dev = getattr(getattr(request.app.state, "settings", None), "environment", None) == "development"

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(
            request,
            "Internal server error",
            debug_info=str(exc) if is_dev else None
        )
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the application's exception handlers."""
    app.add_exception_handler(ApplicationException, application_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
