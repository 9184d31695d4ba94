"""Global exception handlers for consistent error responses.

Design:
- AppError subclasses map to HTTP status codes (400, 403, 429)
- Throttled requests get ``Retry-After`` plus optional ``X-RateLimit-*``
- Unexpected exceptions become a generic 500 (safety net)
- Every body includes the request_id for tracing
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from budget_guard.core.config import settings
from budget_guard.core.errors import (
    AppError,
    AuthenticationAppError,
    RateLimitExceededAppError,
)
from budget_guard.core.logging import get_request_id

logger = logging.getLogger(__name__)


def _status_for(exc: AppError) -> int:
    if isinstance(exc, RateLimitExceededAppError):
        return 429
    if isinstance(exc, AuthenticationAppError):
        return 403
    return 400


def _rate_limit_headers(exc: RateLimitExceededAppError) -> dict[str, str]:
    """Headers telling the client when to come back."""

    decision = exc.decision
    if decision is None:
        return {}

    headers = {"Retry-After": str(decision.retry_after_seconds or 0)}
    if settings.app.rate_limit_include_headers:
        headers["X-RateLimit-Limit"] = str(decision.limit)
        headers["X-RateLimit-Remaining"] = str(decision.remaining)
        headers["X-RateLimit-Retry-After-Ms"] = str(decision.retry_after_ms or 0)
    return headers


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    - ValidationAppError → 400 Bad Request
    - AuthenticationAppError → 403 Forbidden
    - RateLimitExceededAppError → 429 Too Many Requests

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with ``{"error": {code, message, request_id, details?}}``.
    """
    status_code = _status_for(exc)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_path": request.url.path,
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }
    if exc.details:
        error_content["details"] = exc.details

    headers = None
    if isinstance(exc, RateLimitExceededAppError):
        headers = _rate_limit_headers(exc) or None

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
        headers=headers,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors.

    Logs the failure type and route only, since exception text can embed
    limiter keys or client addresses. The client sees a generic message.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with a FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
