"""Global exception handlers for consistent error responses.

Status mapping:
- ValidationAppError → 400
- AuthenticationAppError → 403
- LimiterTimeoutError / ThrottledError → 429 (with Retry-After)
- StoreUnavailableError → 503
- Anything else → generic 500 without implementation details
"""

from __future__ import annotations

import logging
import math
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from fcm_worker.core.errors import (
    AppError,
    AuthenticationAppError,
    LimiterTimeoutError,
    StoreUnavailableError,
    ThrottledError,
)
from fcm_worker.core.logging import get_correlation_id

logger = logging.getLogger(__name__)


def _status_for(exc: AppError) -> int:
    if isinstance(exc, AuthenticationAppError):
        return 403
    if isinstance(exc, (LimiterTimeoutError, ThrottledError)):
        return 429
    if isinstance(exc, StoreUnavailableError):
        return 503
    return 400


def _retry_after(exc: AppError) -> int | None:
    outcome = getattr(exc, "outcome", None)
    if outcome is None:
        return None
    return max(0, math.ceil(outcome.decays_at - time.time()))


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render a domain error as ``{"error": {...}}`` with the mapped status."""
    status_code = _status_for(exc)

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "request_path": request.url.path,
        },
    )

    error_content: dict = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_correlation_id(),
    }
    if exc.details:
        error_content["details"] = exc.details

    headers: dict[str, str] = {}
    retry_after = _retry_after(exc)
    if status_code == 429 and retry_after is not None:
        headers["Retry-After"] = str(retry_after)

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
        headers=headers or None,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback for unexpected errors; logs details, returns a generic body."""
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
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
                "request_id": get_correlation_id(),
            }
        },
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the handlers on ``app`` (specific before general)."""
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
