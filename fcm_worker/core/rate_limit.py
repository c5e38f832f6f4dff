"""Ingress rate limiting dependency for FastAPI routes.

Wires the shared fixed-window throttle into the HTTP layer so every API
replica enforces one common budget per caller.

Rate limiting strategy:
- One single-shot acquisition per request, no waiting.
- Keyed by API key (hashed); falls back to client IP when auth is disabled.
- Store failures surface as 503 through the global exception handlers.
"""

from __future__ import annotations

import hashlib
import logging
import math
import time
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from fcm_worker.adapters.rate_limit.base import AbstractWindowStore
from fcm_worker.api.deps import get_window_store
from fcm_worker.core.config import settings
from fcm_worker.core.throttle import acquire

logger = logging.getLogger(__name__)

KEY_PREFIX = "ratelimit"


def _hash_limiter_key(key: str) -> str:
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def build_rate_limit_key(request: Request, x_api_key: str | None) -> str:
    """Build the shared-store key for the current caller.

    API keys are hashed before they become part of a store key so they are
    never readable from the store.
    """

    if x_api_key:
        return f"{KEY_PREFIX}:api_key:{_hash_limiter_key(x_api_key)}"

    client_host = request.client.host if request.client else "unknown"
    return f"{KEY_PREFIX}:ip:{client_host}"


async def enforce_rate_limit(
    request: Request,
    store: Annotated[AbstractWindowStore, Depends(get_window_store)],
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency consuming one unit of the caller's budget.

    Raises:
        HTTPException: 429 Too Many Requests when the window is exhausted.
        StoreUnavailableError: If the shared store cannot be reached.
    """

    if not settings.app.rate_limit_enabled:
        return

    key = build_rate_limit_key(request, x_api_key)
    limit = settings.app.rate_limit_requests
    window = settings.app.rate_limit_window_seconds

    outcome = await acquire(store, key, limit, window)
    key_type = "api_key" if x_api_key else "ip"

    if outcome.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "key_type": key_type,
                "key_hash": _hash_limiter_key(key),
                "remaining": outcome.remaining,
            },
        )
        return

    retry_after = max(0, math.ceil(outcome.decays_at - time.time()))
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_type": key_type,
            "key_hash": _hash_limiter_key(key),
            "limit": limit,
            "window_s": window,
            "retry_after_s": retry_after,
        },
    )

    headers: dict[str, str] = {}
    if settings.app.rate_limit_include_headers:
        headers["Retry-After"] = str(retry_after)
        headers["X-RateLimit-Limit"] = str(limit)
        headers["X-RateLimit-Remaining"] = str(outcome.remaining)
        headers["X-RateLimit-Reset"] = str(outcome.decays_at)

    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="Rate limit exceeded. Try again later.",
        headers=headers or None,
    )
