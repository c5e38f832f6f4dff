"""Serverless entry point for queue-triggered invocations.

Usage (handler setting of the function):
    fcm_worker.worker.main.lambda_handler

The event loop and the window store (with its Redis connection pool) are
created on the first invocation and reused while the container stays warm,
so only cold starts pay for connection setup.
"""

from __future__ import annotations

import asyncio
import atexit
import logging
from typing import Any

from fcm_worker.adapters.rate_limit.base import AbstractWindowStore
from fcm_worker.adapters.rate_limit.factory import create_window_store
from fcm_worker.core.config import settings
from fcm_worker.core.errors import ValidationAppError
from fcm_worker.core.logging import configure_logging
from fcm_worker.schemas.push import BatchResult, QueueEvent
from fcm_worker.worker.handler import handle_event

configure_logging(settings.log)

logger = logging.getLogger(__name__)

# Async Redis connections are bound to the loop that opened them, so the
# store lives exactly as long as this runner.
_runner: asyncio.Runner | None = None
_store: AbstractWindowStore | None = None


def _get_runner() -> asyncio.Runner:
    global _runner
    if _runner is None:
        _runner = asyncio.Runner()
    return _runner


def _get_store() -> AbstractWindowStore:
    global _store
    if _store is None:
        _store = create_window_store(settings)
        logger.info("worker.store_created", extra={"store": type(_store).__name__})
    return _store


async def _run(event: QueueEvent) -> BatchResult | None:
    try:
        store = _get_store()
    except ValidationAppError as exc:
        logger.error("worker.store_init_failed", extra={"error_code": exc.code})
        return None

    return await handle_event(event, store=store)


def lambda_handler(event: dict[str, Any], context: Any = None) -> dict[str, Any] | None:
    """Handle one queue batch.

    Exceptions (throttled push, store failure) propagate so the platform
    reports the invocation as failed and the queue redelivers the batch.
    """
    result = _get_runner().run(_run(QueueEvent.model_validate(event)))
    return result.model_dump() if result is not None else None


def shutdown() -> None:
    """Close the cached store and its event loop."""
    global _runner, _store
    if _runner is None:
        return

    try:
        if _store is not None:
            _runner.run(_store.close())
    finally:
        _store = None
        _runner.close()
        _runner = None


atexit.register(shutdown)
