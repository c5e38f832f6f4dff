"""Application factory for the FastAPI ingestion app.

Centralizes app construction (lifespan, middleware, handlers, routers) so
tests can build isolated instances with their own window store.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from fcm_worker.adapters.rate_limit.base import AbstractWindowStore
from fcm_worker.adapters.rate_limit.factory import create_window_store
from fcm_worker.api.routes import events_router, health_router
from fcm_worker.core.config import settings
from fcm_worker.core.exception_handlers import setup_exception_handlers
from fcm_worker.core.logging import configure_logging
from fcm_worker.core.middleware import request_id_middleware
from fcm_worker.core.openapi import apply_openapi_customizations
from fcm_worker.services.push_dispatcher import PushDispatcher

logger = logging.getLogger(__name__)


def create_app(store: AbstractWindowStore | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        store: Window store to use; built from settings at startup when
            omitted and closed at shutdown.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    configure_logging(settings.log)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = store is None
        app.state.store = create_window_store(settings) if owned else store
        app.state.dispatcher = PushDispatcher()
        logger.info(
            "app.startup",
            extra={"store_backend": type(app.state.store).__name__},
        )
        try:
            yield
        finally:
            if owned:
                await app.state.store.close()
            logger.info("app.shutdown")

    app = FastAPI(
        title="FCM Worker",
        description=(
            "Ingests queued push messages and dispatches them under a "
            "fixed-window rate limit shared by every worker through Redis."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.middleware("http")(request_id_middleware)
    setup_exception_handlers(app)

    app.include_router(events_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
