from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from fcm_worker.adapters.rate_limit.base import AbstractWindowStore
from fcm_worker.api.deps import get_window_store

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness probe; does not touch the shared store."""

    return {"status": "ok"}


@router.get("/health/ready")
async def readiness_check(
    store: Annotated[AbstractWindowStore, Depends(get_window_store)],
) -> dict:
    """Readiness probe.

    Pings the window store. An unreachable store raises
    StoreUnavailableError, which the global handlers turn into a 503.
    """

    await store.ping()
    return {"status": "ok", "store": "ok"}
