from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from fcm_worker.adapters.rate_limit.base import AbstractWindowStore
from fcm_worker.api.deps import get_push_dispatcher, get_window_store
from fcm_worker.core.auth import verify_api_key
from fcm_worker.core.rate_limit import enforce_rate_limit
from fcm_worker.schemas.push import BatchResult, QueueEvent
from fcm_worker.services.push_dispatcher import PushDispatcher
from fcm_worker.worker.handler import handle_event

router = APIRouter(tags=["Events"])


@router.post(
    "/events",
    response_model=BatchResult,
    dependencies=[Depends(verify_api_key), Depends(enforce_rate_limit)],
)
async def ingest_events(
    event: QueueEvent,
    store: Annotated[AbstractWindowStore, Depends(get_window_store)],
    dispatcher: Annotated[PushDispatcher, Depends(get_push_dispatcher)],
) -> BatchResult:
    """Process a batch of queue records pushed over HTTP.

    Accepts the same envelope the queue delivers (``{"Records": [...]}``)
    and runs it through the throttled push handler.

    Returns:
        BatchResult: Dispatched count and early-stop reason, if any.

    Raises:
        ThrottledError: 429 when the push budget is exhausted.
        StoreUnavailableError: 503 when the shared store is down.
    """
    return await handle_event(event, store=store, dispatcher=dispatcher)
