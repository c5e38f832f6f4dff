"""Queue record handler.

Processes a batch of queued push messages in order, gating every dispatch
through the shared fixed-window throttle so that all workers together stay
under the configured push rate.

Batch rules:
- A record delivered more than ``WORKER_MAX_RECEIVE_COUNT`` times stops the
  batch (it is left for the dead-letter policy of the queue).
- A record whose body is not a valid push message stops the batch.
- A throttled record raises :class:`ThrottledError`, failing the invocation
  so the queue redelivers it later.
- Store failures propagate unchanged.
"""

from __future__ import annotations

import json
import logging

from pydantic import ValidationError

from fcm_worker.adapters.rate_limit.base import AbstractWindowStore, AcquireOutcome
from fcm_worker.core.config import Settings, settings as default_settings
from fcm_worker.core.errors import ThrottledError
from fcm_worker.core.logging import bind_correlation_id, reset_correlation_id
from fcm_worker.core.throttle import throttle
from fcm_worker.schemas.push import BatchResult, QueueEvent, QueueRecord, push_message_adapter
from fcm_worker.services.push_dispatcher import PushDispatcher

logger = logging.getLogger(__name__)


def _on_throttled(outcome: AcquireOutcome) -> None:
    logger.warning(
        "worker.throttled",
        extra={"decays_at": outcome.decays_at, "remaining": outcome.remaining},
    )
    raise ThrottledError(
        code="fcm_throttled",
        message="Push rate limit reached; record will be redelivered",
        details={"decays_at": outcome.decays_at, "remaining": outcome.remaining},
        outcome=outcome,
    )


async def handle_record(
    record: QueueRecord,
    *,
    store: AbstractWindowStore,
    dispatcher: PushDispatcher,
    cfg: Settings,
) -> None:
    """Validate one record and dispatch it through the throttle.

    Raises:
        json.JSONDecodeError: If the body is not JSON.
        pydantic.ValidationError: If the body is not a push message.
        ThrottledError: If no throttle slot was available.
        StoreUnavailableError: If the shared store failed.
    """
    message = push_message_adapter.validate_python(json.loads(record.body))

    limiter = (
        throttle(store, cfg.throttle.key)
        .allow(cfg.throttle.max_per_window)
        .every(cfg.throttle.window_seconds)
        .block(cfg.throttle.block_seconds)
        .sleep(cfg.throttle.sleep_ms)
    )
    await limiter.run(lambda: dispatcher.dispatch(message), _on_throttled)


async def handle_event(
    event: QueueEvent,
    *,
    store: AbstractWindowStore,
    dispatcher: PushDispatcher | None = None,
    cfg: Settings | None = None,
) -> BatchResult:
    """Process a batch of queue records in order.

    Args:
        event: Batch delivered by the queue.
        store: Window store shared by all workers.
        dispatcher: Push dispatcher (a fresh one when omitted).
        cfg: Settings (global settings when omitted).

    Returns:
        BatchResult with the number of dispatched records and the reason
        processing stopped early, if any.
    """
    cfg = cfg or default_settings
    dispatcher = dispatcher or PushDispatcher()
    result = BatchResult()

    logger.info("worker.batch_received", extra={"record_count": len(event.records)})

    for record in event.records:
        token = bind_correlation_id(record.message_id)
        try:
            receive_count = record.attributes.approximate_receive_count
            if receive_count > cfg.worker.max_receive_count:
                logger.warning(
                    "worker.max_receive_count_exceeded",
                    extra={
                        "receive_count": receive_count,
                        "max_receive_count": cfg.worker.max_receive_count,
                    },
                )
                result.stopped_reason = "max_receive_count"
                return result

            try:
                await handle_record(record, store=store, dispatcher=dispatcher, cfg=cfg)
            except (json.JSONDecodeError, ValidationError) as exc:
                logger.warning(
                    "worker.invalid_message",
                    extra={"error_type": type(exc).__name__, "body_chars": len(record.body)},
                )
                result.stopped_reason = "invalid_message"
                return result

            result.processed += 1
        finally:
            reset_correlation_id(token)

    logger.info("worker.batch_done", extra={"processed": result.processed})
    return result
