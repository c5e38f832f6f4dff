"""HTTP middleware binding a correlation id to each request.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from fcm_worker.core.config import settings
from fcm_worker.core.logging import clear_correlation_id, set_correlation_id


async def request_id_middleware(request: Request, call_next) -> Response:
    """Reuse the incoming request id header or mint one, and echo it back.

    The id is bound to the logging context for the duration of the request,
    so every log line emitted while handling it (including throttle and
    store events) carries the same ``correlation_id``.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or uuid.uuid4().hex
    set_correlation_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_correlation_id()

    response.headers[header_name] = request_id
    response.headers.setdefault(
        "X-Request-Duration-ms", f"{(time.perf_counter() - start) * 1000:.2f}"
    )
    return response
