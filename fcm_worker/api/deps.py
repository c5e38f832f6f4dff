from __future__ import annotations

from fastapi import Request

from fcm_worker.adapters.rate_limit.base import AbstractWindowStore
from fcm_worker.services.push_dispatcher import PushDispatcher


def get_window_store(request: Request) -> AbstractWindowStore:
    return request.app.state.store


def get_push_dispatcher(request: Request) -> PushDispatcher:
    return request.app.state.dispatcher
