from __future__ import annotations

from fcm_worker.api.routes.events import router as events_router
from fcm_worker.api.routes.health import router as health_router

__all__ = ["events_router", "health_router"]
