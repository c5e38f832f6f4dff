"""Factory for creating window store instances."""

from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from fcm_worker.adapters.rate_limit.base import AbstractWindowStore
from fcm_worker.adapters.rate_limit.in_memory import InMemoryWindowStore
from fcm_worker.adapters.rate_limit.redis_store import RedisWindowStore
from fcm_worker.core.config import RedisSettings, Settings, settings as default_settings
from fcm_worker.core.errors import ValidationAppError


def create_redis_client(redis_settings: RedisSettings) -> Redis:
    """Build a pooled asyncio Redis client from settings.

    Transport retries are bounded; once exhausted the command fails and the
    window store reports the store as unavailable.
    """
    if not redis_settings.url:
        raise ValidationAppError(
            code="redis_url_missing",
            message="Redis backend requires REDIS_URL",
        )

    retry = Retry(ExponentialBackoff(cap=1.0, base=0.2), redis_settings.max_retries)
    return Redis.from_url(
        redis_settings.url,
        socket_timeout=redis_settings.socket_timeout_seconds,
        socket_connect_timeout=redis_settings.connect_timeout_seconds,
        retry=retry,
        retry_on_error=[RedisConnectionError, RedisTimeoutError],
        decode_responses=True,
    )


def create_window_store(cfg: Settings | None = None) -> AbstractWindowStore:
    """Instantiate the window store selected by ``THROTTLE_BACKEND``.

    Returns:
        AbstractWindowStore: Redis-backed store or the in-memory store.

    Raises:
        ValidationAppError: If the backend is unknown or misconfigured.
    """
    cfg = cfg or default_settings
    backend = cfg.throttle.backend.lower()

    if backend == "redis":
        return RedisWindowStore(create_redis_client(cfg.redis))

    if backend == "memory":
        return InMemoryWindowStore()

    raise ValidationAppError(
        code="store_unknown_backend",
        message=f"Unknown throttle backend: '{backend}'. Supported backends: redis, memory",
    )
