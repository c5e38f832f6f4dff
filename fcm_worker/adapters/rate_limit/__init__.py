"""Window store adapters.

The throttle talks to an abstract window store: Redis (Lua script, shared
across processes) in production, an in-memory twin for local runs and tests.
"""

from fcm_worker.adapters.rate_limit.base import AbstractWindowStore, AcquireOutcome
from fcm_worker.adapters.rate_limit.in_memory import InMemoryWindowStore
from fcm_worker.adapters.rate_limit.redis_store import FIXED_WINDOW_LUA, RedisWindowStore

__all__ = [
    "AbstractWindowStore",
    "AcquireOutcome",
    "FIXED_WINDOW_LUA",
    "InMemoryWindowStore",
    "RedisWindowStore",
]
