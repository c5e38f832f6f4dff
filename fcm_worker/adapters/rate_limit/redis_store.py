"""Redis-backed fixed-window store.

The window procedure runs as a Lua script so the existence check, read,
increment and reset for a key happen in a single atomic evaluation on the
server. Concurrent workers therefore never lose an update or receive the
same ordinal count.

Layout of a limiter record (one hash per key):
- ``start``: floor of the time the window was opened (epoch seconds)
- ``end``: ``start + window``
- ``count``: acquisitions recorded in the window, including the opening one

The hash expires after ``2 * window`` seconds.
"""

from __future__ import annotations

import hashlib
import logging

from redis.asyncio import Redis
from redis.exceptions import RedisError

from fcm_worker.adapters.rate_limit.base import AbstractWindowStore, RawWindowReply
from fcm_worker.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


# KEYS[1] = limiter key
# ARGV = now, now_floor, window_size, max_count
FIXED_WINDOW_LUA = """
local key = KEYS[1]
local now = tonumber(ARGV[1])
local now_floor = tonumber(ARGV[2])
local window = tonumber(ARGV[3])
local max_count = tonumber(ARGV[4])

local function open_window()
    redis.call('HSET', key, 'start', now_floor, 'end', now_floor + window, 'count', 1)
    redis.call('EXPIRE', key, window * 2)
    return {1, now_floor + window, max_count - 1}
end

if redis.call('EXISTS', key) == 0 then
    return open_window()
end

local window_start = tonumber(redis.call('HGET', key, 'start'))
local window_end = tonumber(redis.call('HGET', key, 'end'))

if window_start and window_end and now >= window_start and now <= window_end then
    local count = redis.call('HINCRBY', key, 'count', 1)
    local allowed = 0
    if count <= max_count then
        allowed = 1
    end
    return {allowed, window_end, max_count - count}
end

return open_window()
"""


def _hash_key(key: str) -> str:
    return hashlib.sha256(key.encode()).hexdigest()[:16]


class RedisWindowStore(AbstractWindowStore):
    """Window store evaluating the procedure inside Redis.

    The client is a long-lived, shared connection pool; this class never
    opens a transaction or holds a lock between calls.
    """

    def __init__(self, client: Redis) -> None:
        """Initialize the store.

        Args:
            client: Connected ``redis.asyncio.Redis`` client.
        """
        self._client = client
        self._script = client.register_script(FIXED_WINDOW_LUA)

    @property
    def client(self) -> Redis:
        return self._client

    async def evaluate_window(
        self,
        key: str,
        *,
        now: float,
        now_floor: int,
        window_size: int,
        max_count: int,
    ) -> RawWindowReply:
        try:
            reply = await self._script(
                keys=[key],
                args=[now, now_floor, window_size, max_count],
            )
        except RedisError as exc:
            logger.error(
                "store.unavailable",
                extra={
                    "key_hash": _hash_key(key),
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            raise StoreUnavailableError(
                code="store_unavailable",
                message="Shared store could not evaluate the window procedure",
                details={"error_type": type(exc).__name__, "key_hash": _hash_key(key)},
            ) from exc

        if not isinstance(reply, (list, tuple)) or len(reply) != 3:
            raise StoreUnavailableError(
                code="store_bad_reply",
                message=f"Unexpected window procedure reply: {reply!r}",
                details={"key_hash": _hash_key(key)},
            )

        allowed, decays_at, remaining = reply
        return allowed, decays_at, remaining

    async def ping(self) -> None:
        try:
            await self._client.ping()
        except RedisError as exc:
            raise StoreUnavailableError(
                code="store_unavailable",
                message="Shared store did not answer ping",
                details={"error_type": type(exc).__name__},
            ) from exc

    async def close(self) -> None:
        await self._client.aclose()
