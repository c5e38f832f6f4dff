"""In-memory fixed-window store.

Notes:
- Per-process only: running several workers multiplies the effective limit.
  Use the Redis store whenever more than one process shares a limit.
- Thread-safe: the whole window procedure runs under one lock, which gives
  the same all-or-nothing behaviour as the Lua script on Redis.
"""

from __future__ import annotations

import heapq
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from fcm_worker.adapters.rate_limit.base import AbstractWindowStore, RawWindowReply

logger = logging.getLogger(__name__)


@dataclass
class _WindowRecord:
    start: int
    end: int
    count: int
    expires_at: float


class InMemoryWindowStore(AbstractWindowStore):
    """Process-local twin of :class:`RedisWindowStore`.

    Records expire after ``2 * window_size`` seconds, mirroring the Redis
    TTL. Every evaluation evicts all expired records, so keys that see no
    further traffic are still reclaimed.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        """Initialize the store.

        Args:
            clock: Time source used for record expiry (UNIX seconds).
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._records: dict[str, _WindowRecord] = {}
        # (expires_at, key) pairs; entries left behind by a reopened window
        # no longer match the live record and are skipped on eviction.
        self._expiry_heap: list[tuple[float, str]] = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _evict_expired_locked(self) -> None:
        now = self._clock()
        while self._expiry_heap and self._expiry_heap[0][0] <= now:
            expires_at, key = heapq.heappop(self._expiry_heap)
            record = self._records.get(key)
            if record is not None and record.expires_at == expires_at:
                del self._records[key]

    def _get_live_record(self, key: str) -> _WindowRecord | None:
        record = self._records.get(key)
        if record is not None and record.expires_at <= self._clock():
            del self._records[key]
            return None
        return record

    def _open_window(self, key: str, now_floor: int, window_size: int) -> _WindowRecord:
        record = _WindowRecord(
            start=now_floor,
            end=now_floor + window_size,
            count=1,
            expires_at=self._clock() + window_size * 2,
        )
        self._records[key] = record
        heapq.heappush(self._expiry_heap, (record.expires_at, key))
        return record

    async def evaluate_window(
        self,
        key: str,
        *,
        now: float,
        now_floor: int,
        window_size: int,
        max_count: int,
    ) -> RawWindowReply:
        with self._lock:
            self._evict_expired_locked()
            record = self._get_live_record(key)

            if record is not None and record.start <= now <= record.end:
                record.count += 1
                return (
                    record.count <= max_count,
                    record.end,
                    max_count - record.count,
                )

            # Opening a window always admits the caller, even when max_count is 0.
            record = self._open_window(key, now_floor, window_size)
            return True, record.end, max_count - 1

    async def ping(self) -> None:
        return None

    def ttl(self, key: str) -> float | None:
        """Return seconds until ``key`` expires, or None if it does not exist."""

        with self._lock:
            record = self._get_live_record(key)
            if record is None:
                return None
            return record.expires_at - self._clock()

    def clear(self) -> None:
        """Drop every record."""

        with self._lock:
            self._records.clear()
            self._expiry_heap.clear()
