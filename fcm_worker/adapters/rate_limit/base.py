"""Window store interfaces.

The throttle depends on this abstraction, not on Redis, so the same
fixed-window semantics can run against the shared store in production and
against a process-local store in development and tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


# Raw reply of the window procedure: (allowed, decays_at, remaining).
# Values are store-native (Redis may answer 1/0/None and numeric strings);
# normalization happens in the acquire client.
RawWindowReply = tuple[Any, Any, Any]


@dataclass(frozen=True)
class AcquireOutcome:
    """Result of one acquisition attempt against a fixed window.

    Attributes:
        allowed: Whether this call obtained a slot in the current window.
        decays_at: UNIX epoch seconds at which the current window ends.
        remaining: Capacity left in the current window (never negative).
    """

    allowed: bool
    decays_at: int
    remaining: int


class AbstractWindowStore(ABC):
    """Interface for stores able to run the window procedure atomically."""

    @abstractmethod
    async def evaluate_window(
        self,
        key: str,
        *,
        now: float,
        now_floor: int,
        window_size: int,
        max_count: int,
    ) -> RawWindowReply:
        """Atomically count one acquisition for ``key``.

        Opens a new window at ``now_floor`` when no record exists or ``now``
        lies outside ``[start, end]``; otherwise increments the count of the
        current window.

        Args:
            key: Limiter name (one record per key).
            now: Current time in seconds with sub-second precision.
            now_floor: ``floor(now)``.
            window_size: Window length in seconds.
            max_count: Maximum acquisitions allowed per window.

        Returns:
            Raw ``(allowed, decays_at, remaining)`` triple.

        Raises:
            StoreUnavailableError: If the procedure could not be evaluated.
        """
        raise NotImplementedError

    @abstractmethod
    async def ping(self) -> None:
        """Check the store is reachable.

        Raises:
            StoreUnavailableError: If the store does not answer.
        """
        raise NotImplementedError

    async def close(self) -> None:
        """Release connections held by the store (no-op by default)."""
