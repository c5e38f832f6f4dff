"""Distributed fixed-window throttle.

Two layers sit on top of a window store:

- ``acquire()`` samples the wall clock, runs the window procedure once and
  normalizes the store reply into an :class:`AcquireOutcome`.
- :class:`Throttle` wraps ``acquire()`` with blocking-retry semantics and
  dispatches to a success or failure continuation.

Example:
    >>> result = await (
    ...     throttle(store, "fcm_throttle_key")
    ...     .allow(1200)
    ...     .every(60)
    ...     .block(0)
    ...     .run(send_push, on_throttled)
    ... )

Builder methods return new instances, so a configured ``Throttle`` can be
shared by concurrent tasks.
"""

from __future__ import annotations

import asyncio
import hashlib
import inspect
import logging
import math
import time
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, TypeVar, Union

from fcm_worker.adapters.rate_limit.base import AbstractWindowStore, AcquireOutcome
from fcm_worker.core.errors import LimiterTimeoutError, ValidationAppError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]
OnGranted = Callable[[], Union[T, Awaitable[T]]]
OnExhausted = Callable[[AcquireOutcome], Any]


def _hash_key(key: str) -> str:
    """Hash the limiter key for logging without exposing tenant names."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def _to_int(value: Any) -> int:
    if isinstance(value, (bytes, bytearray)):
        value = value.decode()
    return int(float(value))


async def acquire(
    store: AbstractWindowStore,
    key: str,
    max_count: int,
    window_size: int,
    *,
    clock: Clock = time.time,
) -> AcquireOutcome:
    """Record one acquisition for ``key`` in its current fixed window.

    The clock is sampled on every call, so retries always see fresh time.

    Args:
        store: Window store evaluating the procedure atomically.
        key: Limiter name.
        max_count: Maximum acquisitions per window.
        window_size: Window length in seconds.
        clock: Time source returning UNIX seconds.

    Returns:
        AcquireOutcome with ``remaining`` floored at zero.

    Raises:
        ValidationAppError: If the arguments are invalid.
        StoreUnavailableError: If the store could not evaluate the procedure.
    """
    if not key:
        raise ValidationAppError(code="limiter_key_empty", message="key must be a non-empty string")
    if window_size < 1:
        raise ValidationAppError(code="limiter_window_invalid", message="window_size must be >= 1")
    if max_count < 0:
        raise ValidationAppError(code="limiter_max_invalid", message="max_count must be >= 0")

    now = clock()
    now_floor = math.floor(now)

    allowed, decays_at, remaining = await store.evaluate_window(
        key,
        now=now,
        now_floor=now_floor,
        window_size=window_size,
        max_count=max_count,
    )

    # Redis answers 1/0 (or nil for a Lua false) and may return numeric strings.
    return AcquireOutcome(
        allowed=bool(allowed) and allowed not in ("0", b"0"),
        decays_at=_to_int(decays_at),
        remaining=max(0, _to_int(remaining)),
    )


@dataclass(frozen=True)
class ThrottleConfig:
    """Throttle parameters.

    Attributes:
        max_count: Acquisitions allowed per window.
        window_size: Window length in seconds.
        timeout: Seconds to keep retrying; ``<= 0`` means one attempt only.
        poll_interval_ms: Delay between attempts while waiting.
    """

    max_count: int = 1
    window_size: int = 60
    timeout: float = 3
    poll_interval_ms: int = 750


class Throttle:
    """Fluent, immutable throttle bound to one limiter key."""

    def __init__(
        self,
        store: AbstractWindowStore,
        key: str,
        config: ThrottleConfig | None = None,
        *,
        clock: Clock = time.time,
    ) -> None:
        self._store = store
        self._key = key
        self._config = config or ThrottleConfig()
        self._clock = clock

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"Throttle(key_hash={_hash_key(self._key)!r}, config={self._config!r})"

    @property
    def key(self) -> str:
        return self._key

    @property
    def config(self) -> ThrottleConfig:
        return self._config

    def _with(self, **changes: Any) -> "Throttle":
        return Throttle(
            self._store,
            self._key,
            replace(self._config, **changes),
            clock=self._clock,
        )

    def allow(self, max_count: int) -> "Throttle":
        """Set how many acquisitions a window admits."""
        return self._with(max_count=max_count)

    def every(self, window_seconds: int) -> "Throttle":
        """Set the window length in seconds."""
        return self._with(window_size=window_seconds)

    def block(self, timeout_seconds: float) -> "Throttle":
        """Set how long ``run`` may wait for a slot (0 = single attempt)."""
        return self._with(timeout=timeout_seconds)

    def sleep(self, poll_interval_ms: int) -> "Throttle":
        """Set the delay between attempts while waiting."""
        return self._with(poll_interval_ms=poll_interval_ms)

    async def _attempt(self) -> AcquireOutcome:
        return await acquire(
            self._store,
            self._key,
            self._config.max_count,
            self._config.window_size,
            clock=self._clock,
        )

    async def run(
        self,
        on_granted: OnGranted,
        on_exhausted: OnExhausted | None = None,
    ) -> Any:
        """Acquire a slot, retrying until granted or the timeout elapses.

        Args:
            on_granted: Called once a slot is obtained; its result (sync or
                awaited) is returned and its exceptions propagate.
            on_exhausted: Called with the last outcome when no slot could be
                obtained; its result is returned verbatim.

        Returns:
            The continuation's result, or ``False`` for a rejected single
            attempt without ``on_exhausted``.

        Raises:
            LimiterTimeoutError: If waiting timed out and no ``on_exhausted``
                was supplied.
            StoreUnavailableError: If the store failed (never retried here).
        """
        cfg = self._config
        key_hash = _hash_key(self._key)
        started_at = self._clock()
        attempts = 0

        while True:
            outcome = await self._attempt()
            attempts += 1

            if outcome.allowed:
                logger.debug(
                    "throttle.granted",
                    extra={
                        "key_hash": key_hash,
                        "attempts": attempts,
                        "remaining": outcome.remaining,
                        "decays_at": outcome.decays_at,
                    },
                )
                return await _call(on_granted)

            if cfg.timeout <= 0:
                break

            elapsed = self._clock() - started_at
            if elapsed >= cfg.timeout:
                break

            await asyncio.sleep(cfg.poll_interval_ms / 1000)

        logger.info(
            "throttle.exhausted",
            extra={
                "key_hash": key_hash,
                "attempts": attempts,
                "timeout_s": cfg.timeout,
                "max_count": cfg.max_count,
                "window_s": cfg.window_size,
                "decays_at": outcome.decays_at,
            },
        )

        if on_exhausted is not None:
            return await _call(on_exhausted, outcome)

        if cfg.timeout <= 0:
            return False

        raise LimiterTimeoutError(
            code="limiter_timeout",
            message=f"No throttle slot became available within {cfg.timeout}s",
            details={
                "decays_at": outcome.decays_at,
                "remaining": outcome.remaining,
                "key_hash": key_hash,
            },
            outcome=outcome,
        )


async def _call(func: Callable[..., Any], *args: Any) -> Any:
    result = func(*args)
    if inspect.isawaitable(result):
        return await result
    return result


def throttle(
    store: AbstractWindowStore,
    key: str,
    *,
    clock: Clock = time.time,
) -> Throttle:
    """Start a throttle for ``key`` with default configuration."""
    return Throttle(store, key, clock=clock)
