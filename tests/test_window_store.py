"""Unit tests for the in-memory window store and the acquire client."""

import asyncio
import threading

import pytest

from fcm_worker.adapters.rate_limit.in_memory import InMemoryWindowStore
from fcm_worker.core.errors import ValidationAppError
from fcm_worker.core.throttle import acquire


@pytest.mark.asyncio
async def test_first_acquire_opens_window(store, clock) -> None:
    result = await acquire(store, "k", 5, 60, clock=clock)

    assert result.allowed is True
    assert result.remaining == 4
    assert result.decays_at == int(clock()) + 60


@pytest.mark.asyncio
async def test_allows_up_to_max_then_blocks(store, clock) -> None:
    results = [await acquire(store, "k", 3, 30, clock=clock) for _ in range(3)]

    assert [r.allowed for r in results] == [True, True, True]
    assert [r.remaining for r in results] == [2, 1, 0]

    blocked = await acquire(store, "k", 3, 30, clock=clock)
    assert blocked.allowed is False
    assert blocked.remaining == 0
    assert {r.decays_at for r in results} == {blocked.decays_at}


@pytest.mark.asyncio
async def test_max_count_zero_admits_only_window_opener(store, clock) -> None:
    first = await acquire(store, "zero", 0, 10, clock=clock)
    second = await acquire(store, "zero", 0, 10, clock=clock)

    assert first.allowed is True
    assert first.remaining == 0
    assert second.allowed is False
    assert second.remaining == 0
    assert second.decays_at == first.decays_at


@pytest.mark.asyncio
async def test_remaining_never_negative(store, clock) -> None:
    last = None
    for _ in range(10):
        last = await acquire(store, "k", 3, 30, clock=clock)
        assert last.remaining >= 0

    assert last.allowed is False
    assert last.remaining == 0


@pytest.mark.asyncio
async def test_new_window_after_decay(store, clock) -> None:
    await acquire(store, "k", 2, 2, clock=clock)
    await acquire(store, "k", 2, 2, clock=clock)
    blocked = await acquire(store, "k", 2, 2, clock=clock)
    assert blocked.allowed is False

    clock.advance(3)
    fresh = await acquire(store, "k", 2, 2, clock=clock)

    assert fresh.allowed is True
    assert fresh.remaining == 1
    assert fresh.decays_at == int(clock()) + 2


@pytest.mark.asyncio
async def test_call_at_window_end_counts_against_old_window(store, clock) -> None:
    first = await acquire(store, "edge", 1, 10, clock=clock)

    clock.set(float(first.decays_at))
    at_edge = await acquire(store, "edge", 1, 10, clock=clock)

    assert at_edge.allowed is False
    assert at_edge.decays_at == first.decays_at

    clock.advance(0.001)
    after_edge = await acquire(store, "edge", 1, 10, clock=clock)
    assert after_edge.allowed is True
    assert after_edge.decays_at == first.decays_at + 10


@pytest.mark.asyncio
async def test_keys_are_isolated(store, clock) -> None:
    a1 = await acquire(store, "a", 1, 60, clock=clock)
    clock.advance(5)
    b1 = await acquire(store, "b", 1, 60, clock=clock)
    a2 = await acquire(store, "a", 1, 60, clock=clock)
    b2 = await acquire(store, "b", 1, 60, clock=clock)

    assert (a1.allowed, a2.allowed) == (True, False)
    assert (b1.allowed, b2.allowed) == (True, False)
    assert a2.decays_at == a1.decays_at
    assert b2.decays_at == b1.decays_at
    assert b1.decays_at == a1.decays_at + 5


@pytest.mark.asyncio
async def test_record_expires_after_twice_the_window(store, clock) -> None:
    await acquire(store, "ttl", 2, 10, clock=clock)

    assert store.ttl("ttl") == pytest.approx(20)

    clock.advance(20)
    assert store.ttl("ttl") is None


@pytest.mark.asyncio
async def test_expired_keys_are_evicted_without_further_traffic(store, clock) -> None:
    for i in range(1000):
        await acquire(store, f"client:{i}", 5, 10, clock=clock)
    assert len(store) == 1000

    clock.advance(100)
    await acquire(store, "client:new", 5, 10, clock=clock)

    assert len(store) == 1


@pytest.mark.asyncio
async def test_reopened_window_survives_eviction_of_its_old_record(store, clock) -> None:
    await acquire(store, "busy", 1, 10, clock=clock)
    clock.advance(15)
    reopened = await acquire(store, "busy", 1, 10, clock=clock)

    clock.advance(6)
    # The first record's expiry has passed; the reopened window has not.
    await acquire(store, "other", 1, 10, clock=clock)

    assert store.ttl("busy") == pytest.approx(14)
    follow_up = await acquire(store, "busy", 1, 10, clock=clock)
    assert follow_up.allowed is False
    assert follow_up.decays_at == reopened.decays_at


@pytest.mark.asyncio
async def test_concurrent_tasks_get_exact_number_of_slots(store, clock) -> None:
    results = await asyncio.gather(*(acquire(store, "race", 7, 30, clock=clock) for _ in range(50)))

    assert sum(r.allowed for r in results) == 7
    allowed_remaining = sorted(r.remaining for r in results if r.allowed)
    assert allowed_remaining == list(range(7))


def test_concurrent_threads_get_exact_number_of_slots() -> None:
    store = InMemoryWindowStore()
    allowed: list[bool] = []
    lock = threading.Lock()

    def worker() -> None:
        outcome = asyncio.run(acquire(store, "threads", 10, 60))
        with lock:
            allowed.append(outcome.allowed)

    threads = [threading.Thread(target=worker) for _ in range(40)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(allowed) == 40
    assert sum(allowed) == 10


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "key,max_count,window_size",
    [
        ("", 1, 60),
        ("k", -1, 60),
        ("k", 1, 0),
    ],
)
async def test_invalid_acquire_args(store, key, max_count, window_size) -> None:
    with pytest.raises(ValidationAppError):
        await acquire(store, key, max_count, window_size)
