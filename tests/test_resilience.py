import asyncio

import pytest

from photo_manager.utils.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerOpenError,
    CircuitState,
)
from photo_manager.utils.locks import KeyedLock
from photo_manager.utils.retry import retry_with_backoff


class Flaky:
    def __init__(self, failures, exc_type=ConnectionError):
        self.failures = failures
        self.exc_type = exc_type
        self.calls = 0

    async def __call__(self, value="ok"):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc_type(f"failure {self.calls}")
        return value


async def test_retry_succeeds_after_transient_failures():
    func = Flaky(failures=2)

    result = await retry_with_backoff(func, "done", max_attempts=3, initial_delay=0)

    assert result == "done"
    assert func.calls == 3


async def test_retry_gives_up_after_max_attempts():
    func = Flaky(failures=5)

    with pytest.raises(ConnectionError):
        await retry_with_backoff(func, max_attempts=3, initial_delay=0)

    assert func.calls == 3


async def test_retry_does_not_retry_other_exceptions():
    func = Flaky(failures=1, exc_type=ValueError)

    with pytest.raises(ValueError):
        await retry_with_backoff(
            func, max_attempts=3, initial_delay=0, retryable_exceptions=(ConnectionError,)
        )

    assert func.calls == 1


async def test_circuit_opens_after_threshold_and_rejects():
    breaker = CircuitBreaker("test_open", failure_threshold=2, timeout=60)
    func = Flaky(failures=10)

    for _ in range(2):
        with pytest.raises(ConnectionError):
            await breaker.call(func)

    assert breaker.state is CircuitState.OPEN

    with pytest.raises(CircuitBreakerOpenError):
        await breaker.call(func)
    assert func.calls == 2


async def test_circuit_recovers_through_half_open():
    breaker = CircuitBreaker("test_recover", failure_threshold=1, success_threshold=2, timeout=0)
    func = Flaky(failures=1)

    with pytest.raises(ConnectionError):
        await breaker.call(func)
    assert breaker.state is CircuitState.OPEN

    assert await breaker.call(func) == "ok"
    assert breaker.state is CircuitState.HALF_OPEN
    assert await breaker.call(func) == "ok"
    assert breaker.state is CircuitState.CLOSED


async def test_success_resets_failure_count():
    breaker = CircuitBreaker("test_reset", failure_threshold=2)

    with pytest.raises(ConnectionError):
        await breaker.call(Flaky(failures=1))
    await breaker.call(Flaky(failures=0))
    with pytest.raises(ConnectionError):
        await breaker.call(Flaky(failures=1))

    assert breaker.state is CircuitState.CLOSED


async def test_keyed_lock_serialises_same_key():
    locks = KeyedLock()
    order = []

    async def worker(name):
        async with locks.acquire("photo-1"):
            order.append(f"{name}-in")
            await asyncio.sleep(0.01)
            order.append(f"{name}-out")

    await asyncio.gather(worker("a"), worker("b"))

    assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])
    assert len(locks) == 0


async def test_keyed_lock_allows_different_keys_concurrently():
    locks = KeyedLock()
    inside = asyncio.Event()

    async def holder():
        async with locks.acquire("a"):
            await asyncio.wait_for(inside.wait(), timeout=1)

    async def other():
        async with locks.acquire("b"):
            inside.set()

    await asyncio.gather(holder(), other())
    assert len(locks) == 0
