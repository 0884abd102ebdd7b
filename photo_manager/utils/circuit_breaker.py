"""
Circuit breaker for remote storage calls.

Stops hammering a failing backend and fails fast instead.
State transitions: CLOSED -> OPEN -> HALF_OPEN -> CLOSED

See: https://martinfowler.com/bliki/CircuitBreaker.html
"""
import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, Optional, TypeVar

from photo_manager.utils.metrics import (
    circuit_breaker_requests_total,
    circuit_breaker_state,
    circuit_breaker_state_transitions_total,
)

logger = logging.getLogger("photo_manager.circuit_breaker")

T = TypeVar("T")

_STATE_GAUGE = {"CLOSED": 0, "OPEN": 1, "HALF_OPEN": 2}


class CircuitState(str, Enum):
    """Circuit breaker state."""
    CLOSED = "CLOSED"  # normal operation
    OPEN = "OPEN"  # failing, requests rejected
    HALF_OPEN = "HALF_OPEN"  # probing for recovery


class CircuitBreakerOpenError(Exception):
    """Raised when a call is rejected because the circuit is OPEN."""
    pass


class CircuitBreaker:
    """
    Circuit breaker around async callables.

    Usage:
        breaker = CircuitBreaker("object_storage", failure_threshold=5, timeout=60)
        result = await breaker.call(func, *args, **kwargs)
    """

    def __init__(
        self,
        service_name: str,
        failure_threshold: int = 5,
        success_threshold: int = 2,
        timeout: float = 60.0,
    ):
        """
        Args:
            service_name: metric label
            failure_threshold: consecutive failures before opening
            success_threshold: HALF_OPEN successes before closing
            timeout: seconds spent OPEN before probing again
        """
        self.service_name = service_name
        self.failure_threshold = failure_threshold
        self.success_threshold = success_threshold
        self.timeout = timeout

        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.last_failure_time: Optional[float] = None
        self._lock = asyncio.Lock()

        circuit_breaker_state.labels(service=service_name).set(0)

    async def call(self, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """
        Call ``func`` through the breaker.

        Raises:
            CircuitBreakerOpenError: the circuit is OPEN
            Whatever func raises
        """
        async with self._lock:
            self._check_and_transition()

            if self.state == CircuitState.OPEN:
                circuit_breaker_requests_total.labels(
                    service=self.service_name, status="rejected"
                ).inc()
                logger.warning(
                    f"Circuit breaker OPEN for {self.service_name}, request rejected",
                    extra={"event": "circuit_breaker", "service": self.service_name},
                )
                raise CircuitBreakerOpenError(
                    f"Circuit breaker is OPEN for {self.service_name}"
                )

        try:
            result = await func(*args, **kwargs)
        except Exception:
            async with self._lock:
                self._on_failure()
            circuit_breaker_requests_total.labels(
                service=self.service_name, status="failure"
            ).inc()
            raise

        async with self._lock:
            self._on_success()
        circuit_breaker_requests_total.labels(
            service=self.service_name, status="success"
        ).inc()
        return result

    def _transition(self, to_state: CircuitState) -> None:
        circuit_breaker_state_transitions_total.labels(
            service=self.service_name,
            from_state=self.state.value,
            to_state=to_state.value,
        ).inc()
        self.state = to_state
        circuit_breaker_state.labels(service=self.service_name).set(_STATE_GAUGE[to_state.value])
        logger.info(
            f"Circuit breaker {to_state.value} for {self.service_name}",
            extra={"event": "circuit_breaker", "service": self.service_name},
        )

    def _check_and_transition(self) -> None:
        if self.state == CircuitState.OPEN:
            if (
                self.last_failure_time
                and time.time() - self.last_failure_time >= self.timeout
            ):
                self._transition(CircuitState.HALF_OPEN)
                self.success_count = 0
                self.failure_count = 0

    def _on_success(self) -> None:
        if self.state == CircuitState.HALF_OPEN:
            self.success_count += 1
            if self.success_count >= self.success_threshold:
                self._transition(CircuitState.CLOSED)
                self.failure_count = 0
                self.success_count = 0
        elif self.state == CircuitState.CLOSED:
            self.failure_count = 0

    def _on_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == CircuitState.HALF_OPEN:
            # a single failure while probing reopens the circuit
            self._transition(CircuitState.OPEN)
        elif self.state == CircuitState.CLOSED and self.failure_count >= self.failure_threshold:
            self._transition(CircuitState.OPEN)
