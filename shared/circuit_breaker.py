"""
Circuit breaker guarding calls to identity providers.

A provider that keeps timing out or failing is taken out of rotation for
``recovery_timeout`` seconds; afterwards a single probe call is let through
and decides whether the breaker closes again.
"""

import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type, Union

from shared.logging import get_logger


class CircuitBreakerState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpenError(Exception):
    """Raised when a call is blocked by an open circuit breaker."""

    def __init__(self, name: str, retry_after: float):
        super().__init__(f"Circuit breaker '{name}' is open, retry in {retry_after:.1f}s")
        self.name = name
        self.retry_after = retry_after


class CircuitBreaker:
    """Consecutive-failure circuit breaker.

    Only exceptions matching ``expected_exception`` count as failures; anything
    else is a caller problem (bad credential, unknown subject) and passes
    through without touching the failure count.
    """

    def __init__(self,
                 failure_threshold: int = 5,
                 recovery_timeout: float = 60.0,
                 expected_exception: Union[Type[BaseException], Tuple[Type[BaseException], ...]] = Exception,
                 name: str = "default",
                 clock: Optional[Callable[[], float]] = None):
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception = expected_exception
        self.name = name
        self.logger = get_logger(f"tokens.circuit_breaker.{name}")
        self._clock = clock or time.monotonic

        self._state = CircuitBreakerState.CLOSED
        self._failures = 0
        self._successes = 0
        self._opened_at = 0.0
        self._probing = False

    @property
    def state(self) -> CircuitBreakerState:
        if self._state == CircuitBreakerState.OPEN and self._retry_after() <= 0:
            self._state = CircuitBreakerState.HALF_OPEN
            self.logger.info("Circuit breaker half-open, probing provider")
        return self._state

    def _retry_after(self) -> float:
        return self._opened_at + self.recovery_timeout - self._clock()

    def _admit(self) -> None:
        state = self.state
        if state == CircuitBreakerState.OPEN:
            raise CircuitBreakerOpenError(self.name, self._retry_after())
        if state == CircuitBreakerState.HALF_OPEN:
            # One probe at a time while the provider recovers
            if self._probing:
                raise CircuitBreakerOpenError(self.name, 0.0)
            self._probing = True

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """Run ``func`` unless the breaker is open."""
        self._admit()
        try:
            result = await func(*args, **kwargs)
        except self.expected_exception:
            self.record_failure()
            raise
        finally:
            self._probing = False

        self.record_success()
        return result

    def record_success(self) -> None:
        if self._state != CircuitBreakerState.CLOSED:
            self.logger.info("Circuit breaker closed, provider recovered")
        self._state = CircuitBreakerState.CLOSED
        self._failures = 0
        self._successes += 1

    def record_failure(self) -> None:
        self._failures += 1
        self._successes = 0
        if self._state == CircuitBreakerState.HALF_OPEN or self._failures >= self.failure_threshold:
            self._state = CircuitBreakerState.OPEN
            self._opened_at = self._clock()
            self.logger.warning(
                "Circuit breaker opened",
                failures=self._failures,
                threshold=self.failure_threshold,
                recovery_timeout=self.recovery_timeout
            )

    def get_state(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self._failures,
            "success_count": self._successes,
            "failure_threshold": self.failure_threshold,
            "recovery_timeout": self.recovery_timeout,
        }

    def is_open(self) -> bool:
        return self.state == CircuitBreakerState.OPEN
