"""Circuit breaker for external service calls."""

import time
from enum import Enum
from typing import Callable, Any, Optional

from app.infra.metrics import circuit_breaker_state


class CircuitState(str, Enum):
    """Circuit breaker states."""
    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject requests
    HALF_OPEN = "half_open"  # Testing if service recovered


class CircuitOpenError(RuntimeError):
    """Raised instead of calling the service while the circuit is open."""


class CircuitBreaker:
    """
    Circuit breaker for async calls to upstream services.

    Opens after `failure_threshold` consecutive failures, rejects calls for
    `recovery_timeout` seconds, then lets calls through half-open until two
    succeed in a row.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: int = 60,
        expected_exception: type = Exception,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize circuit breaker.

        Args:
            name: Service name, used in error messages
            failure_threshold: Number of failures before opening circuit
            recovery_timeout: Seconds to wait before attempting recovery (half-open)
            expected_exception: Exception type that counts as failure
            clock: Monotonic time source
        """
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception = expected_exception
        self._clock = clock

        self.failure_count = 0
        self.last_failure_time: Optional[float] = None
        self.state = CircuitState.CLOSED
        self.success_count = 0  # For half-open state

    def _set_state(self, state: CircuitState) -> None:
        self.state = state
        gauge_value = {CircuitState.CLOSED: 0, CircuitState.HALF_OPEN: 1, CircuitState.OPEN: 2}[state]
        circuit_breaker_state.labels(service=self.name).set(gauge_value)

    def _before_call(self) -> None:
        if self.state != CircuitState.OPEN:
            return
        elapsed = self._clock() - (self.last_failure_time or 0.0)
        if elapsed >= self.recovery_timeout:
            self._set_state(CircuitState.HALF_OPEN)
            self.success_count = 0
            return
        raise CircuitOpenError(
            f"Circuit breaker for {self.name} is OPEN. "
            f"Retry after {int(self.recovery_timeout - elapsed)} seconds."
        )

    def _on_success(self) -> None:
        if self.state == CircuitState.HALF_OPEN:
            self.success_count += 1
            if self.success_count >= 2:  # Need 2 successes to close
                self._set_state(CircuitState.CLOSED)
                self.failure_count = 0
                self.success_count = 0
        else:
            self.failure_count = 0

    def _on_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = self._clock()
        if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
            self._set_state(CircuitState.OPEN)

    async def call_async(self, func: Callable, *args, **kwargs) -> Any:
        """
        Execute async function with circuit breaker protection.

        Raises:
            CircuitOpenError: If circuit is open
            Exception: Original exception from function
        """
        self._before_call()
        try:
            result = await func(*args, **kwargs)
        except self.expected_exception:
            self._on_failure()
            raise
        self._on_success()
        return result


# Global circuit breakers for external services
composio_circuit_breaker = CircuitBreaker(
    "composio",
    failure_threshold=5,
    recovery_timeout=30,
)

gemini_circuit_breaker = CircuitBreaker(
    "gemini",
    failure_threshold=5,
    recovery_timeout=60,
)

openai_circuit_breaker = CircuitBreaker(
    "openai",
    failure_threshold=5,
    recovery_timeout=60,
)
