"""Circuit breaker for outbound service calls.

CLOSED lets calls through and counts consecutive failures. Reaching the
threshold opens the circuit. While OPEN, calls are rejected until
recovery_timeout has elapsed, then a single probe is let through
(HALF_OPEN). A successful probe closes the circuit; a failed one reopens it.
"""

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from app.core.logging import get_logger

logger = get_logger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Circuit breaker configuration."""

    failure_threshold: int
    recovery_timeout: float


StateChangeHook = Callable[[str, CircuitState, CircuitState, int], None]


class CircuitBreaker:
    """Async-safe circuit breaker.

    Args:
        config: Threshold and recovery timeout.
        name: Name used in logs.
        on_state_change: Optional hook called as
            ``hook(name, previous_state, new_state, failure_count)``.
    """

    def __init__(
        self,
        config: CircuitBreakerConfig,
        name: str = "default",
        on_state_change: StateChangeHook | None = None,
    ) -> None:
        self._config = config
        self._name = name
        self._on_state_change = on_state_change
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: float | None = None
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def is_closed(self) -> bool:
        return self._state == CircuitState.CLOSED

    @property
    def is_open(self) -> bool:
        return self._state == CircuitState.OPEN

    @property
    def is_half_open(self) -> bool:
        return self._state == CircuitState.HALF_OPEN

    def retry_in(self) -> float:
        """Seconds until an open circuit will admit a probe (0 if not open)."""
        if self._state != CircuitState.OPEN or self._opened_at is None:
            return 0.0
        elapsed = time.monotonic() - self._opened_at
        return max(self._config.recovery_timeout - elapsed, 0.0)

    def _transition(self, new_state: CircuitState) -> None:
        previous = self._state
        if previous == new_state:
            return
        self._state = new_state
        if new_state == CircuitState.OPEN:
            self._opened_at = time.monotonic()
        elif new_state == CircuitState.CLOSED:
            self._opened_at = None

        logger.info(
            "Circuit breaker state change",
            extra={
                "circuit_name": self._name,
                "previous_state": previous.value,
                "new_state": new_state.value,
                "failure_count": self._failure_count,
            },
        )
        if self._on_state_change is not None:
            self._on_state_change(self._name, previous, new_state, self._failure_count)

    async def can_execute(self) -> bool:
        """Check whether a call may proceed, moving OPEN -> HALF_OPEN when due."""
        async with self._lock:
            if self._state == CircuitState.OPEN:
                if self.retry_in() > 0:
                    return False
                self._transition(CircuitState.HALF_OPEN)
            return True

    async def record_success(self) -> None:
        async with self._lock:
            self._failure_count = 0
            if self._state == CircuitState.HALF_OPEN:
                self._transition(CircuitState.CLOSED)

    async def record_failure(self) -> None:
        async with self._lock:
            self._failure_count += 1
            if self._state == CircuitState.HALF_OPEN:
                self._transition(CircuitState.OPEN)
            elif (
                self._state == CircuitState.CLOSED
                and self._failure_count >= self._config.failure_threshold
            ):
                self._transition(CircuitState.OPEN)
