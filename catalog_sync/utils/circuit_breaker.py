"""
Circuit breaker that stops hammering a remote once it looks unreachable.

On a device that has gone offline every request would otherwise wait for its
own timeout; after enough consecutive failures the breaker opens and calls fail
immediately until the recovery timeout has passed.
"""

import asyncio
import logging
import time
from enum import Enum

log = logging.getLogger(__name__)


class CircuitState(Enum):
    """States of the circuit breaker."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing fast
    HALF_OPEN = "half_open"  # Letting a probe request through


class CircuitBreakerError(Exception):
    """Raised when a call is rejected because the circuit is open."""


class CircuitBreaker:
    """
    Counts consecutive failures of the guarded calls.

    Use as `async with breaker:` around a request. Exceptions listed in
    `ignored` (e.g. 404 responses) pass through without counting as failures.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        ignored: tuple[type[BaseException], ...] = (),
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.ignored = ignored

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: float | None = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    async def __aenter__(self):
        async with self._lock:
            if self._state == CircuitState.OPEN:
                elapsed = time.monotonic() - (self._opened_at or 0.0)
                if elapsed < self.recovery_timeout:
                    raise CircuitBreakerError(
                        f"{self.name} looks unreachable; retrying in "
                        f"{self.recovery_timeout - elapsed:.0f}s."
                    )
                log.debug(f"{self.name}: circuit half-open, letting a request through.")
                self._state = CircuitState.HALF_OPEN
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        async with self._lock:
            if exc_type is None or issubclass(exc_type, self.ignored):
                if self._state != CircuitState.CLOSED:
                    log.info(f"[green]✓ {self.name} reachable again.[/green]")
                self._state = CircuitState.CLOSED
                self._failure_count = 0
                return False

            if issubclass(exc_type, asyncio.CancelledError):
                return False

            self._failure_count += 1
            if (
                self._state == CircuitState.HALF_OPEN
                or self._failure_count >= self.failure_threshold
            ):
                if self._state != CircuitState.OPEN:
                    log.warning(
                        f"[yellow]{self.name} failed {self._failure_count} times in a"
                        f" row; pausing requests for {self.recovery_timeout:.0f}s."
                        "[/yellow]"
                    )
                self._state = CircuitState.OPEN
                self._opened_at = time.monotonic()
        return False
