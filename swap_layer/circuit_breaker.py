"""
Circuit Breaker - failure isolation for outbound calls

States:
- CLOSED: normal operation, failures are counted
- OPEN: calls fail immediately with CircuitOpenError
- HALF_OPEN: probing, one call in flight at a time

CLOSED -> OPEN after `failure_threshold` failures (no decay on success).
OPEN -> HALF_OPEN once `reset_timeout` has elapsed since the last failure.
HALF_OPEN -> CLOSED after `half_open_success_required` successes.
HALF_OPEN -> OPEN on any failure.

Exceptions listed in `excluded` pass through without counting as failures.
"""

import logging
import threading
import time
from enum import Enum
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from swap_layer.errors import CircuitOpenError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(Enum):
    """Circuit breaker state."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Three-state breaker wrapping any async operation.

    Created once per protected resource (quote API, swap path, pool scan).
    Only execute() and reset() mutate its state.
    """

    def __init__(
        self,
        name: str = "default",
        failure_threshold: int = 5,
        reset_timeout: float = 60.0,
        half_open_success_required: int = 3,
        excluded: Tuple[Type[BaseException], ...] = (),
        clock: Callable[[], float] = time.time,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.half_open_success_required = half_open_success_required
        self.excluded = tuple(excluded)
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None
        self._half_open_success_count = 0
        self._probe_in_flight = False
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def _before_call(self) -> None:
        """Gate a call. Raises CircuitOpenError if the breaker blocks it."""
        with self._lock:
            if self._state is CircuitState.OPEN:
                elapsed = self._clock() - (self._last_failure_time or 0.0)
                if elapsed < self.reset_timeout:
                    raise CircuitOpenError(
                        f"Circuit '{self.name}' is open "
                        f"({self.reset_timeout - elapsed:.1f}s until probe)"
                    )
                self._state = CircuitState.HALF_OPEN
                self._half_open_success_count = 0
                logger.info(f"🔌 Circuit '{self.name}' HALF_OPEN: probing")

            if self._state is CircuitState.HALF_OPEN:
                if self._probe_in_flight:
                    raise CircuitOpenError(f"Circuit '{self.name}' is probing")
                self._probe_in_flight = True

    def _on_success(self) -> None:
        with self._lock:
            if self._state is CircuitState.HALF_OPEN:
                self._probe_in_flight = False
                self._half_open_success_count += 1
                if self._half_open_success_count >= self.half_open_success_required:
                    self._reset_locked()
                    logger.info(f"✅ Circuit '{self.name}' CLOSED after successful probes")

    def _on_failure(self, error: BaseException) -> None:
        with self._lock:
            self._failure_count += 1
            self._last_failure_time = self._clock()

            if self._state is CircuitState.HALF_OPEN:
                self._probe_in_flight = False
                self._state = CircuitState.OPEN
                logger.warning(f"🔌 Circuit '{self.name}' re-OPENED: probe failed ({error})")
            elif (
                self._state is CircuitState.CLOSED
                and self._failure_count >= self.failure_threshold
            ):
                self._state = CircuitState.OPEN
                logger.error(
                    f"🚨 Circuit '{self.name}' OPEN: {self._failure_count} failures "
                    f"(last: {error}), blocking for {self.reset_timeout:.0f}s"
                )

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run `operation` under breaker protection.

        The operation's own exception is recorded and re-raised unchanged.
        """
        self._before_call()
        try:
            result = await operation()
        except self.excluded:
            self._release_probe()
            raise
        except Exception as e:
            self._on_failure(e)
            raise
        except BaseException:
            # Cancellation is not a provider failure
            self._release_probe()
            raise
        self._on_success()
        return result

    def _release_probe(self) -> None:
        with self._lock:
            self._probe_in_flight = False

    def _reset_locked(self) -> None:
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._half_open_success_count = 0
        self._probe_in_flight = False

    def reset(self) -> None:
        """Force the breaker back to CLOSED."""
        with self._lock:
            self._reset_locked()
        logger.info(f"🔌 Circuit '{self.name}' manually reset")

    def get_status(self) -> dict:
        return {
            "name": self.name,
            "state": self._state.value,
            "failure_count": self._failure_count,
            "failure_threshold": self.failure_threshold,
            "last_failure_time": self._last_failure_time,
            "half_open_successes": self._half_open_success_count,
        }

    def __repr__(self) -> str:
        return (
            f"CircuitBreaker({self.name}, state={self._state.value}, "
            f"failures={self._failure_count}/{self.failure_threshold})"
        )
