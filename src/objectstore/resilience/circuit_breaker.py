"""Circuit breaker for repository calls.

Prevents cascading failures by failing fast while a storage backend is
unhealthy.

States:
    CLOSED: Normal operation, calls pass through
    OPEN: Failing fast, calls rejected without invoking the operation
    HALF_OPEN: One trial call decides between CLOSED and OPEN

Transitions:
    ::

        CLOSED ──(failure_count reaches threshold)──► OPEN
        OPEN ──(now >= next_attempt_time)──────────► HALF_OPEN
        HALF_OPEN ──(trial succeeds)──────────────► CLOSED
        HALF_OPEN ──(trial fails)─────────────────► OPEN

Counters are guarded by a lock but the guarded call itself runs outside
it, so concurrent failures may race on ``failure_count``; only eventual
threshold crossing is guaranteed.

Example:
    >>> breaker = CircuitBreaker(CircuitBreakerConfig(failure_threshold=3))
    >>> result = await breaker.call_async(repository.find_by_key, key)
    >>> breaker.get_metrics().state
    <CircuitState.CLOSED: 'closed'>
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, TypeVar

from objectstore.core.errors import CircuitOpenError
from objectstore.core.logging import get_logger

T = TypeVar("T")

logger = get_logger(__name__)


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"      # Normal operation
    OPEN = "open"          # Rejecting calls
    HALF_OPEN = "half_open"  # Testing recovery


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Breaker tuning.

    Attributes:
        failure_threshold: Consecutive failures before opening
        reset_timeout: Seconds to stay open before admitting a trial call
    """

    failure_threshold: int = 5
    reset_timeout: float = 60.0


@dataclass(frozen=True)
class CircuitMetrics:
    """Point-in-time snapshot of a breaker's state and counters."""

    state: CircuitState
    failure_count: int
    success_count: int
    total_requests: int
    last_failure_time: datetime | None
    next_attempt_time: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "failure_count": self.failure_count,
            "success_count": self.success_count,
            "total_requests": self.total_requests,
            "last_failure_time": self.last_failure_time.isoformat() if self.last_failure_time else None,
            "next_attempt_time": self.next_attempt_time.isoformat() if self.next_attempt_time else None,
        }


@dataclass
class CircuitBreaker:
    """Circuit breaker gating asynchronous calls.

    Attributes:
        config: Threshold and timeout
        name: Identifier used in log events
        clock: Returns the current time; injectable for tests
    """

    config: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)
    name: str = "repository"
    clock: Callable[[], datetime] = utcnow

    # Internal state
    _state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    _failure_count: int = field(default=0, init=False)
    _success_count: int = field(default=0, init=False)
    _total_requests: int = field(default=0, init=False)
    _last_failure_time: datetime | None = field(default=None, init=False)
    _next_attempt_time: datetime | None = field(default=None, init=False)
    _trial_in_flight: bool = field(default=False, init=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, init=False)

    @property
    def state(self) -> CircuitState:
        """Current state (does not advance OPEN to HALF_OPEN)."""
        with self._lock:
            return self._state

    def get_metrics(self) -> CircuitMetrics:
        with self._lock:
            return CircuitMetrics(
                state=self._state,
                failure_count=self._failure_count,
                success_count=self._success_count,
                total_requests=self._total_requests,
                last_failure_time=self._last_failure_time,
                next_attempt_time=self._next_attempt_time,
            )

    def reset(self) -> None:
        """Return to CLOSED with counters zeroed and timestamps cleared."""
        with self._lock:
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._success_count = 0
            self._total_requests = 0
            self._last_failure_time = None
            self._next_attempt_time = None
            self._trial_in_flight = False
        logger.info("circuit_reset", circuit=self.name)

    def _transition_to(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._state = new_state
        if new_state == CircuitState.OPEN:
            self._next_attempt_time = self.clock() + timedelta(seconds=self.config.reset_timeout)
            logger.warning(
                "circuit_opened",
                circuit=self.name,
                previous_state=old_state.value,
                failure_count=self._failure_count,
                next_attempt_time=self._next_attempt_time.isoformat(),
            )
        elif new_state == CircuitState.HALF_OPEN:
            logger.info("circuit_half_open", circuit=self.name)
        else:
            self._failure_count = 0
            self._next_attempt_time = None
            logger.info("circuit_closed", circuit=self.name, previous_state=old_state.value)

    def _release_trial(self) -> None:
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._trial_in_flight = False
        logger.debug("circuit_call_abandoned", circuit=self.name)

    def _admit(self) -> None:
        """Count the call and decide whether it may proceed.

        Raises:
            CircuitOpenError: If the call is rejected
        """
        with self._lock:
            self._total_requests += 1

            if self._state == CircuitState.OPEN:
                if self._next_attempt_time is not None and self.clock() >= self._next_attempt_time:
                    self._transition_to(CircuitState.HALF_OPEN)
                else:
                    raise CircuitOpenError(f"Circuit '{self.name}' is open, rejecting request", state=self._state)

            if self._state == CircuitState.HALF_OPEN:
                # Exactly one trial call at a time
                if self._trial_in_flight:
                    raise CircuitOpenError(
                        f"Circuit '{self.name}' is half-open, trial call in progress", state=self._state
                    )
                self._trial_in_flight = True

    def record_success(self) -> None:
        """Record a successful call."""
        with self._lock:
            self._success_count += 1
            if self._state == CircuitState.HALF_OPEN:
                self._trial_in_flight = False
                self._transition_to(CircuitState.CLOSED)
            else:
                self._failure_count = 0

    def record_failure(self, error: Exception | None = None) -> None:
        """Record a failed call."""
        with self._lock:
            self._failure_count += 1
            self._last_failure_time = self.clock()

            if self._state == CircuitState.HALF_OPEN:
                # Any failure in half-open reopens the circuit
                self._trial_in_flight = False
                self._transition_to(CircuitState.OPEN)
            elif self._state == CircuitState.CLOSED and self._failure_count >= self.config.failure_threshold:
                self._transition_to(CircuitState.OPEN)

        logger.debug("circuit_call_failed", circuit=self.name, error=str(error) if error else None)

    async def call_async(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Execute an async function through the circuit breaker.

        The original exception is re-raised unchanged after being recorded.

        Raises:
            CircuitOpenError: If the circuit rejects the call
        """
        self._admit()
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            self.record_failure(e)
            raise
        except BaseException:
            # Cancelled calls are neither success nor failure
            self._release_trial()
            raise
        self.record_success()
        return result


__all__ = [
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitMetrics",
    "CircuitState",
    "utcnow",
]
