"""Tests for objectstore.resilience.circuit_breaker — CircuitBreaker state machine."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from objectstore.core.errors import CircuitOpenError
from objectstore.resilience.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState


class Boom(Exception):
    pass


async def _fail() -> None:
    raise Boom("backend down")


async def _ok() -> str:
    return "ok"


def _breaker(clock, threshold: int = 3, timeout: float = 30.0) -> CircuitBreaker:
    return CircuitBreaker(CircuitBreakerConfig(failure_threshold=threshold, reset_timeout=timeout), clock=clock)


async def _trip(breaker: CircuitBreaker, times: int) -> None:
    for _ in range(times):
        with pytest.raises(Boom):
            await breaker.call_async(_fail)


class TestDefaults:
    def test_config_defaults(self):
        config = CircuitBreakerConfig()
        assert config.failure_threshold == 5
        assert config.reset_timeout == 60.0

    def test_initial_metrics(self):
        metrics = CircuitBreaker().get_metrics()
        assert metrics.state is CircuitState.CLOSED
        assert (metrics.failure_count, metrics.success_count, metrics.total_requests) == (0, 0, 0)
        assert metrics.last_failure_time is None
        assert metrics.next_attempt_time is None


class TestClosed:
    @pytest.mark.asyncio
    async def test_passes_results_through(self, clock):
        assert await _breaker(clock).call_async(_ok) == "ok"

    @pytest.mark.asyncio
    async def test_original_error_is_reraised(self, clock):
        breaker = _breaker(clock)
        with pytest.raises(Boom, match="backend down"):
            await breaker.call_async(_fail)
        assert breaker.get_metrics().failure_count == 1

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self, clock):
        breaker = _breaker(clock)
        await _trip(breaker, 2)
        await breaker.call_async(_ok)
        await _trip(breaker, 2)
        assert breaker.state is CircuitState.CLOSED
        assert breaker.get_metrics().failure_count == 2

    @pytest.mark.asyncio
    async def test_opens_at_threshold(self, clock):
        breaker = _breaker(clock, threshold=3, timeout=30)
        await _trip(breaker, 3)
        metrics = breaker.get_metrics()
        assert metrics.state is CircuitState.OPEN
        assert metrics.last_failure_time == clock.now
        assert metrics.next_attempt_time == clock.now + timedelta(seconds=30)


class TestOpen:
    @pytest.mark.asyncio
    async def test_rejects_without_invoking(self, clock):
        breaker = _breaker(clock)
        await _trip(breaker, 3)
        operation = AsyncMock()
        with pytest.raises(CircuitOpenError) as exc_info:
            await breaker.call_async(operation)
        operation.assert_not_awaited()
        assert exc_info.value.state is CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_rejected_calls_are_counted(self, clock):
        breaker = _breaker(clock)
        await _trip(breaker, 3)
        with pytest.raises(CircuitOpenError):
            await breaker.call_async(_ok)
        assert breaker.get_metrics().total_requests == 4

    @pytest.mark.asyncio
    async def test_still_open_before_timeout(self, clock):
        breaker = _breaker(clock, timeout=30)
        await _trip(breaker, 3)
        clock.advance(29.9)
        with pytest.raises(CircuitOpenError):
            await breaker.call_async(_ok)


class TestHalfOpen:
    @pytest.mark.asyncio
    async def test_trial_success_closes(self, clock):
        breaker = _breaker(clock, timeout=30)
        await _trip(breaker, 3)
        clock.advance(30)
        assert await breaker.call_async(_ok) == "ok"
        metrics = breaker.get_metrics()
        assert metrics.state is CircuitState.CLOSED
        assert metrics.failure_count == 0
        assert metrics.next_attempt_time is None

    @pytest.mark.asyncio
    async def test_trial_failure_reopens_with_new_deadline(self, clock):
        breaker = _breaker(clock, timeout=30)
        await _trip(breaker, 3)
        clock.advance(31)
        await _trip(breaker, 1)
        metrics = breaker.get_metrics()
        assert metrics.state is CircuitState.OPEN
        assert metrics.next_attempt_time == clock.now + timedelta(seconds=30)

    @pytest.mark.asyncio
    async def test_only_one_trial_call_admitted(self, clock):
        breaker = _breaker(clock, timeout=30)
        await _trip(breaker, 3)
        clock.advance(30)

        release = asyncio.Event()

        async def slow() -> str:
            await release.wait()
            return "ok"

        trial = asyncio.create_task(breaker.call_async(slow))
        await asyncio.sleep(0)
        assert breaker.state is CircuitState.HALF_OPEN

        with pytest.raises(CircuitOpenError) as exc_info:
            await breaker.call_async(_ok)
        assert exc_info.value.state is CircuitState.HALF_OPEN

        release.set()
        assert await trial == "ok"
        assert breaker.state is CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_cancelled_trial_frees_the_slot(self, clock):
        breaker = _breaker(clock, timeout=30)
        await _trip(breaker, 3)
        clock.advance(30)

        async def hang() -> None:
            await asyncio.Event().wait()

        trial = asyncio.create_task(breaker.call_async(hang))
        await asyncio.sleep(0)
        trial.cancel()
        with pytest.raises(asyncio.CancelledError):
            await trial

        assert breaker.state is CircuitState.HALF_OPEN
        assert await breaker.call_async(_ok) == "ok"
        assert breaker.state is CircuitState.CLOSED


class TestReset:
    @pytest.mark.asyncio
    async def test_reset_clears_everything(self, clock):
        breaker = _breaker(clock)
        await breaker.call_async(_ok)
        await _trip(breaker, 3)
        breaker.reset()
        metrics = breaker.get_metrics()
        assert metrics.state is CircuitState.CLOSED
        assert (metrics.failure_count, metrics.success_count, metrics.total_requests) == (0, 0, 0)
        assert metrics.last_failure_time is None
        assert metrics.next_attempt_time is None
        assert await breaker.call_async(_ok) == "ok"

    def test_metrics_to_dict(self, clock):
        data = _breaker(clock).get_metrics().to_dict()
        assert data == {
            "state": "closed",
            "failure_count": 0,
            "success_count": 0,
            "total_requests": 0,
            "last_failure_time": None,
            "next_attempt_time": None,
        }
