"""
Shared pytest fixtures for objectstore tests.

This module provides:
- Resource builders with sensible identity defaults
- An in-memory repository and a service bound to it
- A controllable clock for circuit-breaker timing

Usage:
    Fixtures are auto-discovered by pytest.

    async def test_something(service, make_resource):
        await service.create_object(make_resource(title="A"))
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest

from objectstore.backends.memory import InMemoryRepository
from objectstore.core.resource import Resource
from objectstore.ops.objects import ObjectService


# =============================================================================
# Resources
# =============================================================================


@pytest.fixture
def make_resource() -> Callable[..., Resource]:
    """Build a resource; keyword arguments other than identity become fields."""

    def _make(
        id: str = "d1",
        *,
        tenant: str = "t1",
        type: str = "doc",
        version: int = 1,
        **fields: Any,
    ) -> Resource:
        return Resource(tenant=tenant, type=type, id=id, version=version, fields=fields)

    return _make


@pytest.fixture
def memory_repository() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def service(memory_repository: InMemoryRepository) -> ObjectService:
    return ObjectService(memory_repository)


# =============================================================================
# Time
# =============================================================================


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
