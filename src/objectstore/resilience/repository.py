"""Repository wrapper that routes every call through a circuit breaker.

The wrapper knows nothing about the backend it guards; it composes with any
object satisfying :class:`~objectstore.core.protocols.Repository`.
Failures raised by the inner repository are re-raised unchanged, so status
code mapping upstream still sees ``NotFoundError`` or ``DuplicateError``.
"""

from __future__ import annotations

from objectstore.core.conditions import Pagination, SearchCondition, SearchResult
from objectstore.core.protocols import Repository
from objectstore.core.resource import Resource, ResourceKey
from objectstore.resilience.circuit_breaker import CircuitBreaker, CircuitMetrics


class ResilientRepository:
    """Circuit-breaker gate in front of another repository.

    Each wrapper owns its breaker; breakers are never shared between
    wrapped repositories.
    """

    def __init__(self, repository: Repository, breaker: CircuitBreaker | None = None) -> None:
        self._repository = repository
        self.breaker = breaker if breaker is not None else CircuitBreaker()

    @property
    def inner(self) -> Repository:
        return self._repository

    async def create(self, resource: Resource) -> Resource:
        return await self.breaker.call_async(self._repository.create, resource)

    async def update(self, resource: Resource) -> Resource:
        return await self.breaker.call_async(self._repository.update, resource)

    async def delete(self, key: ResourceKey) -> bool:
        return await self.breaker.call_async(self._repository.delete, key)

    async def find_by_key(self, key: ResourceKey) -> Resource | None:
        return await self.breaker.call_async(self._repository.find_by_key, key)

    async def search(self, condition: SearchCondition, pagination: Pagination) -> SearchResult:
        return await self.breaker.call_async(self._repository.search, condition, pagination)

    async def exists(self, condition: SearchCondition) -> bool:
        return await self.breaker.call_async(self._repository.exists, condition)

    async def count(self, condition: SearchCondition) -> int:
        return await self.breaker.call_async(self._repository.count, condition)

    def get_metrics(self) -> CircuitMetrics:
        return self.breaker.get_metrics()

    def reset(self) -> None:
        self.breaker.reset()


__all__ = ["ResilientRepository"]
