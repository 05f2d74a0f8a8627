"""
Repository contract shared by every backend and by the resilience wrapper.

Architecture:
    ::

        Repository (Protocol)
        ├── InMemoryRepository   — backends/memory.py
        ├── MongoRepository      — backends/mongodb.py
        ├── DynamoRepository     — backends/dynamodb.py
        └── ResilientRepository  — resilience/repository.py (wraps any of the above)

        create(resource)            → Resource        | DuplicateError
        update(resource)            → Resource        | NotFoundError
        delete(key)                 → bool
        find_by_key(key)            → Resource | None
        search(condition, page)     → SearchResult
        exists(condition)           → bool
        count(condition)            → int

Adapters are deliberately naive about versions: the service layer performs
every identity and version check before it calls them.

Tags:
    protocol, repository, contracts, objectstore
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from objectstore.core.conditions import Pagination, SearchCondition, SearchResult
from objectstore.core.resource import Resource, ResourceKey


@runtime_checkable
class Repository(Protocol):
    """Asynchronous CRUD + search over versioned resources."""

    async def create(self, resource: Resource) -> Resource:
        """Store a new resource; raise ``DuplicateError`` if its identity exists."""
        ...

    async def update(self, resource: Resource) -> Resource:
        """Replace the stored resource wholesale; raise ``NotFoundError`` if absent."""
        ...

    async def delete(self, key: ResourceKey) -> bool:
        """Remove the identity; ``False`` when nothing was stored."""
        ...

    async def find_by_key(self, key: ResourceKey) -> Resource | None:
        """Current revision of the identity, or ``None``."""
        ...

    async def search(self, condition: SearchCondition, pagination: Pagination) -> SearchResult:
        """Filter, sort and paginate; ``total`` counts matches before paging."""
        ...

    async def exists(self, condition: SearchCondition) -> bool:
        ...

    async def count(self, condition: SearchCondition) -> int:
        ...


__all__ = ["Repository"]
