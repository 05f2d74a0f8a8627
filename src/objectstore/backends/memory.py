"""
In-memory repository backend.

Single-process store for development and tests.  Records are kept as flat
mappings keyed by their :class:`ResourceKey`; searches
evaluate the condition tree against every record, then sort, then slice.

Example:
    repo = InMemoryRepository()
    await repo.create(Resource("t1", "doc", "d1", 1, {"title": "A"}))
    page = await repo.search(where("type", "=", "doc"), Pagination(page=1, limit=10))
"""

from __future__ import annotations

from typing import Any

from objectstore.core.conditions import (
    Pagination,
    SearchCondition,
    SearchResult,
    evaluate,
    paginate,
    sort_resources,
)
from objectstore.core.errors import DuplicateError, NotFoundError
from objectstore.core.logging import get_logger
from objectstore.core.resource import Resource, ResourceKey

logger = get_logger(__name__)


class InMemoryRepository:
    """Dictionary-backed repository.

    Records are copied on the way in and out, so callers mutating a returned
    resource never alter stored state.
    """

    def __init__(self) -> None:
        self._records: dict[ResourceKey, dict[str, Any]] = {}

    def __len__(self) -> int:
        return len(self._records)

    async def create(self, resource: Resource) -> Resource:
        key = resource.key
        if key in self._records:
            raise DuplicateError(f"Object with key {key} already exists").with_context(
                tenant=resource.tenant,
                resource_type=resource.type,
                resource_id=resource.id,
                backend="memory",
            )
        self._records[key] = resource.to_record()
        return Resource.from_record(self._records[key])

    async def update(self, resource: Resource) -> Resource:
        key = resource.key
        if key not in self._records:
            raise NotFoundError(f"Object with key {key} not found").with_context(
                tenant=resource.tenant,
                resource_type=resource.type,
                resource_id=resource.id,
                backend="memory",
            )
        self._records[key] = resource.to_record()
        return Resource.from_record(self._records[key])

    async def delete(self, key: ResourceKey) -> bool:
        return self._records.pop(key, None) is not None

    async def find_by_key(self, key: ResourceKey) -> Resource | None:
        record = self._records.get(key)
        return Resource.from_record(record) if record is not None else None

    async def search(self, condition: SearchCondition, pagination: Pagination) -> SearchResult:
        matches = [Resource.from_record(record) for record in self._matching(condition)]
        total = len(matches)
        ordered = sort_resources(matches, pagination.sort_by, pagination.descending)
        return SearchResult(results=paginate(ordered, pagination), total=total)

    async def exists(self, condition: SearchCondition) -> bool:
        return any(True for _ in self._matching(condition))

    async def count(self, condition: SearchCondition) -> int:
        return sum(1 for _ in self._matching(condition))

    def clear(self) -> None:
        """Drop every record."""
        self._records.clear()
        logger.debug("memory_store_cleared")

    def _matching(self, condition: SearchCondition):
        # Insertion order keeps the later sort stable and deterministic
        for record in self._records.values():
            if evaluate(condition, record):
                yield record


__all__ = ["InMemoryRepository"]
