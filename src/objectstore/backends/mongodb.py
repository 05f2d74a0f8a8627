"""
Document-store repository backend (MongoDB).

Layout:
    ::

        tenant "acme"  ──►  database  "<prefix>acme"
        type   "doc"   ──►  collection "doc"
        identity       ──►  _id "acme#doc#d1"

Searches that pin a tenant and a resource type (top-level equality on
``tenant`` and ``type``) run as one native ``find`` with server-side sort,
skip and limit.  Anything else fans out: every matching database and
collection is counted and queried for its first ``page * limit`` documents,
the union is re-sorted and sliced client-side.  Fan-out costs one round trip
pair per collection; ``total`` is the sum of per-collection counts.

The client is injected (see :mod:`objectstore.config.factory`) and connected
lazily on first use; :meth:`MongoRepository.connect` is idempotent.

Requires the ``pymongo`` package (async API, 4.9+).

Tags:
    mongodb, document-store, repository, fan-out, objectstore
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from objectstore.core.conditions import (
    Condition,
    ConditionGroup,
    Logic,
    Operator,
    Pagination,
    SearchCondition,
    SearchResult,
    between_bounds,
    paginate,
    pinned_value,
    set_values,
    sort_resources,
)
from objectstore.core.errors import BackendError, DuplicateError, NotFoundError
from objectstore.core.logging import get_logger
from objectstore.core.resource import TENANT, TYPE, Resource, ResourceKey

logger = get_logger(__name__)

# Filter that no document satisfies (``$or: []`` is rejected by the server)
MATCH_NOTHING: dict[str, Any] = {"_id": {"$in": []}}


# ------------------------------------------------------------------ #
# Condition translation
# ------------------------------------------------------------------ #


def build_filter(condition: SearchCondition) -> dict[str, Any]:
    """Translate a condition tree into a MongoDB query document."""
    if isinstance(condition, ConditionGroup):
        if not condition.conditions:
            return {} if condition.logic is Logic.AND else dict(MATCH_NOTHING)
        clauses = [build_filter(child) for child in condition.conditions]
        return {"$and" if condition.logic is Logic.AND else "$or": clauses}
    return _leaf_filter(condition)


def _leaf_filter(condition: Condition) -> dict[str, Any]:
    name, op, value = condition.field, condition.operator, condition.value

    comparisons = {
        Operator.EQUALS: "$eq",
        Operator.NOT_EQUALS: "$ne",
        Operator.GREATER_THAN: "$gt",
        Operator.GREATER_THAN_OR_EQUAL: "$gte",
        Operator.LESS_THAN: "$lt",
        Operator.LESS_THAN_OR_EQUAL: "$lte",
    }
    if op in comparisons:
        return {name: {comparisons[op]: value}}

    if op in (Operator.LIKE, Operator.NOT_LIKE):
        if not isinstance(value, str):
            return dict(MATCH_NOTHING)
        pattern = re.escape(value)
        if op is Operator.LIKE:
            return {name: {"$regex": pattern, "$options": "i"}}
        # Only present string values can fail a substring test
        return {name: {"$type": "string", "$not": re.compile(pattern, re.IGNORECASE)}}

    if op is Operator.IN:
        return {name: {"$in": set_values(value)}}
    if op is Operator.NOT_IN:
        return {name: {"$nin": set_values(value)}}

    bounds = between_bounds(value)
    if bounds is None:
        return {}
    return {name: {"$gte": bounds[0], "$lte": bounds[1]}}


def build_sort(pagination: Pagination) -> list[tuple[str, int]]:
    """Sort specification; ``_id`` breaks ties so pages never overlap."""
    if not pagination.sort_by:
        return [("_id", ASCENDING)]
    direction = DESCENDING if pagination.descending else ASCENDING
    return [(pagination.sort_by, direction), ("_id", ASCENDING)]


# ------------------------------------------------------------------ #
# Repository
# ------------------------------------------------------------------ #


class MongoRepository:
    """Repository storing one collection per resource type per tenant database.

    Args:
        client: ``pymongo.AsyncMongoClient`` (or a compatible test double)
        database_prefix: Prepended to the tenant to form the database name
    """

    def __init__(self, client: Any, *, database_prefix: str = "objects_") -> None:
        self._client = client
        self.database_prefix = database_prefix
        self._connected = False

    # -- Connection ------------------------------------------------------

    async def connect(self) -> None:
        """Verify connectivity once; later calls are no-ops."""
        if self._connected:
            return
        with _backend_errors("connect"):
            await self._client.admin.command("ping")
        self._connected = True
        logger.info("mongodb_connected", database_prefix=self.database_prefix)

    async def close(self) -> None:
        await self._client.close()
        self._connected = False

    async def drop_collection(self, tenant: str, resource_type: str) -> None:
        """Drop one tenant's collection for *resource_type* (test cleanup)."""
        await self.connect()
        with _backend_errors("drop_collection"):
            await self._collection(tenant, resource_type).drop()

    def database_name(self, tenant: str) -> str:
        return f"{self.database_prefix}{tenant}"

    def _collection(self, tenant: str, resource_type: str) -> Any:
        return self._client[self.database_name(tenant)][resource_type]

    # -- CRUD ------------------------------------------------------------

    async def create(self, resource: Resource) -> Resource:
        await self.connect()
        document = _to_document(resource)
        try:
            await self._collection(resource.tenant, resource.type).insert_one(document)
        except DuplicateKeyError as exc:
            raise DuplicateError(f"Object with key {resource.key} already exists", cause=exc).with_context(
                tenant=resource.tenant, resource_type=resource.type, resource_id=resource.id
            ) from exc
        except PyMongoError as exc:
            raise _backend_error("create", exc) from exc
        return resource

    async def update(self, resource: Resource) -> Resource:
        await self.connect()
        document = _to_document(resource)
        with _backend_errors("update"):
            result = await self._collection(resource.tenant, resource.type).replace_one(
                {"_id": document["_id"]}, document
            )
        if result.matched_count == 0:
            raise NotFoundError(f"Object with key {resource.key} not found").with_context(
                tenant=resource.tenant, resource_type=resource.type, resource_id=resource.id
            )
        return resource

    async def delete(self, key: ResourceKey) -> bool:
        await self.connect()
        with _backend_errors("delete"):
            result = await self._collection(key.tenant, key.type).delete_one({"_id": key.serialize()})
        return result.deleted_count > 0

    async def find_by_key(self, key: ResourceKey) -> Resource | None:
        await self.connect()
        with _backend_errors("find_by_key"):
            document = await self._collection(key.tenant, key.type).find_one({"_id": key.serialize()})
        return _from_document(document) if document is not None else None

    # -- Queries ---------------------------------------------------------

    async def search(self, condition: SearchCondition, pagination: Pagination) -> SearchResult:
        await self.connect()
        query = build_filter(condition)
        resolved = pagination.with_defaults()
        collections = await self._target_collections(condition)
        windowed = resolved.page >= 1 and resolved.limit >= 1  # type: ignore[operator]

        if len(collections) == 1 and windowed:
            collection = collections[0]
            with _backend_errors("search"):
                total = await collection.count_documents(query)
                cursor = (
                    collection.find(query)
                    .sort(build_sort(resolved))
                    .skip(resolved.offset)
                    .limit(resolved.limit)
                )
                documents = await cursor.to_list(length=None)
            return SearchResult(results=[_from_document(doc) for doc in documents], total=total)

        # Fan-out: each collection contributes at most its first page*limit
        window = resolved.page * resolved.limit if windowed else 0  # type: ignore[operator]
        total = 0
        merged: list[Resource] = []
        with _backend_errors("search"):
            for collection in collections:
                total += await collection.count_documents(query)
                cursor = collection.find(query).sort(build_sort(resolved))
                if window:
                    cursor = cursor.limit(window)
                merged.extend(_from_document(doc) for doc in await cursor.to_list(length=None))

        logger.debug("mongodb_search_fanout", collections=len(collections), total=total)
        ordered = sort_resources(merged, resolved.sort_by, resolved.descending)
        return SearchResult(results=paginate(ordered, resolved), total=total)

    async def exists(self, condition: SearchCondition) -> bool:
        await self.connect()
        query = build_filter(condition)
        with _backend_errors("exists"):
            for collection in await self._target_collections(condition):
                if await collection.find_one(query, projection={"_id": 1}) is not None:
                    return True
        return False

    async def count(self, condition: SearchCondition) -> int:
        await self.connect()
        query = build_filter(condition)
        total = 0
        with _backend_errors("count"):
            for collection in await self._target_collections(condition):
                total += await collection.count_documents(query)
        return total

    async def _target_collections(self, condition: SearchCondition) -> list[Any]:
        """Collections that can hold matches, narrowed by pinned tenant/type."""
        tenant_pinned, tenant = pinned_value(condition, TENANT)
        type_pinned, resource_type = pinned_value(condition, TYPE)

        with _backend_errors("list_targets"):
            if tenant_pinned:
                database_names = [self.database_name(str(tenant))]
            else:
                database_names = [
                    name
                    for name in await self._client.list_database_names()
                    if name.startswith(self.database_prefix)
                ]

            collections = []
            for database_name in database_names:
                database = self._client[database_name]
                if type_pinned:
                    collections.append(database[str(resource_type)])
                    continue
                for collection_name in sorted(await database.list_collection_names()):
                    collections.append(database[collection_name])
        return collections


def _to_document(resource: Resource) -> dict[str, Any]:
    document = resource.to_record()
    document["_id"] = resource.key.serialize()
    return document


def _from_document(document: dict[str, Any]) -> Resource:
    record = {name: value for name, value in document.items() if name != "_id"}
    return Resource.from_record(record)


@contextmanager
def _backend_errors(operation: str) -> Iterator[None]:
    """Re-raise driver failures as :class:`BackendError`, keeping the cause."""
    try:
        yield
    except PyMongoError as exc:
        raise _backend_error(operation, exc) from exc


def _backend_error(operation: str, exc: Exception) -> BackendError:
    logger.warning("mongodb_operation_failed", operation=operation, error=str(exc))
    error = BackendError(f"MongoDB {operation} failed: {exc}", cause=exc)
    error.with_context(operation=operation, backend="mongodb")
    return error


__all__ = ["MATCH_NOTHING", "MongoRepository", "build_filter", "build_sort"]
