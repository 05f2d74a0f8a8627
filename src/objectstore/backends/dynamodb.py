"""
Key-value repository backend (DynamoDB).

Layout:
    ::

        one table
        ├── pk  (HASH)   tenant
        └── sk  (RANGE)  "<type>#<id>#<version>"

Identity lookups query the tenant partition with ``begins_with(sk,
"<type>#<id>#")``.  Exactly one item per identity is kept: an update writes
the new-version item and deletes the previous one.

Searches cannot use an index for arbitrary predicate trees, so the condition
is translated to a boto3 ``Attr`` filter expression and applied server-side
to a partition query (tenant pinned) or a full table scan.  Sorting and
pagination then happen client-side.

Known limitation:
    DynamoDB evaluates filters per scanned page.  The adapter follows
    ``LastEvaluatedKey`` for at most ``max_scan_pages`` pages; when the cap
    is hit the result is flagged ``truncated=True``, ``total`` becomes a lower
    bound, and a ``dynamodb_scan_truncated`` warning is logged.  ``LIKE`` maps
    to DynamoDB ``contains`` and is therefore case-sensitive here.

boto3 is synchronous; every call runs in a worker thread via
:func:`asyncio.to_thread`.

Tags:
    dynamodb, key-value, repository, boto3, objectstore
"""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Any, Callable

from boto3.dynamodb.conditions import Attr, ConditionBase, Key
from botocore.exceptions import BotoCoreError, ClientError

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
from objectstore.core.resource import TENANT, Resource, ResourceKey

logger = get_logger(__name__)

PARTITION_KEY = "pk"
SORT_KEY = "sk"

# Every item carries a partition key, so this never matches
MATCH_NOTHING = Attr(PARTITION_KEY).not_exists()


def sort_key_for(resource_type: str, resource_id: str, version: int) -> str:
    return f"{resource_type}#{resource_id}#{version}"


# ------------------------------------------------------------------ #
# Condition translation
# ------------------------------------------------------------------ #


def build_filter(condition: SearchCondition) -> ConditionBase | None:
    """Translate a condition tree into a boto3 filter expression.

    ``None`` means "no constraint" and is how match-all subtrees (empty
    ``AND``, malformed ``BETWEEN``) are expressed.
    """
    if isinstance(condition, ConditionGroup):
        clauses = [build_filter(child) for child in condition.conditions]
        if condition.logic is Logic.AND:
            constraints = [clause for clause in clauses if clause is not None]
            return _combine(constraints, lambda a, b: a & b)
        if not clauses:
            return MATCH_NOTHING
        if any(clause is None for clause in clauses):
            return None
        return _combine(clauses, lambda a, b: a | b)  # type: ignore[arg-type]
    return _leaf_filter(condition)


def _combine(clauses: list[ConditionBase], join: Callable) -> ConditionBase | None:
    if not clauses:
        return None
    combined = clauses[0]
    for clause in clauses[1:]:
        combined = join(combined, clause)
    return combined


def _leaf_filter(condition: Condition) -> ConditionBase | None:
    attr = Attr(condition.field)
    op = condition.operator
    value = to_dynamo(condition.value)

    if op is Operator.EQUALS:
        return attr.eq(value)
    if op is Operator.NOT_EQUALS:
        return attr.not_exists() | attr.ne(value)
    if op is Operator.GREATER_THAN:
        return attr.gt(value)
    if op is Operator.GREATER_THAN_OR_EQUAL:
        return attr.gte(value)
    if op is Operator.LESS_THAN:
        return attr.lt(value)
    if op is Operator.LESS_THAN_OR_EQUAL:
        return attr.lte(value)
    if op is Operator.LIKE:
        if not isinstance(value, str):
            return MATCH_NOTHING
        return attr.attribute_type("S") & attr.contains(value)
    if op is Operator.NOT_LIKE:
        if not isinstance(value, str):
            return MATCH_NOTHING
        return attr.attribute_type("S") & ~attr.contains(value)
    if op is Operator.IN:
        members = set_values(value)
        return attr.is_in(members) if members else MATCH_NOTHING
    if op is Operator.NOT_IN:
        members = set_values(value)
        return attr.not_exists() | ~attr.is_in(members) if members else None

    bounds = between_bounds(value)
    if bounds is None:
        return None
    return attr.between(bounds[0], bounds[1])


# ------------------------------------------------------------------ #
# Value conversion
# ------------------------------------------------------------------ #


def to_dynamo(value: Any) -> Any:
    """Convert floats to ``Decimal`` (boto3 rejects floats), recursively."""
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {name: to_dynamo(item) for name, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_dynamo(item) for item in value]
    return value


def from_dynamo(value: Any) -> Any:
    """Convert ``Decimal`` back to ``int``/``float``, recursively."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {name: from_dynamo(item) for name, item in value.items()}
    if isinstance(value, (list, set, frozenset)):
        return [from_dynamo(item) for item in value]
    return value


# ------------------------------------------------------------------ #
# Repository
# ------------------------------------------------------------------ #


class DynamoRepository:
    """Repository over a single DynamoDB table.

    Args:
        table: ``boto3`` Table resource (or a compatible test double)
        max_scan_pages: Maximum pages followed per scan/query
    """

    def __init__(self, table: Any, *, max_scan_pages: int = 100) -> None:
        self._table = table
        self.max_scan_pages = max_scan_pages

    @property
    def table_name(self) -> str:
        return self._table.name

    # -- Table management ------------------------------------------------

    async def ensure_table(self) -> None:
        """Create the table (pk/sk, on-demand billing) if it does not exist."""
        client = self._table.meta.client
        try:
            await self._call("describe_table", client.describe_table, TableName=self.table_name)
            return
        except BackendError as exc:
            if _error_code(exc.cause) != "ResourceNotFoundException":
                raise

        await self._call(
            "create_table",
            client.create_table,
            TableName=self.table_name,
            KeySchema=[
                {"AttributeName": PARTITION_KEY, "KeyType": "HASH"},
                {"AttributeName": SORT_KEY, "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": PARTITION_KEY, "AttributeType": "S"},
                {"AttributeName": SORT_KEY, "AttributeType": "S"},
            ],
            BillingMode="PAY_PER_REQUEST",
        )
        waiter = client.get_waiter("table_exists")
        await self._call("wait_table", waiter.wait, TableName=self.table_name)
        logger.info("dynamodb_table_created", table=self.table_name)

    async def delete_table(self) -> None:
        """Delete the table, ignoring a table that is already gone."""
        try:
            await self._call("delete_table", self._table.delete)
        except BackendError as exc:
            if _error_code(exc.cause) != "ResourceNotFoundException":
                raise

    # -- CRUD ------------------------------------------------------------

    async def create(self, resource: Resource) -> Resource:
        if await self._identity_items(resource.key):
            raise DuplicateError(f"Object with key {resource.key} already exists").with_context(
                tenant=resource.tenant, resource_type=resource.type, resource_id=resource.id
            )
        try:
            await self._call(
                "create",
                self._table.put_item,
                Item=_to_item(resource),
                ConditionExpression=Attr(SORT_KEY).not_exists(),
            )
        except BackendError as exc:
            if _error_code(exc.cause) == "ConditionalCheckFailedException":
                raise DuplicateError(
                    f"Object with key {resource.key} already exists", cause=exc.cause
                ) from exc.cause
            raise
        return resource

    async def update(self, resource: Resource) -> Resource:
        previous = await self._identity_items(resource.key)
        if not previous:
            raise NotFoundError(f"Object with key {resource.key} not found").with_context(
                tenant=resource.tenant, resource_type=resource.type, resource_id=resource.id
            )
        item = _to_item(resource)
        await self._call("update", self._table.put_item, Item=item)
        for old in previous:
            if old[SORT_KEY] != item[SORT_KEY]:
                await self._call(
                    "update",
                    self._table.delete_item,
                    Key={PARTITION_KEY: old[PARTITION_KEY], SORT_KEY: old[SORT_KEY]},
                )
        return resource

    async def delete(self, key: ResourceKey) -> bool:
        items = await self._identity_items(key)
        for item in items:
            await self._call(
                "delete",
                self._table.delete_item,
                Key={PARTITION_KEY: item[PARTITION_KEY], SORT_KEY: item[SORT_KEY]},
            )
        return bool(items)

    async def find_by_key(self, key: ResourceKey) -> Resource | None:
        items = await self._identity_items(key)
        if not items:
            return None
        latest = max(items, key=lambda item: from_dynamo(item.get("version", 0)))
        return _from_item(latest)

    async def _identity_items(self, key: ResourceKey) -> list[dict[str, Any]]:
        """All items stored for *key* (normally zero or one)."""
        identity_prefix = f"{key.type}#{key.id}"
        items: list[dict[str, Any]] = []
        params: dict[str, Any] = {
            "KeyConditionExpression": Key(PARTITION_KEY).eq(key.tenant)
            & Key(SORT_KEY).begins_with(f"{identity_prefix}#"),
        }
        while True:
            page = await self._call("find_by_key", self._table.query, **params)
            # begins_with also matches ids that extend this one with "#..."
            items.extend(
                item for item in page.get("Items", []) if item[SORT_KEY].rsplit("#", 1)[0] == identity_prefix
            )
            if "LastEvaluatedKey" not in page:
                return items
            params["ExclusiveStartKey"] = page["LastEvaluatedKey"]

    # -- Queries ---------------------------------------------------------

    async def search(self, condition: SearchCondition, pagination: Pagination) -> SearchResult:
        items, _, truncated = await self._scan(condition, operation="search")
        resources = [_from_item(item) for item in items]
        ordered = sort_resources(resources, pagination.sort_by, pagination.descending)
        return SearchResult(results=paginate(ordered, pagination), total=len(resources), truncated=truncated)

    async def exists(self, condition: SearchCondition) -> bool:
        items, _, _ = await self._scan(condition, operation="exists", stop_at_first=True)
        return bool(items)

    async def count(self, condition: SearchCondition) -> int:
        _, count, _ = await self._scan(condition, operation="count", select_count=True)
        return count

    async def _scan(
        self,
        condition: SearchCondition,
        *,
        operation: str,
        select_count: bool = False,
        stop_at_first: bool = False,
    ) -> tuple[list[dict[str, Any]], int, bool]:
        """Run a filtered partition query or table scan across pages.

        Returns ``(items, count, truncated)``.
        """
        params: dict[str, Any] = {}
        expression = build_filter(condition)
        if expression is not None:
            params["FilterExpression"] = expression
        if select_count:
            params["Select"] = "COUNT"

        tenant_pinned, tenant = pinned_value(condition, TENANT)
        if tenant_pinned:
            params["KeyConditionExpression"] = Key(PARTITION_KEY).eq(tenant)
            fetch = self._table.query
        else:
            fetch = self._table.scan

        items: list[dict[str, Any]] = []
        count = 0
        for _ in range(self.max_scan_pages):
            page = await self._call(operation, fetch, **params)
            items.extend(page.get("Items", []))
            count += page.get("Count", 0)
            if stop_at_first and items:
                return items, count, False
            if "LastEvaluatedKey" not in page:
                return items, count, False
            params["ExclusiveStartKey"] = page["LastEvaluatedKey"]

        logger.warning(
            "dynamodb_scan_truncated",
            table=self.table_name,
            operation=operation,
            max_scan_pages=self.max_scan_pages,
            matched=count,
        )
        return items, count, True

    async def _call(self, operation: str, fn: Callable[..., Any], **kwargs: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, **kwargs)
        except (ClientError, BotoCoreError) as exc:
            logger.warning("dynamodb_operation_failed", operation=operation, error=str(exc))
            raise BackendError(f"DynamoDB {operation} failed: {exc}", cause=exc).with_context(
                operation=operation, backend="dynamodb"
            ) from exc


def _to_item(resource: Resource) -> dict[str, Any]:
    item = to_dynamo(resource.to_record())
    item[PARTITION_KEY] = resource.tenant
    item[SORT_KEY] = sort_key_for(resource.type, resource.id, resource.version)
    return item


def _from_item(item: dict[str, Any]) -> Resource:
    record = {name: value for name, value in item.items() if name not in (PARTITION_KEY, SORT_KEY)}
    return Resource.from_record(from_dynamo(record))


def _error_code(exc: Exception | None) -> str | None:
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code")
    return None


__all__ = [
    "MATCH_NOTHING",
    "DynamoRepository",
    "build_filter",
    "from_dynamo",
    "sort_key_for",
    "to_dynamo",
]
