"""
Backend-agnostic search conditions, pagination and result envelopes.

A search condition is a recursive boolean tree.  Leaves compare one record
field against a value; groups combine children with ``AND`` or ``OR``.  The
same tree is evaluated natively by the in-memory backend (:func:`evaluate`)
and translated by the document and key-value backends into their own filter
languages, so the rules below are shared by all three.

Manifesto:
    - **One tree, three backends:** Callers never write backend filters
    - **Explicit edge rules:** Empty groups, missing fields and malformed
      ranges have documented answers instead of backend-dependent ones
    - **Degrade, don't throw:** A malformed ``BETWEEN`` matches everything

Architecture:
    ::

        SearchCondition
        ├── Condition(field, operator, value)         ← leaf
        └── ConditionGroup(logic, conditions=(...))   ← branch (AND / OR)

        evaluate(condition, record) → bool            ← in-memory path
        backends/mongodb.build_filter(condition)      ← document filter
        backends/dynamodb.build_filter(condition)     ← boto3 Attr expression

Evaluation rules:
    - ``AND`` with no children is true, ``OR`` with no children is false.
    - A field missing from the record fails every operator except ``!=``
      and ``NOT IN``, which match it (absence is "not equal" to anything).
    - ``LIKE``/``NOT LIKE`` are case-insensitive substring tests on strings;
      non-string values never match either operator.
    - ``IN``/``NOT IN`` given a scalar treat it as a one-element set.
    - ``BETWEEN`` is inclusive; a value that is not a two-element sequence
      imposes no constraint (match-all).
    - Comparing incomparable types (``"a" > 1``) is non-matching.
    - Field names may be dotted paths into nested maps (``meta.author``).

Sort rules:
    - Missing and null values order lowest, so they lead ascending results
      and trail descending ones, as MongoDB orders them natively.

Examples:
    >>> condition = all_of(
    ...     where("type", "=", "doc"),
    ...     any_of(where("title", "LIKE", "guide"), where("pages", ">", 10)),
    ... )
    >>> evaluate(condition, {"type": "doc", "title": "User Guide"})
    True
    >>> evaluate(ConditionGroup(Logic.OR), {})
    False

Tags:
    search, query, conditions, pagination, objectstore

Doc-Types:
    - API Reference
    - Query Semantics
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Union

from objectstore.core.errors import ValidationError
from objectstore.core.resource import Resource, lookup

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20


class Operator(str, Enum):
    """Leaf comparison operators, valued by their wire symbols."""

    EQUALS = "="
    NOT_EQUALS = "!="
    GREATER_THAN = ">"
    GREATER_THAN_OR_EQUAL = ">="
    LESS_THAN = "<"
    LESS_THAN_OR_EQUAL = "<="
    LIKE = "LIKE"
    NOT_LIKE = "NOT LIKE"
    IN = "IN"
    NOT_IN = "NOT IN"
    BETWEEN = "BETWEEN"

    @classmethod
    def parse(cls, value: Operator | str) -> Operator:
        """Accept symbols (``">="``, ``"NOT LIKE"``) or names (``"not_like"``)."""
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        try:
            return cls(text.upper())
        except ValueError:
            pass
        name = text.upper().replace(" ", "_")
        if name in cls.__members__:
            return cls.__members__[name]
        raise ValidationError(f"Unsupported search operator: {value!r}")


class Logic(str, Enum):
    """Logical operator of a condition group."""

    AND = "AND"
    OR = "OR"

    @classmethod
    def parse(cls, value: Logic | str) -> Logic:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValidationError(f"Unsupported logical operator: {value!r}") from None


class SortDirection(str, Enum):
    """Sort direction for search results."""

    ASC = "ASC"
    DESC = "DESC"


@dataclass(frozen=True)
class Condition:
    """Leaf: compare ``field`` against ``value`` with ``operator``."""

    field: str
    operator: Operator
    value: Any = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "operator", Operator.parse(self.operator))

    def to_dict(self) -> dict[str, Any]:
        value = list(self.value) if isinstance(self.value, tuple) else self.value
        return {"field": self.field, "operator": self.operator.value, "value": value}


@dataclass(frozen=True)
class ConditionGroup:
    """Branch: combine child conditions with ``AND`` or ``OR``."""

    logic: Logic = Logic.AND
    conditions: tuple[SearchCondition, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "logic", Logic.parse(self.logic))
        object.__setattr__(self, "conditions", tuple(self.conditions))

    def to_dict(self) -> dict[str, Any]:
        return {"logic": self.logic.value, "conditions": [c.to_dict() for c in self.conditions]}


SearchCondition = Union[Condition, ConditionGroup]


def where(field: str, operator: Operator | str, value: Any = None) -> Condition:
    """Shorthand for :class:`Condition`."""
    return Condition(field, Operator.parse(operator), value)


def all_of(*conditions: SearchCondition) -> ConditionGroup:
    return ConditionGroup(Logic.AND, conditions)


def any_of(*conditions: SearchCondition) -> ConditionGroup:
    return ConditionGroup(Logic.OR, conditions)


# ------------------------------------------------------------------ #
# Value helpers shared by evaluation and translation
# ------------------------------------------------------------------ #


def set_values(value: Any) -> list[Any]:
    """Members of an ``IN``/``NOT IN`` value; a scalar is a one-element set."""
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


def between_bounds(value: Any) -> tuple[Any, Any] | None:
    """``(low, high)`` for a well-formed ``BETWEEN`` value, else None."""
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)) and len(value) == 2:
        return value[0], value[1]
    return None


def pinned_value(condition: SearchCondition, field_name: str) -> tuple[bool, Any]:
    """Find an equality on *field_name* that every match must satisfy.

    Only leaves reachable through ``AND`` groups (or single-child groups)
    pin a value; anything under a real ``OR`` does not.
    """
    if isinstance(condition, Condition):
        if condition.field == field_name and condition.operator is Operator.EQUALS:
            return True, condition.value
        return False, None
    if condition.logic is Logic.OR and len(condition.conditions) != 1:
        return False, None
    for child in condition.conditions:
        found, value = pinned_value(child, field_name)
        if found:
            return True, value
    return False, None


# ------------------------------------------------------------------ #
# In-memory evaluation
# ------------------------------------------------------------------ #


def evaluate(condition: SearchCondition, record: Mapping[str, Any]) -> bool:
    """Evaluate *condition* against a flat record mapping."""
    if isinstance(condition, ConditionGroup):
        if condition.logic is Logic.AND:
            return all(evaluate(child, record) for child in condition.conditions)
        return any(evaluate(child, record) for child in condition.conditions)
    return _evaluate_leaf(condition, record)


def _evaluate_leaf(condition: Condition, record: Mapping[str, Any]) -> bool:
    op = condition.operator
    expected = condition.value

    if op is Operator.BETWEEN and between_bounds(expected) is None:
        return True

    found, actual = lookup(record, condition.field)
    if not found:
        return op in (Operator.NOT_EQUALS, Operator.NOT_IN)

    try:
        if op is Operator.EQUALS:
            return actual == expected
        if op is Operator.NOT_EQUALS:
            return actual != expected
        if op is Operator.GREATER_THAN:
            return actual > expected
        if op is Operator.GREATER_THAN_OR_EQUAL:
            return actual >= expected
        if op is Operator.LESS_THAN:
            return actual < expected
        if op is Operator.LESS_THAN_OR_EQUAL:
            return actual <= expected
        if op is Operator.LIKE:
            return _contains(actual, expected)
        if op is Operator.NOT_LIKE:
            return isinstance(actual, str) and isinstance(expected, str) and not _contains(actual, expected)
        if op is Operator.IN:
            return actual in set_values(expected)
        if op is Operator.NOT_IN:
            return actual not in set_values(expected)
        if op is Operator.BETWEEN:
            low, high = between_bounds(expected)  # type: ignore[misc]
            return low <= actual <= high
    except TypeError:
        return False
    return False


def _contains(actual: Any, expected: Any) -> bool:
    if not isinstance(actual, str) or not isinstance(expected, str):
        return False
    return expected.lower() in actual.lower()


# ------------------------------------------------------------------ #
# Parsing
# ------------------------------------------------------------------ #


def parse_condition(data: Any) -> SearchCondition:
    """Build a condition tree from its JSON form.

    Groups are ``{"logic": "AND", "conditions": [...]}``; leaves are
    ``{"field": "title", "operator": "LIKE", "value": "guide"}`` (``key`` is
    accepted for ``field``).

    Raises:
        ValidationError: On unknown operators or malformed nodes.
    """
    if isinstance(data, (Condition, ConditionGroup)):
        return data
    if not isinstance(data, Mapping):
        raise ValidationError(f"Search condition must be an object, got {type(data).__name__}")

    if "conditions" in data:
        children = data["conditions"]
        if not isinstance(children, Sequence) or isinstance(children, (str, bytes)):
            raise ValidationError("Search condition 'conditions' must be a list")
        return ConditionGroup(
            Logic.parse(data.get("logic", Logic.AND)),
            tuple(parse_condition(child) for child in children),
        )

    field_name = data.get("field", data.get("key"))
    if not isinstance(field_name, str) or not field_name:
        raise ValidationError("Search condition leaf requires a non-empty 'field'")
    if "operator" not in data:
        raise ValidationError(f"Search condition on {field_name!r} requires an 'operator'")
    return Condition(field_name, Operator.parse(data["operator"]), data.get("value"))


# ------------------------------------------------------------------ #
# Pagination and sorting
# ------------------------------------------------------------------ #


@dataclass
class Pagination:
    """Page selection and ordering for a search.

    ``page`` and ``limit`` stay ``None`` when the caller omitted them; the
    service layer fills in defaults and never rewrites explicit values.
    """

    page: int | None = None
    limit: int | None = None
    sort_by: str | None = None
    sort_direction: SortDirection = SortDirection.ASC

    def __post_init__(self) -> None:
        if not isinstance(self.sort_direction, SortDirection):
            try:
                self.sort_direction = SortDirection(str(self.sort_direction).upper())
            except ValueError:
                raise ValidationError(f"Unsupported sort direction: {self.sort_direction!r}") from None

    def with_defaults(self) -> Pagination:
        return Pagination(
            page=DEFAULT_PAGE if self.page is None else self.page,
            limit=DEFAULT_LIMIT if self.limit is None else self.limit,
            sort_by=self.sort_by,
            sort_direction=self.sort_direction,
        )

    @property
    def descending(self) -> bool:
        return self.sort_direction is SortDirection.DESC

    @property
    def offset(self) -> int:
        resolved = self.with_defaults()
        return (resolved.page - 1) * resolved.limit  # type: ignore[operator]


@dataclass
class SearchResult:
    """One page of matches plus the total match count before pagination.

    ``truncated`` is True when a backend could not see every candidate
    (a scan stopped at its page cap), in which case ``total`` is a lower bound.
    """

    results: list[Resource] = field(default_factory=list)
    total: int = 0
    truncated: bool = False


def sort_key(value: Any) -> tuple:
    """Total order over mixed values: null < numbers < strings < dates < other."""
    if value is None:
        return (0, 0, 0)
    if isinstance(value, (bool, int, float, Decimal)):
        return (1, 0, value)
    if isinstance(value, str):
        return (1, 1, value)
    if isinstance(value, (datetime, date)):
        return (1, 2, value.isoformat())
    return (1, 3, repr(value))


def sort_resources(resources: list[Resource], sort_by: str | None, descending: bool = False) -> list[Resource]:
    """Stable sort by a field path; missing and null values order lowest."""
    if not sort_by:
        return list(resources)

    def key(resource: Resource) -> tuple:
        found, value = resource.resolve(sort_by)
        return sort_key(value if found else None)

    return sorted(resources, key=key, reverse=descending)


def paginate(items: list[Any], pagination: Pagination) -> list[Any]:
    """Slice ``[(page-1)*limit : page*limit]`` out of *items*."""
    resolved = pagination.with_defaults()
    start = (resolved.page - 1) * resolved.limit  # type: ignore[operator]
    return items[start : start + resolved.limit]  # type: ignore[operator]


__all__ = [
    "DEFAULT_LIMIT",
    "DEFAULT_PAGE",
    "Condition",
    "ConditionGroup",
    "Logic",
    "Operator",
    "Pagination",
    "SearchCondition",
    "SearchResult",
    "SortDirection",
    "all_of",
    "any_of",
    "between_bounds",
    "evaluate",
    "paginate",
    "parse_condition",
    "pinned_value",
    "set_values",
    "sort_key",
    "sort_resources",
    "where",
]
