"""Core primitives: resources, search conditions, errors, settings and logging.

Architecture::

    resource.py     Resource, ResourceKey, record form and dotted lookups
    conditions.py   Condition tree, evaluation, parsing, sort + pagination
    protocols.py    Repository protocol shared by adapters and wrappers
    errors.py       ObjectStoreError hierarchy with HTTP status hints
    settings.py     ObjectStoreSettings (pydantic-settings, OBJECTSTORE_*)
    logging.py      structlog configuration and get_logger()

Tags:
    objectstore, core, primitives

Doc-Types:
    package-overview, module-index
"""

from .conditions import (
    Condition,
    ConditionGroup,
    Logic,
    Operator,
    Pagination,
    SearchCondition,
    SearchResult,
    SortDirection,
    evaluate,
    parse_condition,
)
from .errors import ErrorCategory, ObjectStoreError, status_code_for
from .protocols import Repository
from .resource import Resource, ResourceKey

__all__ = [
    "Condition",
    "ConditionGroup",
    "ErrorCategory",
    "Logic",
    "ObjectStoreError",
    "Operator",
    "Pagination",
    "Repository",
    "Resource",
    "ResourceKey",
    "SearchCondition",
    "SearchResult",
    "SortDirection",
    "evaluate",
    "parse_condition",
    "status_code_for",
]
