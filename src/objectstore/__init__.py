"""
Objectstore - multi-tenant versioned object store.

Subpackages:
- objectstore.core: Resources, conditions, errors, settings, logging
- objectstore.backends: In-memory, MongoDB and DynamoDB adapters
- objectstore.resilience: Circuit breaker and the guarded repository
- objectstore.config: Backend kinds and repository composition
- objectstore.ops: The object lifecycle service
"""

__version__ = "0.1.0"

from objectstore.config.factory import (
    ComposedRepository,
    RepositoryComposer,
    RepositoryConfig,
    create_repository,
)
from objectstore.core.conditions import (
    Condition,
    ConditionGroup,
    Logic,
    Operator,
    Pagination,
    SearchResult,
    SortDirection,
    all_of,
    any_of,
    where,
)
from objectstore.core.errors import (
    BackendError,
    CircuitOpenError,
    DuplicateError,
    NotFoundError,
    ObjectStoreError,
    ValidationError,
    VersionConflictError,
)
from objectstore.core.resource import Resource, ResourceKey
from objectstore.ops.objects import ObjectService

__all__ = [
    "__version__",
    "BackendError",
    "CircuitOpenError",
    "ComposedRepository",
    "Condition",
    "ConditionGroup",
    "DuplicateError",
    "Logic",
    "NotFoundError",
    "ObjectService",
    "ObjectStoreError",
    "Operator",
    "Pagination",
    "RepositoryComposer",
    "RepositoryConfig",
    "Resource",
    "ResourceKey",
    "SearchResult",
    "SortDirection",
    "ValidationError",
    "VersionConflictError",
    "all_of",
    "any_of",
    "create_repository",
    "where",
]
