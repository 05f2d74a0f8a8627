"""
Structured error types for the object store.

Every failure the store can report is a typed exception carrying enough
metadata for the outer HTTP layer to map it to a status code, for the
resilience layer to decide whether it is worth retrying, and for logs to
explain what happened.

Manifesto:
    - **Typed Error Hierarchy:** One class per lifecycle failure
    - **Identity preserved:** Wrappers re-raise, they never mask the type
    - **Rich Context:** Errors carry tenant/type/id metadata for logging
    - **Error Chaining:** Driver exceptions stay reachable through ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                     ObjectStoreError                             │
        │   (category, retryable, retry_after, context, cause)             │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  ValidationError     DuplicateError      NotFoundError           │
        │  (VALIDATION, 400)   (CONFLICT, 400)     (NOT_FOUND, 404)        │
        │                                                                  │
        │  VersionConflictError                    CircuitOpenError        │
        │  (CONFLICT, 409)                         (AVAILABILITY, 503)     │
        │                                                                  │
        │  BackendError        ConfigError                                 │
        │  (BACKEND, 500)      (CONFIG, 500)                               │
        │                           │                                      │
        │                      InvalidConfigError                          │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = VersionConflictError(expected=3, received=2)
    >>> error.message
    'Version mismatch. Expected 3, got 2'
    >>> error.status_code
    409

    >>> error = NotFoundError("missing").with_context(tenant="t1", resource_id="d1")
    >>> error.context.tenant
    't1'

Guardrails:
    ❌ DON'T: Raise bare ``Exception`` from adapters or the service layer
    ✅ DO: Pick the subclass whose status code matches the failure

    ❌ DON'T: Swallow the driver exception when wrapping it
    ✅ DO: Pass it as ``cause=`` so ``__cause__`` is set

Tags:
    error-handling, exception-hierarchy, http-mapping, objectstore

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    VALIDATION = "VALIDATION"       # Missing/malformed identity or version
    CONFLICT = "CONFLICT"           # Duplicate identity, stale version
    NOT_FOUND = "NOT_FOUND"         # Identity lookup miss
    AVAILABILITY = "AVAILABILITY"   # Circuit open, backend shed load
    BACKEND = "BACKEND"             # Storage client failure
    CONFIG = "CONFIG"               # Unsupported backend, bad settings
    INTERNAL = "INTERNAL"           # Bugs, unexpected state
    UNKNOWN = "UNKNOWN"             # Uncategorized errors


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only fields that are set end up in :meth:`to_dict`, so the same context
    class serves create/update failures (identity known) and search failures
    (only a tenant or backend known).

    Attributes:
        tenant: Tenant identifier of the affected resource
        resource_type: Resource type of the affected resource
        resource_id: Resource id of the affected resource
        operation: Repository or service operation name
        backend: Backend kind that raised
        metadata: Additional key-value pairs
    """

    tenant: str | None = None
    resource_type: str | None = None
    resource_id: str | None = None
    operation: str | None = None
    backend: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["tenant", "resource_type", "resource_id", "operation", "backend"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class ObjectStoreError(Exception):
    """
    Base exception for all object store errors.

    Subclasses set ``default_category``, ``default_retryable`` and
    ``status_code`` so callers rarely need to pass them explicitly.

    Attributes:
        message: Human-readable message
        category: :class:`ErrorCategory` for classification
        retryable: Whether the same call may succeed later
        retry_after: Optional seconds to wait before retrying
        context: :class:`ErrorContext` with structured metadata
        cause: Underlying exception, also set as ``__cause__``
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False
    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        retry_after: int | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.retry_after = retry_after
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> ObjectStoreError:
        """
        Add context to this error (fluent API).

        Usage:
            raise NotFoundError("gone").with_context(tenant="t1", resource_id="d1")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
            "status_code": self.status_code,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# LIFECYCLE ERRORS
# =============================================================================


class ValidationError(ObjectStoreError):
    """Missing or malformed identity field, version, or search condition."""

    default_category = ErrorCategory.VALIDATION
    status_code = 400


class DuplicateError(ObjectStoreError):
    """Create attempted against an identity that already exists."""

    default_category = ErrorCategory.CONFLICT
    status_code = 400


class NotFoundError(ObjectStoreError):
    """Update (or another identity-dependent call) found nothing to act on."""

    default_category = ErrorCategory.NOT_FOUND
    status_code = 404


class VersionConflictError(ObjectStoreError):
    """Update supplied a version other than ``current + 1``."""

    default_category = ErrorCategory.CONFLICT
    status_code = 409

    def __init__(self, expected: int, received: Any, **kwargs: Any):
        super().__init__(f"Version mismatch. Expected {expected}, got {received}", **kwargs)
        self.expected = expected
        self.received = received


# =============================================================================
# INFRASTRUCTURE ERRORS
# =============================================================================


class CircuitOpenError(ObjectStoreError):
    """Raised when a circuit breaker rejects a call without invoking it."""

    default_category = ErrorCategory.AVAILABILITY
    default_retryable = True
    status_code = 503

    def __init__(self, message: str = "Circuit breaker is open", *, state: Any = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.state = state


class BackendError(ObjectStoreError):
    """Failure reported by the underlying storage client.

    The driver exception is kept as ``cause`` so callers can still inspect
    the original error code.
    """

    default_category = ErrorCategory.BACKEND
    default_retryable = True
    status_code = 500


class ConfigError(ObjectStoreError):
    """Configuration is missing or invalid."""

    default_category = ErrorCategory.CONFIG
    status_code = 500


class InvalidConfigError(ConfigError):
    """Configuration names something this build cannot construct."""

    def __init__(self, message: str, key: str | None = None, value: Any = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.key = key
        self.value = value
        if key is not None:
            self.context.metadata["config_key"] = key


# =============================================================================
# UTILITIES
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, ObjectStoreError):
        return error.retryable
    return isinstance(error, (ConnectionError, TimeoutError))


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, ObjectStoreError):
        return error.category
    if isinstance(error, (ConnectionError, TimeoutError)):
        return ErrorCategory.BACKEND
    if isinstance(error, ValueError):
        return ErrorCategory.VALIDATION
    return ErrorCategory.UNKNOWN


def status_code_for(error: Exception) -> int:
    """HTTP status an outer transport should answer with for *error*."""
    if isinstance(error, ObjectStoreError):
        return error.status_code
    return 500


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "ObjectStoreError",
    # Lifecycle
    "ValidationError",
    "DuplicateError",
    "NotFoundError",
    "VersionConflictError",
    # Infrastructure
    "CircuitOpenError",
    "BackendError",
    "ConfigError",
    "InvalidConfigError",
    # Utilities
    "is_retryable",
    "categorize_error",
    "status_code_for",
]
