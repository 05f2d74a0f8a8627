"""
Object operations.

The use-case layer in front of any :class:`~objectstore.core.protocols.Repository`.
It owns the versioned lifecycle: identity validation, create-always-version-1,
optimistic concurrency on update, and silent delete of missing identities.
Adapters never enforce any of these rules themselves.

Lifecycle:
    ::

        create_object(r)  ── exists? ──► DuplicateError ("use PUT")
                          └─ absent  ──► repository.create(r @ version 1)

        update_object(r)  ── absent? ──► NotFoundError
                          ├─ r.version != current + 1 ──► VersionConflictError
                          └─ ok ──► repository.update(r)   (wholesale replace)

        delete_object(k)  ── absent? ──► False
                          └─ present ──► repository.delete(k)

Concurrency:
    Create and update are check-then-write and not atomic.  Two updates that
    read the same pre-image can both pass the version check; the second
    write wins silently.  This matches the storage protocol as deployed and
    is covered by a test.

Example:
    >>> service = ObjectService(InMemoryRepository())
    >>> created = await service.create_object({"tenant": "t1", "type": "doc", "id": "d1", "version": 7})
    >>> created.version
    1
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from objectstore.core.conditions import Pagination, SearchCondition, SearchResult, parse_condition
from objectstore.core.errors import DuplicateError, NotFoundError, ValidationError, VersionConflictError
from objectstore.core.logging import get_logger
from objectstore.core.protocols import Repository
from objectstore.core.resource import ID, KEY_SEPARATOR, TENANT, TYPE, VERSION, Resource, ResourceKey

logger = get_logger(__name__)


# ------------------------------------------------------------------ #
# Validation
# ------------------------------------------------------------------ #


def validate_resource(data: Resource | Mapping[str, Any]) -> Resource:
    """Check identity and version, returning the input as a :class:`Resource`.

    Raises:
        ValidationError: If tenant/type/id is not a non-empty string free
            of ``#``, or the version is missing, non-numeric or negative.
    """
    if isinstance(data, Resource):
        resource = data
    elif isinstance(data, Mapping):
        if VERSION not in data:
            raise ValidationError("version is required and must be a number >= 0")
        resource = Resource.from_record(data)
    else:
        raise ValidationError(f"Object must be a mapping, got {type(data).__name__}")

    for name in (TENANT, TYPE, ID):
        value = getattr(resource, name)
        if not isinstance(value, str) or not value:
            raise ValidationError(f"{name} is required and must be a non-empty string")
        if KEY_SEPARATOR in value:
            raise ValidationError(f"{name} must not contain '{KEY_SEPARATOR}'")

    version = resource.version
    if isinstance(version, bool) or not isinstance(version, (int, float)) or version < 0:
        raise ValidationError("version is required and must be a number >= 0").with_context(
            tenant=resource.tenant, resource_type=resource.type, resource_id=resource.id
        )
    return resource


# ------------------------------------------------------------------ #
# Service
# ------------------------------------------------------------------ #


class ObjectService:
    """Stateless facade over a repository.

    Args:
        repository: Any backend adapter, optionally circuit-breaker wrapped
    """

    def __init__(self, repository: Repository) -> None:
        self.repository = repository

    async def create_object(self, data: Resource | Mapping[str, Any]) -> Resource:
        """Create a resource at version 1.

        The supplied version is validated but never stored.

        Raises:
            ValidationError: Malformed identity or version
            DuplicateError: The identity already exists
        """
        supplied = validate_resource(data)
        resource = supplied.with_version(1)

        existing = await self.repository.find_by_key(resource.key)
        if existing is not None:
            message = (
                f"Object with key {resource.key.serialize()} already exists. "
                "To update existing objects, use PUT instead of POST."
            )
            if supplied.version > 1:
                message += (
                    f" Current version is {existing.version}, "
                    f"use version {existing.version + 1} for updates."
                )
            logger.info("object_create_rejected", key=resource.key.serialize(), current_version=existing.version)
            raise DuplicateError(message).with_context(
                tenant=resource.tenant, resource_type=resource.type, resource_id=resource.id, operation="create"
            )

        created = await self.repository.create(resource)
        logger.info("object_created", tenant=resource.tenant, type=resource.type, id=resource.id)
        return created

    async def update_object(self, data: Resource | Mapping[str, Any]) -> Resource:
        """Replace a resource wholesale, requiring version ``current + 1``.

        Raises:
            ValidationError: Malformed identity or version
            NotFoundError: The identity does not exist
            VersionConflictError: The version is not exactly ``current + 1``
        """
        resource = validate_resource(data)

        existing = await self.repository.find_by_key(resource.key)
        if existing is None:
            raise NotFoundError(f"Object with key {resource.key.serialize()} not found").with_context(
                tenant=resource.tenant, resource_type=resource.type, resource_id=resource.id, operation="update"
            )

        expected = existing.version + 1
        if resource.version != expected:
            logger.info(
                "object_version_conflict",
                key=resource.key.serialize(),
                expected=expected,
                received=resource.version,
            )
            raise VersionConflictError(expected, resource.version).with_context(
                tenant=resource.tenant, resource_type=resource.type, resource_id=resource.id, operation="update"
            )

        updated = await self.repository.update(resource)
        logger.info("object_updated", tenant=resource.tenant, type=resource.type, id=resource.id, version=resource.version)
        return updated

    async def delete_object(self, key: ResourceKey) -> bool:
        """Delete an identity; ``False`` (not an error) when it does not exist."""
        if await self.repository.find_by_key(key) is None:
            return False
        deleted = await self.repository.delete(key)
        logger.info("object_deleted", key=key.serialize(), deleted=deleted)
        return deleted

    async def get_object(self, key: ResourceKey) -> Resource | None:
        return await self.repository.find_by_key(key)

    async def search_objects(
        self,
        condition: SearchCondition | Mapping[str, Any],
        pagination: Pagination | None = None,
    ) -> SearchResult:
        """Search with defaults (page 1, limit 20) filled in only where omitted.

        Explicit values, zero and negative included, are passed through.
        """
        resolved = (pagination or Pagination()).with_defaults()
        result = await self.repository.search(parse_condition(condition), resolved)
        logger.debug(
            "objects_searched",
            page=resolved.page,
            limit=resolved.limit,
            total=result.total,
            truncated=result.truncated,
        )
        return result

    async def object_exists(self, condition: SearchCondition | Mapping[str, Any]) -> bool:
        return await self.repository.exists(parse_condition(condition))

    async def count_objects(self, condition: SearchCondition | Mapping[str, Any]) -> int:
        return await self.repository.count(parse_condition(condition))


__all__ = ["ObjectService", "validate_resource"]
