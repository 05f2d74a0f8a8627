"""Use-case operations over a repository."""

from .objects import ObjectService, validate_resource

__all__ = ["ObjectService", "validate_resource"]
