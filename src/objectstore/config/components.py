"""
Backend enumeration for repository composition.

Example::

    from objectstore.config.components import BackendKind

    BackendKind("mongodb")  # BackendKind.MONGODB
"""

from __future__ import annotations

from enum import Enum


class BackendKind(str, Enum):
    """Supported storage backends."""

    MEMORY = "memory"
    MONGODB = "mongodb"
    DYNAMODB = "dynamodb"

    @classmethod
    def parse(cls, value: BackendKind | str) -> BackendKind:
        """Accept enum members, values, and the upper-case names used in env files."""
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        aliases = {"in_memory": cls.MEMORY, "inmemory": cls.MEMORY}
        lowered = text.lower()
        if lowered in aliases:
            return aliases[lowered]
        return cls(lowered)
