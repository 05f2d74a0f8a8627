"""Versioned, tenant-scoped resource records.

A :class:`Resource` has four fixed identity members and an open map of
caller-defined fields.  Backends and the condition evaluator work on the
flat *record* form produced by :meth:`Resource.to_record`, where the identity
members sit next to the open fields under the names ``tenant``, ``type``,
``id`` and ``version``.

Identity is ``(tenant, type, id)``.  The version is a revision counter that
starts at 1; only the latest revision of an identity is ever stored.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

TENANT = "tenant"
TYPE = "type"
ID = "id"
VERSION = "version"

IDENTITY_FIELDS = (TENANT, TYPE, ID, VERSION)

# Joins identity members in storage keys; never valid inside one
KEY_SEPARATOR = "#"

# Names used by the JSON wire format of earlier clients
_WIRE_ALIASES = {
    "tenantId": TENANT,
    "tenant_id": TENANT,
    "resourceType": TYPE,
    "resource_type": TYPE,
    "resourceId": ID,
    "resource_id": ID,
}


@dataclass(frozen=True)
class ResourceKey:
    """Identity triple used for lookups, deletes and existence checks."""

    tenant: str
    type: str
    id: str

    def serialize(self, separator: str = KEY_SEPARATOR) -> str:
        """``tenant#type#id`` form used as a storage key."""
        return separator.join((self.tenant, self.type, self.id))

    def __str__(self) -> str:
        return self.serialize()


@dataclass
class Resource:
    """A stored object: identity members plus arbitrary extra fields.

    Attributes:
        tenant: Tenant identifier
        type: Resource type
        id: Resource id, unique within ``(tenant, type)``
        version: Revision counter (1 for a freshly created resource)
        fields: Caller-defined values of any JSON-like shape
    """

    tenant: str
    type: str
    id: str
    version: int = 1
    fields: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> ResourceKey:
        return ResourceKey(self.tenant, self.type, self.id)

    def get(self, name: str, default: Any = None) -> Any:
        """Look up an identity member or an open field by name."""
        if name in IDENTITY_FIELDS:
            return getattr(self, name)
        return self.fields.get(name, default)

    def resolve(self, path: str) -> tuple[bool, Any]:
        """Resolve an identity member or a dotted path into ``fields``."""
        if path in IDENTITY_FIELDS:
            return True, getattr(self, path)
        return lookup(self.fields, path)

    def with_version(self, version: int) -> Resource:
        """Copy of this resource carrying *version*."""
        return Resource(self.tenant, self.type, self.id, version, copy.deepcopy(self.fields))

    def to_record(self) -> dict[str, Any]:
        """Flat mapping with identity members overriding same-named fields."""
        record = copy.deepcopy(self.fields)
        record.update({TENANT: self.tenant, TYPE: self.type, ID: self.id, VERSION: self.version})
        return record

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Resource:
        """Build a resource from a flat mapping.

        Accepts the canonical names as well as the ``tenantId`` /
        ``resourceType`` / ``resourceId`` wire names.  Values are taken as-is;
        validation belongs to the service layer.
        """
        fields: dict[str, Any] = {}
        identity: dict[str, Any] = {}
        for name, value in record.items():
            canonical = _WIRE_ALIASES.get(name, name)
            if canonical in IDENTITY_FIELDS:
                identity[canonical] = value
            else:
                fields[name] = copy.deepcopy(value)
        return cls(
            tenant=identity.get(TENANT),  # type: ignore[arg-type]
            type=identity.get(TYPE),  # type: ignore[arg-type]
            id=identity.get(ID),  # type: ignore[arg-type]
            version=identity.get(VERSION, 1),
            fields=fields,
        )


def lookup(record: Mapping[str, Any], path: str) -> tuple[bool, Any]:
    """Resolve a dotted *path* inside *record*.

    Returns ``(found, value)``; ``found`` is False when any segment is
    missing or a non-mapping is traversed.
    """
    if path in record:
        return True, record[path]
    current: Any = record
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return False, None
        current = current[part]
    return True, current


__all__ = [
    "IDENTITY_FIELDS",
    "KEY_SEPARATOR",
    "Resource",
    "ResourceKey",
    "lookup",
]
