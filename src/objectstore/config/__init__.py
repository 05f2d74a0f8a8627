"""Backend selection and repository composition.

Quick start::

    from objectstore.config import RepositoryConfig, create_repository
    from objectstore.core.settings import ObjectStoreSettings

    composed = create_repository(RepositoryConfig.from_settings(ObjectStoreSettings()))
    composed.repository        # adapter, circuit-breaker wrapped if enabled
    composed.get_metrics()     # None without a breaker

Architecture::

    components.py   BackendKind enum
    factory.py      RepositoryConfig, create_repository, RepositoryComposer

Guardrails:
    ❌ Constructing MongoDB/DynamoDB clients inside adapters
    ✅ Let the composer own clients and inject them
    ❌ Probing a repository for ``get_metrics``
    ✅ ``ComposedRepository.circuit_breaker`` is explicit
"""

from .components import BackendKind
from .factory import ComposedRepository, RepositoryComposer, RepositoryConfig, create_repository

__all__ = [
    "BackendKind",
    "ComposedRepository",
    "RepositoryComposer",
    "RepositoryConfig",
    "create_repository",
]
