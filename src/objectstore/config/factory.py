"""
Repository composition: configuration in, ready-to-use repository out.

Manifesto:
    Composition is a construction-time decision.  The backend adapter is
    always built first; when a circuit-breaker configuration is present the
    adapter is wrapped before it is handed out.  Callers get an explicit
    :class:`ComposedRepository` holding the repository and (optionally) its
    breaker, so nobody has to probe a repository for metrics support.

    Driver packages (``pymongo``, ``boto3``) are imported lazily, only when
    the corresponding backend is selected.

Features:
    - ``RepositoryConfig`` — backend kind plus connection parameters
    - ``create_repository()`` — one repository from a config
    - ``RepositoryComposer`` — per-tenant repositories with owned clients

Examples:
    >>> composed = create_repository(RepositoryConfig(backend="memory"))
    >>> composed.get_metrics() is None
    True

    >>> config = RepositoryConfig(backend="memory", circuit_breaker=CircuitBreakerConfig())
    >>> create_repository(config).get_metrics().state
    <CircuitState.CLOSED: 'closed'>

Tags:
    objectstore, configuration, factory-pattern, lazy-imports,
    pymongo, boto3, circuit-breaker

Doc-Types:
    api-reference
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from objectstore.config.components import BackendKind
from objectstore.core.errors import InvalidConfigError
from objectstore.core.logging import get_logger
from objectstore.core.protocols import Repository
from objectstore.resilience.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitMetrics
from objectstore.resilience.repository import ResilientRepository

if TYPE_CHECKING:
    from objectstore.core.settings import ObjectStoreSettings

logger = get_logger(__name__)


@dataclass
class RepositoryConfig:
    """Backend selection plus backend-specific connection parameters.

    Attributes:
        backend: memory | mongodb | dynamodb (validated at composition time)
        mongodb_uri: Document-store connection string
        database_prefix: Prefix of per-tenant database names
        table_name: Key-value table name
        region: Key-value store region
        endpoint_url: Key-value endpoint override
        max_scan_pages: Cap on scan pages per key-value search
        circuit_breaker: Wrap the adapter in a breaker when set
    """

    backend: BackendKind | str = BackendKind.MEMORY
    mongodb_uri: str = "mongodb://localhost:27017"
    database_prefix: str = "objects_"
    table_name: str = "Objects"
    region: str = "us-east-1"
    endpoint_url: str | None = None
    max_scan_pages: int = 100
    circuit_breaker: CircuitBreakerConfig | None = None

    @classmethod
    def from_settings(cls, settings: ObjectStoreSettings) -> RepositoryConfig:
        breaker = None
        if settings.circuit_breaker_enabled:
            breaker = CircuitBreakerConfig(
                failure_threshold=settings.circuit_failure_threshold,
                reset_timeout=settings.circuit_reset_timeout,
            )
        return cls(
            backend=settings.backend,
            mongodb_uri=settings.mongodb_uri,
            database_prefix=settings.mongodb_database_prefix,
            table_name=settings.dynamodb_table,
            region=settings.dynamodb_region,
            endpoint_url=settings.dynamodb_endpoint,
            max_scan_pages=settings.dynamodb_max_scan_pages,
            circuit_breaker=breaker,
        )

    def backend_kind(self) -> BackendKind:
        """Resolve :attr:`backend`.

        Raises:
            InvalidConfigError: If the kind is not supported
        """
        try:
            return BackendKind.parse(self.backend)
        except ValueError:
            raise InvalidConfigError(
                f"Unsupported backend kind: {self.backend}", key="backend", value=self.backend
            ) from None

    def table_name_for(self, tenant: str | None) -> str:
        return f"{self.table_name}_{tenant}" if tenant else self.table_name


@dataclass
class ComposedRepository:
    """A repository and, when configured, the breaker guarding it."""

    repository: Repository
    circuit_breaker: CircuitBreaker | None = None

    @property
    def adapter(self) -> Repository:
        """The backend adapter, unwrapped."""
        if isinstance(self.repository, ResilientRepository):
            return self.repository.inner
        return self.repository

    def get_metrics(self) -> CircuitMetrics | None:
        if self.circuit_breaker is None:
            return None
        return self.circuit_breaker.get_metrics()

    def reset(self) -> None:
        if self.circuit_breaker is not None:
            self.circuit_breaker.reset()


# ── Clients ──────────────────────────────────────────────────────────────


def create_client(config: RepositoryConfig) -> Any:
    """Create the backend client a repository will use (``None`` for memory)."""
    match config.backend_kind():
        case BackendKind.MEMORY:
            return None
        case BackendKind.MONGODB:
            from pymongo import AsyncMongoClient

            return AsyncMongoClient(config.mongodb_uri)
        case BackendKind.DYNAMODB:
            import boto3

            return boto3.resource("dynamodb", region_name=config.region, endpoint_url=config.endpoint_url)


async def close_client(kind: BackendKind, client: Any) -> None:
    match kind:
        case BackendKind.MONGODB:
            await client.close()
        case BackendKind.DYNAMODB:
            client.meta.client.close()


# ── Composition ──────────────────────────────────────────────────────────


def create_repository(
    config: RepositoryConfig,
    *,
    client: Any = None,
    tenant: str | None = None,
) -> ComposedRepository:
    """Build the adapter named by *config*, wrapping it in a breaker if configured.

    Args:
        config: Backend kind and connection parameters
        client: Pre-built backend client (``AsyncMongoClient`` or boto3
            DynamoDB service resource); created from *config* when omitted
        tenant: Compose a tenant-scoped repository (own table on DynamoDB)

    Raises:
        InvalidConfigError: If the backend kind is not supported
    """
    kind = config.backend_kind()

    adapter: Repository
    match kind:
        case BackendKind.MEMORY:
            from objectstore.backends.memory import InMemoryRepository

            adapter = InMemoryRepository()
        case BackendKind.MONGODB:
            from objectstore.backends.mongodb import MongoRepository

            adapter = MongoRepository(
                client if client is not None else create_client(config),
                database_prefix=config.database_prefix,
            )
        case BackendKind.DYNAMODB:
            from objectstore.backends.dynamodb import DynamoRepository

            resource = client if client is not None else create_client(config)
            adapter = DynamoRepository(
                resource.Table(config.table_name_for(tenant)),
                max_scan_pages=config.max_scan_pages,
            )

    breaker = None
    repository: Repository = adapter
    if config.circuit_breaker is not None:
        name = f"{kind.value}:{tenant}" if tenant else kind.value
        breaker = CircuitBreaker(config.circuit_breaker, name=name)
        repository = ResilientRepository(adapter, breaker)

    logger.info(
        "repository_created",
        backend=kind.value,
        tenant=tenant,
        circuit_breaker=breaker is not None,
    )
    return ComposedRepository(repository=repository, circuit_breaker=breaker)


class RepositoryComposer:
    """Owns backend clients and one composed repository per tenant.

    ``None`` is the shared (non tenant-scoped) deployment.  Each tenant key
    gets its own client, and on the key-value store its own table
    ``"<table>_<tenant>"``; in memory each tenant gets an isolated store.
    """

    def __init__(self, config: RepositoryConfig) -> None:
        self.config = config
        self.kind = config.backend_kind()
        self._clients: dict[str | None, Any] = {}
        self._repositories: dict[str | None, ComposedRepository] = {}

    def client_for(self, tenant: str | None = None) -> Any:
        if tenant not in self._clients:
            self._clients[tenant] = create_client(self.config)
        return self._clients[tenant]

    def repository_for(self, tenant: str | None = None) -> ComposedRepository:
        if tenant not in self._repositories:
            self._repositories[tenant] = create_repository(
                self.config, client=self.client_for(tenant), tenant=tenant
            )
        return self._repositories[tenant]

    @property
    def tenants(self) -> list[str | None]:
        return list(self._repositories)

    async def close(self) -> None:
        """Release every owned client and forget cached repositories."""
        for tenant, client in self._clients.items():
            if client is not None:
                await close_client(self.kind, client)
                logger.debug("repository_client_closed", backend=self.kind.value, tenant=tenant)
        self._clients.clear()
        self._repositories.clear()


__all__ = [
    "ComposedRepository",
    "RepositoryComposer",
    "RepositoryConfig",
    "close_client",
    "create_client",
    "create_repository",
]
