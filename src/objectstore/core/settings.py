"""
Centralized settings for the object store.

One validated settings object resolves backend selection, connection
parameters, circuit-breaker tuning and logging from ``OBJECTSTORE_*``
environment variables (or a ``.env`` file).

Examples:
    >>> import os
    >>> os.environ["OBJECTSTORE_BACKEND"] = "dynamodb"
    >>> settings = ObjectStoreSettings()
    >>> settings.backend
    'dynamodb'

Tags:
    settings, configuration, pydantic, environment, objectstore

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ObjectStoreSettings(BaseSettings):
    """Object store configuration.

    ``backend`` is kept as a plain string so that an unsupported kind reaches
    the repository composer, which rejects it with a message naming the kind.

    Fields
    ──────
    backend                  : memory | mongodb | dynamodb
    mongodb_uri              : Connection string for the document store
    mongodb_database_prefix  : Prefix of per-tenant database names
    dynamodb_table           : Table holding every record
    dynamodb_region          : AWS region of the table
    dynamodb_endpoint        : Endpoint override (DynamoDB Local, LocalStack)
    dynamodb_max_scan_pages  : Cap on scan pages followed per search
    circuit_breaker_enabled  : Wrap the repository in a circuit breaker
    circuit_failure_threshold: Consecutive failures that open the circuit
    circuit_reset_timeout    : Seconds an open circuit waits before a trial
    log_level / log_format   : structlog configuration
    """

    model_config = SettingsConfigDict(
        env_prefix="OBJECTSTORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Backend ──────────────────────────────────────────────────
    backend: str = Field(default="memory")

    # ── MongoDB ──────────────────────────────────────────────────
    mongodb_uri: str = Field(default="mongodb://localhost:27017")
    mongodb_database_prefix: str = Field(default="objects_")

    # ── DynamoDB ─────────────────────────────────────────────────
    dynamodb_table: str = Field(default="Objects")
    dynamodb_region: str = Field(default="us-east-1")
    dynamodb_endpoint: str | None = Field(default=None)
    dynamodb_max_scan_pages: int = Field(default=100, ge=1)

    # ── Circuit breaker ──────────────────────────────────────────
    circuit_breaker_enabled: bool = Field(default=False)
    circuit_failure_threshold: int = Field(default=5, ge=1)
    circuit_reset_timeout: float = Field(default=60.0, gt=0)

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json", description="json or console")

    def configure_logging(self) -> None:
        """Apply ``log_level`` and ``log_format`` to the structlog setup."""
        from objectstore.core.logging import configure_logging

        configure_logging(level=self.log_level, json_format=self.log_format.lower() == "json")


__all__ = ["ObjectStoreSettings"]
