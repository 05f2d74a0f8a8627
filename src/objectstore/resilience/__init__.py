"""Fault tolerance for repository calls."""

from .circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitMetrics, CircuitState
from .repository import ResilientRepository

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitMetrics",
    "CircuitState",
    "ResilientRepository",
]
