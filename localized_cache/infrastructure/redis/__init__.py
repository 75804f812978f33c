"""
Redis Infrastructure

Redis-backed cache store with circuit breaker protection.
"""

from .cache_store import RedisCacheStore
from .circuit_breaker import CircuitBreakerConfig, CircuitState, StoreCircuitBreaker

__all__ = [
    "RedisCacheStore",
    "CircuitBreakerConfig",
    "CircuitState",
    "StoreCircuitBreaker",
]
