"""
Redis Cache Store

redis-py asyncio implementation of the CacheStore port. Connection
pooling and circuit breaker protection follow the connection factory
pattern; every failure is converted into an UNAVAILABLE result so that
a Redis outage degrades callers to "always miss".
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from opentelemetry import trace

from ...constants import SCAN_BATCH_SIZE
from ...core.config import Settings
from ...core.exceptions import CacheUnavailableError
from ...domain.localization.ports import CacheStore
from ...domain.localization.results import CacheRead, CacheWrite
from .circuit_breaker import CircuitBreakerConfig, StoreCircuitBreaker

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class RedisCacheStore(CacheStore):
    """
    Cache store backed by Redis.

    Construct with a Settings instance (a pool is built on initialize())
    or with an existing client, which the store then does not own.
    """

    def __init__(
        self,
        settings: Settings,
        client: Optional[Redis] = None,
        breaker: Optional[StoreCircuitBreaker] = None,
    ):
        self.settings = settings
        self.key_prefix = settings.REDIS_KEY_PREFIX
        self._client = client
        self._owns_client = client is None
        self._pool: Optional[ConnectionPool] = None
        self._breaker = breaker or StoreCircuitBreaker(
            CircuitBreakerConfig(
                failure_threshold=settings.CIRCUIT_BREAKER_FAILURE_THRESHOLD,
                recovery_timeout=float(settings.CIRCUIT_BREAKER_RECOVERY_TIMEOUT),
                operation_timeout=settings.REDIS_OPERATION_TIMEOUT,
            )
        )
        self._lock = asyncio.Lock()

    @property
    def circuit_breaker(self) -> StoreCircuitBreaker:
        return self._breaker

    async def initialize(self) -> None:
        """Create the connection pool and ping the server.

        An unreachable server is logged, not raised: the store starts
        degraded and the circuit breaker governs recovery.
        """
        async with self._lock:
            if self._client is None:
                parsed_url = urlparse(self.settings.REDIS_URL)
                db_path = (parsed_url.path or "").lstrip("/")
                connection_kwargs = {
                    "host": parsed_url.hostname or "localhost",
                    "port": parsed_url.port or 6379,
                    "db": int(db_path) if db_path.isdigit() else 0,
                    "username": parsed_url.username,
                    "password": parsed_url.password,
                    "encoding": "utf-8",
                    "decode_responses": True,
                    "socket_connect_timeout": self.settings.REDIS_CONNECTION_TIMEOUT,
                    "socket_timeout": self.settings.REDIS_OPERATION_TIMEOUT,
                    "retry_on_timeout": True,
                    "max_connections": self.settings.REDIS_MAX_CONNECTIONS,
                }
                self._pool = ConnectionPool(**connection_kwargs)
                self._client = Redis(connection_pool=self._pool)
                logger.info(
                    "Redis cache store pool created",
                    extra={
                        "host": connection_kwargs["host"],
                        "port": connection_kwargs["port"],
                        "max_connections": connection_kwargs["max_connections"],
                    },
                )

        if not await self.ping():
            logger.error("Redis cache store unreachable at startup; running degraded")

    async def close(self) -> None:
        """Close the client and pool if the store created them."""
        async with self._lock:
            if self._client is not None and self._owns_client:
                await self._client.aclose()
                if self._pool is not None:
                    await self._pool.disconnect()
                self._client = None
                self._pool = None
                logger.info("Redis cache store closed")

    async def __aenter__(self) -> "RedisCacheStore":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def _require_client(self, operation: str, key: Optional[str]) -> Redis:
        if self._client is None:
            raise CacheUnavailableError(
                operation, key=key, message="Cache store is not initialized"
            )
        return self._client

    async def _guarded(self, operation: str, key: Optional[str], func, *args, **kwargs):
        """Run a callable through the breaker.

        Raises:
            CacheUnavailableError: For any store failure
        """
        try:
            return await self._breaker.call(operation, func, *args, **kwargs)
        except CacheUnavailableError:
            raise
        except (RedisError, asyncio.TimeoutError, OSError) as e:
            raise CacheUnavailableError(operation, key=key, original_error=e)

    async def _run(self, operation: str, key: Optional[str], *args, **kwargs):
        """Execute one client command (named by operation) through the breaker."""
        client = self._require_client(operation, key)
        return await self._guarded(
            operation, key, getattr(client, operation), *args, **kwargs
        )

    def _log_unavailable(self, error: CacheUnavailableError) -> None:
        logger.error(
            f"Cache store operation failed: {error.message}",
            extra={"error_code": error.error_code, **error.details},
        )

    async def get(self, key: str) -> CacheRead[str]:
        try:
            value = await self._run("get", key, self._key(key))
        except CacheUnavailableError as e:
            self._log_unavailable(e)
            return CacheRead.unavailable()
        if value is None:
            return CacheRead.miss()
        return CacheRead.found(value)

    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> CacheWrite:
        try:
            if ttl_seconds > 0:
                await self._run("setex", key, self._key(key), ttl_seconds, value)
            else:
                await self._run("set", key, self._key(key), value)
        except CacheUnavailableError as e:
            self._log_unavailable(e)
            return CacheWrite.unavailable()
        return CacheWrite.done(1)

    async def delete(self, *keys: str) -> CacheWrite:
        if not keys:
            return CacheWrite.done(0)
        try:
            deleted = await self._run("delete", keys[0], *[self._key(k) for k in keys])
        except CacheUnavailableError as e:
            self._log_unavailable(e)
            return CacheWrite.unavailable()
        return CacheWrite.done(int(deleted or 0))

    async def delete_pattern(self, pattern: str) -> CacheWrite:
        """Cursor SCAN + UNLINK; never KEYS."""
        with tracer.start_as_current_span("cache_store.delete_pattern") as span:
            span.set_attribute("pattern", pattern)
            deleted = 0
            cursor = 0
            try:
                while True:
                    cursor, batch = await self._run(
                        "scan",
                        pattern,
                        cursor=cursor,
                        match=self._key(pattern),
                        count=SCAN_BATCH_SIZE,
                    )
                    if batch:
                        deleted += int(
                            await self._run("unlink", pattern, *batch)
                            or 0
                        )
                    if int(cursor) == 0:
                        break
            except CacheUnavailableError as e:
                self._log_unavailable(e)
                span.set_attribute("deleted", deleted)
                return CacheWrite.unavailable()

            span.set_attribute("deleted", deleted)
            return CacheWrite.done(deleted)

    async def list_push(
        self, key: str, value: str, only_if_exists: bool = False
    ) -> CacheWrite:
        command = "lpushx" if only_if_exists else "lpush"
        try:
            length = await self._run(command, key, self._key(key), value)
        except CacheUnavailableError as e:
            self._log_unavailable(e)
            return CacheWrite.unavailable()
        return CacheWrite.done(int(length or 0))

    async def list_replace(
        self, key: str, values: List[str], ttl_seconds: int
    ) -> CacheWrite:
        """DEL + RPUSH + EXPIRE in one MULTI/EXEC transaction."""
        full_key = self._key(key)

        async def replace(client: Redis):
            # Use pipeline for atomic replacement
            pipe = client.pipeline(transaction=True)
            pipe.delete(full_key)
            if values:
                pipe.rpush(full_key, *values)
                if ttl_seconds > 0:
                    pipe.expire(full_key, ttl_seconds)
            return await pipe.execute()

        try:
            client = self._require_client("list_replace", key)
            await self._guarded("list_replace", key, replace, client)
        except CacheUnavailableError as e:
            self._log_unavailable(e)
            return CacheWrite.unavailable()
        return CacheWrite.done(len(values))

    async def list_trim(self, key: str, start: int, stop: int) -> CacheWrite:
        try:
            await self._run("ltrim", key, self._key(key), start, stop)
        except CacheUnavailableError as e:
            self._log_unavailable(e)
            return CacheWrite.unavailable()
        return CacheWrite.done()

    async def list_range(self, key: str, start: int, stop: int) -> CacheRead[List[str]]:
        try:
            values = await self._run("lrange", key, self._key(key), start, stop)
        except CacheUnavailableError as e:
            self._log_unavailable(e)
            return CacheRead.unavailable()
        if not values:
            return CacheRead.miss()
        return CacheRead.found(list(values))

    async def expire(self, key: str, ttl_seconds: int) -> CacheWrite:
        try:
            if ttl_seconds > 0:
                applied = await self._run("expire", key, self._key(key), ttl_seconds)
            else:
                applied = await self._run("persist", key, self._key(key))
        except CacheUnavailableError as e:
            self._log_unavailable(e)
            return CacheWrite.unavailable()
        return CacheWrite.done(1 if applied else 0)

    async def ping(self) -> bool:
        try:
            return bool(await self._run("ping", None))
        except CacheUnavailableError as e:
            self._log_unavailable(e)
            return False

    async def health_check(self) -> Dict[str, Any]:
        """Status dict with latency and breaker state."""
        start_time = time.time()
        healthy = await self.ping()
        return {
            "status": "healthy" if healthy else "unhealthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "circuit_breaker": self._breaker.get_status(),
        }
