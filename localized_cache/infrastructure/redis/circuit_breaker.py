"""
Cache Store Circuit Breaker

Stops calling the cache store after repeated failures so an outage
costs one fast rejection per operation instead of a connect timeout.
"""

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ...core.exceptions import CircuitOpenError

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject calls
    HALF_OPEN = "half_open"  # Probing for recovery


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker."""

    failure_threshold: int = 5
    recovery_timeout: float = 30.0
    success_threshold: int = 1
    operation_timeout: float = 5.0
    failure_exceptions: tuple = (
        RedisConnectionError,
        RedisTimeoutError,
        asyncio.TimeoutError,
        OSError,
    )


@dataclass
class CircuitBreakerMetrics:
    """Counters for monitoring."""

    total_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0
    circuit_opens: int = 0


class StoreCircuitBreaker:
    """
    Circuit breaker guarding cache store operations.

    Failures listed in the config count toward opening the circuit;
    other exceptions pass through without affecting state.
    """

    def __init__(
        self,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or CircuitBreakerConfig()
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.opened_at: Optional[float] = None
        self.metrics = CircuitBreakerMetrics()
        self._clock = clock
        self._lock = asyncio.Lock()

    async def call(self, operation: str, func: Callable[..., Any], *args, **kwargs):
        """
        Run one store operation under breaker protection.

        Args:
            operation: Operation name for logs
            func: Callable returning a value or awaitable

        Raises:
            CircuitOpenError: If the circuit is open
            Exception: Original exception from the call
        """
        async with self._lock:
            self.metrics.total_calls += 1
            if self.state is CircuitState.OPEN:
                if self._recovery_elapsed():
                    self.state = CircuitState.HALF_OPEN
                    logger.info(
                        "Circuit breaker transitioning to HALF_OPEN",
                        extra={"operation": operation},
                    )
                else:
                    self.metrics.rejected_calls += 1
                    raise CircuitOpenError(operation)

        try:
            result = await asyncio.wait_for(
                self._invoke(func, *args, **kwargs),
                timeout=self.config.operation_timeout,
            )
        except self.config.failure_exceptions as e:
            await self._record_failure(operation, e)
            raise

        await self._record_success()
        return result

    @staticmethod
    async def _invoke(func: Callable[..., Any], *args, **kwargs) -> Any:
        result = func(*args, **kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result

    def _recovery_elapsed(self) -> bool:
        if self.opened_at is None:
            return True
        return self._clock() - self.opened_at >= self.config.recovery_timeout

    async def _record_success(self) -> None:
        async with self._lock:
            if self.state is CircuitState.HALF_OPEN:
                self.success_count += 1
                if self.success_count >= self.config.success_threshold:
                    self.state = CircuitState.CLOSED
                    self.failure_count = 0
                    self.success_count = 0
                    self.opened_at = None
                    logger.info("Circuit breaker closed after successful recovery")
            elif self.failure_count > 0:
                self.failure_count -= 1

    async def _record_failure(self, operation: str, error: BaseException) -> None:
        async with self._lock:
            self.metrics.failed_calls += 1

            if self.state is CircuitState.HALF_OPEN:
                self._open()
                logger.warning(
                    "Circuit breaker reopened after failed trial call",
                    extra={"operation": operation, "error_type": type(error).__name__},
                )
                return

            self.failure_count += 1
            if (
                self.state is CircuitState.CLOSED
                and self.failure_count >= self.config.failure_threshold
            ):
                self._open()
                logger.warning(
                    "Circuit breaker opened due to failure threshold",
                    extra={
                        "operation": operation,
                        "failure_count": self.failure_count,
                        "threshold": self.config.failure_threshold,
                    },
                )

    def _open(self) -> None:
        self.state = CircuitState.OPEN
        self.success_count = 0
        self.opened_at = self._clock()
        self.metrics.circuit_opens += 1

    def get_status(self) -> Dict[str, Any]:
        """Current breaker status for health checks."""
        return {
            "state": self.state.value,
            "failure_count": self.failure_count,
            "metrics": {
                "total_calls": self.metrics.total_calls,
                "failed_calls": self.metrics.failed_calls,
                "rejected_calls": self.metrics.rejected_calls,
                "circuit_opens": self.metrics.circuit_opens,
            },
        }

    async def reset(self) -> None:
        """Manually reset circuit breaker to closed state."""
        async with self._lock:
            self.state = CircuitState.CLOSED
            self.failure_count = 0
            self.success_count = 0
            self.opened_at = None
            logger.info("Circuit breaker manually reset to CLOSED state")
