"""
Typed Results

Result/option values returned at layer boundaries so that "never fail
the caller" is explicit in signatures instead of implied by swallowed
exceptions.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, Tuple, TypeVar
from uuid import UUID

T = TypeVar("T")


class CacheOutcome(str, Enum):
    """Outcome of a cache store operation."""

    HIT = "hit"
    MISS = "miss"
    OK = "ok"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class CacheRead(Generic[T]):
    """Result of a cache read."""

    outcome: CacheOutcome
    value: Optional[T] = None

    @property
    def hit(self) -> bool:
        return self.outcome is CacheOutcome.HIT

    @classmethod
    def found(cls, value: T) -> "CacheRead[T]":
        return cls(CacheOutcome.HIT, value)

    @classmethod
    def miss(cls) -> "CacheRead[T]":
        return cls(CacheOutcome.MISS)

    @classmethod
    def unavailable(cls) -> "CacheRead[T]":
        return cls(CacheOutcome.UNAVAILABLE)


@dataclass(frozen=True)
class CacheWrite:
    """Result of a cache mutation; affected counts deleted/pushed entries."""

    outcome: CacheOutcome
    affected: int = 0

    @property
    def ok(self) -> bool:
        return self.outcome is CacheOutcome.OK

    @classmethod
    def done(cls, affected: int = 0) -> "CacheWrite":
        return cls(CacheOutcome.OK, affected)

    @classmethod
    def unavailable(cls) -> "CacheWrite":
        return cls(CacheOutcome.UNAVAILABLE)


@dataclass(frozen=True)
class FieldTranslation:
    """Translated text, or the original text when translation degraded."""

    value: str
    degraded: bool = False


@dataclass(frozen=True)
class Materialized:
    """
    A localized view plus a record of what degraded.

    Attributes:
        view: The localized (or pass-through) view
        degraded_fields: Dotted paths whose translation fell back to source text
        provider_available: False when the provider was absent for the whole view
    """

    view: Dict[str, Any]
    degraded_fields: Tuple[str, ...] = ()
    provider_available: bool = True

    @property
    def degraded(self) -> bool:
        return bool(self.degraded_fields) or not self.provider_available


@dataclass(frozen=True)
class InvalidationReport:
    """Summary of one invalidation pass."""

    keys: Tuple[str, ...] = ()
    patterns: Tuple[str, ...] = ()
    deleted: int = 0
    failed_operations: int = 0

    @property
    def complete(self) -> bool:
        return self.failed_operations == 0


@dataclass(frozen=True)
class WriteResult:
    """Response of a committed write."""

    view: Optional[Dict[str, Any]]
    entity_id: Any
    scheduled_task_id: Optional[UUID] = None
    invalidation: InvalidationReport = field(default_factory=InvalidationReport)


@dataclass(frozen=True)
class Page:
    """One page of canonical records from the entity repository."""

    items: List[Dict[str, Any]]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return (self.total + self.limit - 1) // self.limit

    def pagination(self) -> Dict[str, Any]:
        """Pagination metadata attached to filtered list views."""
        return {
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "totalPages": self.total_pages,
            "hasNextPage": self.page < self.total_pages,
            "hasPrevPage": self.page > 1,
        }
