"""
Localization Cache Value Objects

Immutable value objects for the localization cache domain: entity types,
the cache key scheme and TTLs.
"""

import hashlib
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from ...constants import SECONDS_PER_DAY

EntityId = Union[int, str]

FILTER_HASH_LENGTH = 16


class EntityType(str, Enum):
    """Canonical entity types served by the cache."""

    USER = "user"
    LISTING = "listing"
    BOOKING = "booking"
    REVIEW = "review"
    CATEGORY = "category"
    NOTIFICATION = "notification"

    @property
    def collection(self) -> str:
        """Plural collection name used by filtered list keys."""
        return f"{self.value}s" if self is not EntityType.CATEGORY else "categories"


class UserCollection(str, Enum):
    """Collections cached per owning user."""

    BOOKINGS = "bookings"
    REVIEWS = "reviews"
    NOTIFICATIONS = "notifications_list"

    @classmethod
    def for_entity(cls, entity_type: EntityType) -> Optional["UserCollection"]:
        return _USER_COLLECTIONS.get(entity_type)


_USER_COLLECTIONS = {
    EntityType.BOOKING: UserCollection.BOOKINGS,
    EntityType.REVIEW: UserCollection.REVIEWS,
    EntityType.NOTIFICATION: UserCollection.NOTIFICATIONS,
}


def normalize_filters(filters: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Normalize a filter/pagination parameter set.

    None and empty-string values are dropped, scalars become strings and
    list values become sorted lists of strings, so that semantically
    identical query shapes normalize to the same mapping.
    """
    normalized: Dict[str, Any] = {}
    for name, value in (filters or {}).items():
        if value is None or value == "":
            continue
        if isinstance(value, (list, tuple, set, frozenset)):
            items = sorted(str(item) for item in value if item is not None)
            if items:
                normalized[str(name)] = items
            continue
        if isinstance(value, bool):
            normalized[str(name)] = "true" if value else "false"
        else:
            normalized[str(name)] = str(value)
    return normalized


def filter_hash(filters: Optional[Mapping[str, Any]]) -> str:
    """
    Stable filter hash for filtered list keys.

    Keys are sorted lexicographically and serialized canonically before
    hashing. An empty filter set hashes to the empty string.

    Returns:
        "" or ":<hex digest>"
    """
    normalized = normalize_filters(filters)
    if not normalized:
        return ""
    canonical = json.dumps(
        normalized, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    )
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f":{digest[:FILTER_HASH_LENGTH]}"


@dataclass(frozen=True)
class CacheKey:
    """
    Immutable cache key value object.

    Key families:
        {entity}:{id}:{lang}
        user:uid:{uid}:{lang}
        user:{user_id}:{collection}:{lang}
        {parent}:{parent_id}:{collection}:{lang}
        {collection}:all{filterHash}:{lang}
    """

    value: str

    def __post_init__(self) -> None:
        """Validate cache key format."""
        if not self.value:
            raise ValueError("Cache key cannot be empty")

        if len(self.value) > 250:
            raise ValueError("Cache key too long (max 250 characters)")

        if any(char.isspace() for char in self.value):
            raise ValueError("Cache key cannot contain whitespace")

    def __str__(self) -> str:
        return self.value

    @staticmethod
    def _segment(raw: Any, name: str) -> str:
        text = str(raw)
        if not text or ":" in text or "*" in text:
            raise ValueError(f"Invalid {name} for cache key: {raw!r}")
        return text

    @classmethod
    def entity(
        cls, entity_type: EntityType, entity_id: EntityId, lang: str
    ) -> "CacheKey":
        """Create single entity view key."""
        return cls(
            f"{entity_type.value}:{cls._segment(entity_id, 'id')}:"
            f"{cls._segment(lang, 'language')}"
        )

    @classmethod
    def user_by_uid(cls, uid: str, lang: str) -> "CacheKey":
        """Create alias key for a user looked up by external uid."""
        return cls(
            f"user:uid:{cls._segment(uid, 'uid')}:{cls._segment(lang, 'language')}"
        )

    @classmethod
    def user_collection(
        cls, user_id: EntityId, collection: UserCollection, lang: str
    ) -> "CacheKey":
        """Create key for a collection owned by one user."""
        return cls(
            f"user:{cls._segment(user_id, 'user id')}:{collection.value}:"
            f"{cls._segment(lang, 'language')}"
        )

    @classmethod
    def parent_collection(
        cls,
        parent_type: EntityType,
        parent_id: EntityId,
        child_type: EntityType,
        lang: str,
    ) -> "CacheKey":
        """Create key for the children of one parent, e.g. listing:7:reviews:ar."""
        return cls(
            f"{parent_type.value}:{cls._segment(parent_id, 'parent id')}:"
            f"{child_type.collection}:{cls._segment(lang, 'language')}"
        )

    @classmethod
    def filtered_list(
        cls,
        entity_type: EntityType,
        filters: Optional[Mapping[str, Any]],
        lang: str,
    ) -> "CacheKey":
        """Create key for one filtered/paginated list shape."""
        return cls(
            f"{entity_type.collection}:all{filter_hash(filters)}:"
            f"{cls._segment(lang, 'language')}"
        )

    @classmethod
    def filtered_list_pattern(cls, entity_type: EntityType, lang: str) -> "CacheKey":
        """Pattern sweeping every filter shape of a collection."""
        return cls(f"{entity_type.collection}:all*:{cls._segment(lang, 'language')}")

    @classmethod
    def user_collection_pattern(
        cls, collection: UserCollection, lang: str
    ) -> "CacheKey":
        """Pattern sweeping one collection across every user."""
        return cls(f"user:*:{collection.value}:{cls._segment(lang, 'language')}")

    @classmethod
    def entity_pattern(cls, entity_type: EntityType, lang: str) -> "CacheKey":
        """Pattern sweeping every view derived from one entity type."""
        return cls(f"{entity_type.value}:*:{cls._segment(lang, 'language')}")


@dataclass(frozen=True)
class TTL:
    """
    Time-to-live value object.

    A TTL of zero seconds means the entry is kept until invalidated.
    """

    seconds: int

    def __post_init__(self) -> None:
        """Validate TTL value."""
        if self.seconds < 0:
            raise ValueError("TTL cannot be negative")

        if self.seconds > 10 * 365 * SECONDS_PER_DAY:
            raise ValueError("TTL cannot exceed 10 years")

    @property
    def persistent(self) -> bool:
        return self.seconds == 0

    @classmethod
    def days(cls, days: int) -> "TTL":
        return cls(days * SECONDS_PER_DAY)

    @classmethod
    def none(cls) -> "TTL":
        """No expiry."""
        return cls(0)
