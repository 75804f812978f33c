"""
Localization Cache Ports

Abstract interfaces for the external collaborators of the localization
cache: cache store, translation provider, entity repository and the
fire-and-forget notification/email/audit sinks.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional

from .results import CacheRead, CacheWrite, Page
from .value_objects import EntityId, EntityType


class CacheStore(ABC):
    """
    Key-value store with per-key expiration.

    Implementations MUST NOT raise for store failures: every operation
    returns an UNAVAILABLE result instead.
    """

    @abstractmethod
    async def get(self, key: str) -> CacheRead[str]:
        """Read a string value."""
        pass

    @abstractmethod
    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> CacheWrite:
        """Write a string value; ttl_seconds == 0 stores without expiry."""
        pass

    @abstractmethod
    async def delete(self, *keys: str) -> CacheWrite:
        """Delete keys; affected is the number removed."""
        pass

    @abstractmethod
    async def delete_pattern(self, pattern: str) -> CacheWrite:
        """Delete every key matching a glob pattern."""
        pass

    @abstractmethod
    async def list_push(
        self, key: str, value: str, only_if_exists: bool = False
    ) -> CacheWrite:
        """
        Push a value onto the head of a list; affected is the new length.

        With only_if_exists, an absent list is left absent (affected 0).
        """
        pass

    @abstractmethod
    async def list_replace(
        self, key: str, values: List[str], ttl_seconds: int
    ) -> CacheWrite:
        """
        Atomically replace a list with values (head first) and set its TTL.

        Readers observe either the previous list or the complete new one.
        """
        pass

    @abstractmethod
    async def list_trim(self, key: str, start: int, stop: int) -> CacheWrite:
        """Trim a list to the inclusive range [start, stop]."""
        pass

    @abstractmethod
    async def list_range(self, key: str, start: int, stop: int) -> CacheRead[List[str]]:
        """Read the inclusive range [start, stop] of a list."""
        pass

    @abstractmethod
    async def expire(self, key: str, ttl_seconds: int) -> CacheWrite:
        """Reset a key's TTL."""
        pass


class TranslationProvider(ABC):
    """Machine translation capability."""

    @property
    @abstractmethod
    def enabled(self) -> bool:
        """False when the provider is absent or disabled."""
        pass

    @abstractmethod
    async def translate(self, text: str, target_lang: str, source_lang: str) -> str:
        """
        Translate one non-empty string.

        Raises:
            TranslationUnavailableError: If the call failed
        """
        pass


class EntityRepository(ABC):
    """
    Canonical CRUD access in the source language.

    Reads return None when an entity is absent. Write failures raise.
    """

    @abstractmethod
    async def get(
        self, entity_type: EntityType, entity_id: EntityId
    ) -> Optional[Dict[str, Any]]:
        """Fetch one record with the relations its view needs."""
        pass

    @abstractmethod
    async def get_user_by_uid(self, uid: str) -> Optional[Dict[str, Any]]:
        """Fetch a user by external auth uid."""
        pass

    @abstractmethod
    async def list_page(
        self,
        entity_type: EntityType,
        filters: Mapping[str, Any],
        page: int,
        limit: int,
    ) -> Page:
        """Fetch one filtered page of records."""
        pass

    @abstractmethod
    async def list_owned(
        self, entity_type: EntityType, user_id: EntityId
    ) -> List[Dict[str, Any]]:
        """Fetch records owned by one user."""
        pass

    @abstractmethod
    async def list_for_parent(
        self,
        entity_type: EntityType,
        parent_type: EntityType,
        parent_id: EntityId,
    ) -> List[Dict[str, Any]]:
        """Fetch records belonging to one parent entity."""
        pass

    @abstractmethod
    async def create(
        self, entity_type: EntityType, data: Mapping[str, Any]
    ) -> Dict[str, Any]:
        """Create a record and return it with relations loaded."""
        pass

    @abstractmethod
    async def update(
        self, entity_type: EntityType, entity_id: EntityId, data: Mapping[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Update a record; None when it does not exist."""
        pass

    @abstractmethod
    async def delete(
        self, entity_type: EntityType, entity_id: EntityId
    ) -> Optional[Dict[str, Any]]:
        """Delete a record and return its last state; None when absent."""
        pass

    @abstractmethod
    async def append_reward(
        self, user_id: EntityId, points: int, category: str
    ) -> Dict[str, Any]:
        """Append a reward ledger entry."""
        pass

    @abstractmethod
    async def list_rewards(self, user_id: EntityId) -> List[Dict[str, Any]]:
        """Ledger entries of a user, oldest first."""
        pass


class NotificationSink(ABC):
    """Persists user notifications."""

    @abstractmethod
    async def create(
        self,
        user_id: EntityId,
        title: str,
        message: str,
        entity_type: Optional[EntityType] = None,
        entity_id: Optional[EntityId] = None,
    ) -> Dict[str, Any]:
        """Create a notification record (source language)."""
        pass

    @abstractmethod
    async def list_for_user(self, user_id: EntityId) -> List[Dict[str, Any]]:
        """Notifications of a user, newest first."""
        pass


class EmailSink(ABC):
    """Outbound email delivery."""

    @abstractmethod
    async def send(self, to: str, subject: str, body: str) -> None:
        pass


class AuditLogSink(ABC):
    """Audit log persistence."""

    @abstractmethod
    async def record(self, action: str, details: Mapping[str, Any]) -> None:
        pass
