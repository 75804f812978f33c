"""
Cache Policy

Languages, TTLs and read policy shared by the localization services.
"""

from dataclasses import dataclass
from typing import Tuple

from ...core.config import Settings
from ...core.exceptions import UnsupportedLanguageError
from ...domain.localization.value_objects import TTL, EntityType


@dataclass(frozen=True)
class CachePolicy:
    """Immutable cache policy derived from Settings."""

    source_language: str
    target_language: str
    entity_ttl: TTL
    listing_ttl: TTL
    list_ttl: TTL
    category_ttl: TTL
    refresh_ttl_on_read: bool = False
    notification_list_max_length: int = 1000

    @classmethod
    def from_settings(cls, settings: Settings) -> "CachePolicy":
        return cls(
            source_language=settings.SOURCE_LANGUAGE,
            target_language=settings.TARGET_LANGUAGE,
            entity_ttl=TTL(settings.entity_ttl_seconds),
            listing_ttl=TTL(settings.listing_ttl_seconds),
            list_ttl=TTL(settings.list_ttl_seconds),
            category_ttl=TTL(settings.category_ttl_seconds),
            refresh_ttl_on_read=settings.REFRESH_TTL_ON_READ,
            notification_list_max_length=settings.NOTIFICATION_LIST_MAX_LENGTH,
        )

    @property
    def languages(self) -> Tuple[str, str]:
        return (self.source_language, self.target_language)

    @property
    def cached_languages(self) -> Tuple[str, ...]:
        """Languages with cached views; source-language reads bypass the cache."""
        return (self.target_language,)

    def normalize_language(self, lang: str) -> str:
        """Lowercase a language code and reject unsupported ones."""
        code = (lang or "").strip().lower()
        if code not in self.languages:
            raise UnsupportedLanguageError(lang, self.languages)
        return code

    def is_source(self, lang: str) -> bool:
        return lang == self.source_language

    def ttl_for(self, entity_type: EntityType) -> TTL:
        if entity_type is EntityType.LISTING:
            return self.listing_ttl
        if entity_type is EntityType.CATEGORY:
            return self.category_ttl
        return self.entity_ttl
