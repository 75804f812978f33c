"""
Read-Through Accessor

Per-entity-type reads: try the cache, on a miss fetch the canonical
record, materialize it (plus derived aggregates) and populate the cache
before returning. Source-language reads bypass the cache entirely.

Concurrent misses for the same key are not coordinated; each populates
the key with an equally valid derivation and the last write wins.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from opentelemetry import trace

from ...constants import DEFAULT_LISTING_PAGE_SIZE, DEFAULT_PAGE_SIZE
from ...domain.localization.aggregates import compute_listing_stats
from ...domain.localization.ports import CacheStore, EntityRepository
from ...domain.localization.rewards import highest_tier, total_points
from ...domain.localization.value_objects import (
    TTL,
    CacheKey,
    EntityId,
    EntityType,
    UserCollection,
)
from .materializer import Materializer
from .policy import CachePolicy

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

Loader = Callable[[], Awaitable[Optional[Any]]]


def serialize_view(view: Any) -> str:
    """Canonical JSON form stored in the cache."""
    return json.dumps(view, ensure_ascii=False, sort_keys=True, default=str)


class ReadThroughAccessor:
    """Read-through access to localized views."""

    def __init__(
        self,
        store: CacheStore,
        repository: EntityRepository,
        materializer: Materializer,
        policy: CachePolicy,
    ):
        self.store = store
        self.repository = repository
        self.materializer = materializer
        self.policy = policy

    # View construction

    async def build_view(
        self, entity_type: EntityType, record: Mapping[str, Any], lang: str
    ) -> Dict[str, Any]:
        """
        Materialize one canonical record for a language.

        Users get their derived reward totals before translation; listings
        get AggregateStats computed from the canonical related collections.
        """
        canonical = dict(record)
        if entity_type is EntityType.USER:
            canonical = await self._with_rewards(canonical)

        materialized = await self.materializer.materialize(
            canonical, entity_type, lang, self.policy.source_language
        )
        view = materialized.view

        if entity_type is EntityType.LISTING:
            stats = compute_listing_stats(
                record.get("reviews"), record.get("bookings")
            )
            view["stats"] = stats.to_dict()
        return view

    async def _with_rewards(self, user: Dict[str, Any]) -> Dict[str, Any]:
        entries = await self.repository.list_rewards(user["id"])
        user["totalRewardPoints"] = total_points(entries)
        user["highestRewardCategory"] = highest_tier(entries).value
        return user

    async def _build_views(
        self, entity_type: EntityType, records: List[Mapping[str, Any]], lang: str
    ) -> List[Dict[str, Any]]:
        return list(
            await asyncio.gather(
                *(self.build_view(entity_type, record, lang) for record in records)
            )
        )

    # Read-through protocol

    async def _read_through(
        self, key: CacheKey, lang: str, ttl: TTL, loader: Loader
    ) -> Optional[Any]:
        if self.policy.is_source(lang):
            value = await loader()
            return None if value is None else json.loads(serialize_view(value))

        with tracer.start_as_current_span("accessor.read_through") as span:
            span.set_attribute("cache_key", key.value)

            cached = await self.store.get(key.value)
            span.set_attribute("cache_outcome", cached.outcome.value)
            if cached.hit:
                try:
                    value = json.loads(cached.value)
                except ValueError:
                    logger.warning(
                        "Discarding undecodable cache entry",
                        extra={"cache_key": key.value},
                    )
                    await self.store.delete(key.value)
                else:
                    if self.policy.refresh_ttl_on_read and not ttl.persistent:
                        await self.store.expire(key.value, ttl.seconds)
                    logger.debug("Cache hit", extra={"cache_key": key.value})
                    return value

            value = await loader()
            if value is None:
                span.set_attribute("found", False)
                return None

            serialized = serialize_view(value)
            written = await self.store.set_with_ttl(key.value, serialized, ttl.seconds)
            logger.debug(
                "Cache populated" if written.ok else "Cache populate skipped",
                extra={"cache_key": key.value, "ttl": ttl.seconds},
            )
            return json.loads(serialized)

    # Entity reads

    async def get_entity(
        self, entity_type: EntityType, entity_id: EntityId, lang: str
    ) -> Optional[Dict[str, Any]]:
        """
        Localized view of one entity.

        Returns:
            The view, or None when the canonical entity does not exist
        """
        lang = self.policy.normalize_language(lang)

        async def load() -> Optional[Dict[str, Any]]:
            record = await self.repository.get(entity_type, entity_id)
            if record is None:
                return None
            return await self.build_view(entity_type, record, lang)

        return await self._read_through(
            CacheKey.entity(entity_type, entity_id, lang),
            lang,
            self.policy.ttl_for(entity_type),
            load,
        )

    async def get_listing(self, listing_id: EntityId, lang: str):
        return await self.get_entity(EntityType.LISTING, listing_id, lang)

    async def get_booking(self, booking_id: EntityId, lang: str):
        return await self.get_entity(EntityType.BOOKING, booking_id, lang)

    async def get_review(self, review_id: EntityId, lang: str):
        return await self.get_entity(EntityType.REVIEW, review_id, lang)

    async def get_category(self, category_id: EntityId, lang: str):
        return await self.get_entity(EntityType.CATEGORY, category_id, lang)

    async def get_user(self, user_id: EntityId, lang: str):
        return await self.get_entity(EntityType.USER, user_id, lang)

    async def get_user_by_uid(self, uid: str, lang: str) -> Optional[Dict[str, Any]]:
        """Localized user view looked up by external auth uid."""
        lang = self.policy.normalize_language(lang)

        async def load() -> Optional[Dict[str, Any]]:
            record = await self.repository.get_user_by_uid(uid)
            if record is None:
                return None
            return await self.build_view(EntityType.USER, record, lang)

        return await self._read_through(
            CacheKey.user_by_uid(uid, lang), lang, self.policy.entity_ttl, load
        )

    # Collection reads

    async def get_user_collection(
        self, user_id: EntityId, entity_type: EntityType, lang: str
    ) -> List[Dict[str, Any]]:
        """Localized bookings or reviews owned by one user."""
        collection = UserCollection.for_entity(entity_type)
        if collection not in (UserCollection.BOOKINGS, UserCollection.REVIEWS):
            raise ValueError(f"No user collection for entity type: {entity_type}")
        lang = self.policy.normalize_language(lang)

        async def load() -> List[Dict[str, Any]]:
            records = await self.repository.list_owned(entity_type, user_id)
            return await self._build_views(entity_type, records, lang)

        views = await self._read_through(
            CacheKey.user_collection(user_id, collection, lang),
            lang,
            self.policy.list_ttl,
            load,
        )
        return views or []

    async def get_parent_collection(
        self,
        parent_type: EntityType,
        parent_id: EntityId,
        entity_type: EntityType,
        lang: str,
    ) -> List[Dict[str, Any]]:
        """Localized children of one parent, e.g. a listing's reviews."""
        lang = self.policy.normalize_language(lang)

        async def load() -> List[Dict[str, Any]]:
            records = await self.repository.list_for_parent(
                entity_type, parent_type, parent_id
            )
            return await self._build_views(entity_type, records, lang)

        views = await self._read_through(
            CacheKey.parent_collection(parent_type, parent_id, entity_type, lang),
            lang,
            self.policy.list_ttl,
            load,
        )
        return views or []

    async def get_filtered_list(
        self,
        entity_type: EntityType,
        filters: Optional[Mapping[str, Any]],
        lang: str,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        One localized page of a filtered collection.

        Returns:
            {"items": [...], "pagination": {...}}
        """
        lang = self.policy.normalize_language(lang)
        page = max(1, int(page))
        if limit is None:
            limit = (
                DEFAULT_LISTING_PAGE_SIZE
                if entity_type is EntityType.LISTING
                else DEFAULT_PAGE_SIZE
            )
        limit = max(1, int(limit))
        query = dict(filters or {})

        async def load() -> Dict[str, Any]:
            result = await self.repository.list_page(entity_type, query, page, limit)
            items = await self._build_views(entity_type, result.items, lang)
            return {"items": items, "pagination": result.pagination()}

        key_params = {**query, "page": page, "limit": limit}
        return await self._read_through(
            CacheKey.filtered_list(entity_type, key_params, lang),
            lang,
            self.policy.list_ttl,
            load,
        )
