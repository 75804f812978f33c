"""
Cache Invalidator

Deletes every cached view a mutation can make stale: the entity's own
key, collections owned by affected users and parents, and (by pattern)
every filtered-list shape of the touched collections. Invalidation is
unconditional; repopulation is left to readers and background repair.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from opentelemetry import trace

from ...domain.localization.field_descriptors import descriptor_for
from ...domain.localization.ports import CacheStore
from ...domain.localization.results import InvalidationReport
from ...domain.localization.value_objects import (
    CacheKey,
    EntityId,
    EntityType,
    UserCollection,
)
from .policy import CachePolicy

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

# Child collections cached per parent entity
PARENT_CHILDREN: Dict[EntityType, Tuple[EntityType, ...]] = {
    EntityType.LISTING: (EntityType.REVIEW, EntityType.BOOKING),
}

OWNED_COLLECTIONS = (UserCollection.BOOKINGS, UserCollection.REVIEWS)

ParentIds = Mapping[EntityType, Iterable[EntityId]]


def affected_ids(
    entity_type: EntityType, *records: Optional[Mapping[str, Any]]
) -> Tuple[Tuple[EntityId, ...], Dict[EntityType, Tuple[EntityId, ...]]]:
    """
    Owning user ids and parent ids referenced by one or more records.

    Passing both the previous and the new state of an updated record
    covers entities that moved between owners or parents.
    """
    descriptor = descriptor_for(entity_type)
    users: List[EntityId] = []
    parents: Dict[EntityType, List[EntityId]] = {}

    for record in records:
        if not record:
            continue
        if descriptor.owner_field:
            owner = record.get(descriptor.owner_field)
            if owner is not None and owner not in users:
                users.append(owner)
        for parent_type, field_name in descriptor.parent_fields.items():
            parent_id = record.get(field_name)
            if parent_id is None:
                continue
            ids = parents.setdefault(parent_type, [])
            if parent_id not in ids:
                ids.append(parent_id)

    return tuple(users), {k: tuple(v) for k, v in parents.items()}


def _unique(values: Iterable[str]) -> Tuple[str, ...]:
    seen: Dict[str, None] = {}
    for value in values:
        seen.setdefault(value, None)
    return tuple(seen)


class CacheInvalidator:
    """Invalidation of localized views after mutations."""

    def __init__(self, store: CacheStore, policy: CachePolicy):
        self.store = store
        self.policy = policy

    def plan(
        self,
        entity_type: EntityType,
        entity_id: EntityId,
        affected_user_ids: Iterable[EntityId] = (),
        affected_parent_ids: Optional[ParentIds] = None,
        user_uids: Iterable[str] = (),
    ) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
        """Keys and patterns an invalidation deletes, without touching the store."""
        descriptor = descriptor_for(entity_type)
        parents = {t: tuple(ids) for t, ids in (affected_parent_ids or {}).items()}
        user_ids = tuple(affected_user_ids)
        keys: List[str] = []
        patterns: List[str] = []

        for lang in self.policy.cached_languages:
            keys.append(CacheKey.entity(entity_type, entity_id, lang).value)

            if entity_type is EntityType.USER:
                for uid in user_uids:
                    keys.append(CacheKey.user_by_uid(uid, lang).value)
                for collection in UserCollection:
                    keys.append(
                        CacheKey.user_collection(entity_id, collection, lang).value
                    )

            for child_type in PARENT_CHILDREN.get(entity_type, ()):
                keys.append(
                    CacheKey.parent_collection(
                        entity_type, entity_id, child_type, lang
                    ).value
                )

            for user_id in user_ids:
                keys.append(CacheKey.entity(EntityType.USER, user_id, lang).value)
                for collection in OWNED_COLLECTIONS:
                    keys.append(CacheKey.user_collection(user_id, collection, lang).value)

            for parent_type, ids in parents.items():
                for parent_id in ids:
                    keys.append(CacheKey.entity(parent_type, parent_id, lang).value)
                    for child_type in PARENT_CHILDREN.get(parent_type, ()):
                        keys.append(
                            CacheKey.parent_collection(
                                parent_type, parent_id, child_type, lang
                            ).value
                        )

            patterns.append(CacheKey.filtered_list_pattern(entity_type, lang).value)
            for parent_type in parents:
                patterns.append(CacheKey.filtered_list_pattern(parent_type, lang).value)
            if user_ids:
                patterns.append(
                    CacheKey.filtered_list_pattern(EntityType.USER, lang).value
                )
            for dependent in descriptor.dependent_types:
                patterns.append(CacheKey.entity_pattern(dependent, lang).value)
                patterns.append(CacheKey.filtered_list_pattern(dependent, lang).value)
                owned = UserCollection.for_entity(dependent)
                if owned in OWNED_COLLECTIONS:
                    patterns.append(
                        CacheKey.user_collection_pattern(owned, lang).value
                    )

        return _unique(keys), _unique(patterns)

    async def invalidate(
        self,
        entity_type: EntityType,
        entity_id: EntityId,
        affected_user_ids: Iterable[EntityId] = (),
        affected_parent_ids: Optional[ParentIds] = None,
        user_uids: Iterable[str] = (),
    ) -> InvalidationReport:
        """
        Delete every cached view affected by a mutation of one entity.

        Args:
            entity_type: Type of the mutated entity
            entity_id: Id of the mutated entity
            affected_user_ids: Users whose owned collections are affected
            affected_parent_ids: Parent entities (e.g. listings) to refresh
            user_uids: External uids aliasing a mutated user

        Returns:
            InvalidationReport; store failures are counted, never raised
        """
        keys, patterns = self.plan(
            entity_type, entity_id, affected_user_ids, affected_parent_ids, user_uids
        )
        return await self._execute(entity_type, entity_id, keys, patterns)

    async def invalidate_user_summary(
        self, user_id: EntityId, user_uids: Iterable[str] = ()
    ) -> InvalidationReport:
        """
        Delete the views carrying a user's reward totals: the user view,
        its uid aliases and the filtered user lists.
        """
        keys: List[str] = []
        patterns: List[str] = []
        for lang in self.policy.cached_languages:
            keys.append(CacheKey.entity(EntityType.USER, user_id, lang).value)
            for uid in user_uids:
                keys.append(CacheKey.user_by_uid(uid, lang).value)
            patterns.append(CacheKey.filtered_list_pattern(EntityType.USER, lang).value)
        return await self._execute(
            EntityType.USER, user_id, _unique(keys), _unique(patterns)
        )

    async def _execute(
        self,
        entity_type: EntityType,
        entity_id: EntityId,
        keys: Tuple[str, ...],
        patterns: Tuple[str, ...],
    ) -> InvalidationReport:
        with tracer.start_as_current_span("invalidator.invalidate") as span:
            span.set_attribute("entity_type", entity_type.value)
            span.set_attribute("entity_id", str(entity_id))

            deleted = 0
            failed = 0

            result = await self.store.delete(*keys)
            if result.ok:
                deleted += result.affected
            else:
                failed += 1

            for pattern in patterns:
                result = await self.store.delete_pattern(pattern)
                if result.ok:
                    deleted += result.affected
                else:
                    failed += 1

            span.set_attribute("deleted", deleted)
            span.set_attribute("failed_operations", failed)

        report = InvalidationReport(
            keys=keys, patterns=patterns, deleted=deleted, failed_operations=failed
        )
        logger.info(
            f"Invalidated {deleted} cache entries for {entity_type.value} {entity_id}",
            extra={
                "entity_type": entity_type.value,
                "entity_id": str(entity_id),
                "keys": len(keys),
                "patterns": len(patterns),
                "failed_operations": failed,
            },
        )
        return report
