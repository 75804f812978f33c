"""
Notification Cache

Creates user notifications through the notification sink and keeps the
per-user localized notification list in the cache store (newest first,
capped at the configured length).
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from ...domain.localization.ports import CacheStore, NotificationSink
from ...domain.localization.value_objects import (
    CacheKey,
    EntityId,
    EntityType,
    UserCollection,
)
from .accessor import serialize_view
from .materializer import Materializer
from .policy import CachePolicy

logger = logging.getLogger(__name__)


class NotificationService:
    """User notifications with a localized list cache."""

    def __init__(
        self,
        sink: NotificationSink,
        store: CacheStore,
        materializer: Materializer,
        policy: CachePolicy,
    ):
        self.sink = sink
        self.store = store
        self.materializer = materializer
        self.policy = policy

    def _list_key(self, user_id: EntityId, lang: str) -> str:
        return CacheKey.user_collection(user_id, UserCollection.NOTIFICATIONS, lang).value

    async def _localize(self, record: Dict[str, Any], lang: str) -> Dict[str, Any]:
        materialized = await self.materializer.materialize(
            record, EntityType.NOTIFICATION, lang, self.policy.source_language
        )
        return materialized.view

    async def notify(
        self,
        user_id: EntityId,
        title: str,
        message: str,
        entity_type: Optional[EntityType] = None,
        entity_id: Optional[EntityId] = None,
    ) -> Dict[str, Any]:
        """
        Create a notification and add its localized copy to cached lists.

        The localized copy is pushed only onto lists that are already
        cached; an uncached list is rebuilt in full on its next read.

        Raises:
            Exception: Sink failures propagate to the caller
        """
        record = await self.sink.create(
            user_id, title, message, entity_type=entity_type, entity_id=entity_id
        )

        for lang in self.policy.cached_languages:
            view = await self._localize(record, lang)
            serialized = serialize_view(view)

            if record.get("id") is not None:
                await self.store.set_with_ttl(
                    CacheKey.entity(EntityType.NOTIFICATION, record["id"], lang).value,
                    serialized,
                    self.policy.entity_ttl.seconds,
                )

            list_key = self._list_key(user_id, lang)
            pushed = await self.store.list_push(list_key, serialized, only_if_exists=True)
            if pushed.affected:
                await self.store.list_trim(
                    list_key, 0, self.policy.notification_list_max_length - 1
                )

        logger.debug(
            "Notification created",
            extra={"user_id": str(user_id), "notification_id": record.get("id")},
        )
        return record

    async def get_user_notifications(
        self, user_id: EntityId, lang: str
    ) -> List[Dict[str, Any]]:
        """Localized notifications of a user, newest first."""
        lang = self.policy.normalize_language(lang)
        max_length = self.policy.notification_list_max_length

        if self.policy.is_source(lang):
            records = await self.sink.list_for_user(user_id)
            return [json.loads(serialize_view(r)) for r in records[:max_length]]

        list_key = self._list_key(user_id, lang)
        cached = await self.store.list_range(list_key, 0, max_length - 1)
        if cached.hit:
            try:
                return [json.loads(value) for value in cached.value]
            except ValueError:
                logger.warning(
                    "Discarding undecodable notification list",
                    extra={"cache_key": list_key},
                )
                await self.store.delete(list_key)

        records = (await self.sink.list_for_user(user_id))[:max_length]
        views = list(
            await asyncio.gather(*(self._localize(record, lang) for record in records))
        )
        serialized = [serialize_view(view) for view in views]

        if serialized:
            await self.store.list_replace(
                list_key, serialized, self.policy.list_ttl.seconds
            )
            # A notification created after the sink read found no list to push onto
            latest = await self.sink.list_for_user(user_id)
            if latest and latest[0].get("id") != records[0].get("id"):
                logger.debug(
                    "Dropping notification list rebuilt from a stale read",
                    extra={"cache_key": list_key},
                )
                await self.store.delete(list_key)

        return [json.loads(value) for value in serialized]
