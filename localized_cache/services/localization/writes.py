"""
Localized Write Service

Write path for canonical entities. A write commits synchronously,
invalidates the affected cache entries before returning, and hands an
immutable repair task to the background queue. Only canonical-store
failures reach the caller, as WriteFailureError, and in that case
nothing is invalidated or scheduled.
"""

import copy
import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ...core.exceptions import WriteFailureError
from ...domain.localization.field_descriptors import descriptor_for
from ...domain.localization.ports import EntityRepository
from ...domain.localization.results import InvalidationReport, WriteResult
from ...domain.localization.value_objects import EntityId, EntityType
from ..queues.tasks import RepairKind, RepairQueue, RepairTask
from .accessor import serialize_view
from .invalidator import CacheInvalidator, affected_ids
from .materializer import Materializer
from .policy import CachePolicy

logger = logging.getLogger(__name__)


def audit_action(entity_type: EntityType, kind: RepairKind) -> str:
    """Audit log action name, e.g. BOOKING_CREATED."""
    return f"{entity_type.value.upper()}_{kind.value.upper()}"


class LocalizedWriteService:
    """Create/update/delete with synchronous invalidation and background repair."""

    def __init__(
        self,
        repository: EntityRepository,
        materializer: Materializer,
        invalidator: CacheInvalidator,
        queue: RepairQueue,
        policy: CachePolicy,
        booking_reward_points: int = 50,
    ):
        self.repository = repository
        self.materializer = materializer
        self.invalidator = invalidator
        self.queue = queue
        self.policy = policy
        self.booking_reward_points = booking_reward_points

    async def _canonical_payload(
        self, entity_type: EntityType, data: Mapping[str, Any], lang: str
    ) -> Dict[str, Any]:
        if self.policy.is_source(lang):
            return dict(data)
        canonical = await self.materializer.canonicalize(
            data, entity_type, lang, self.policy.source_language
        )
        if canonical.degraded:
            logger.warning(
                f"Storing {entity_type.value} input without full canonicalization",
                extra={
                    "entity_type": entity_type.value,
                    "input_lang": lang,
                    "degraded_fields": list(canonical.degraded_fields),
                },
            )
        return canonical.view

    def _echo(
        self,
        entity_type: EntityType,
        record: Mapping[str, Any],
        data: Mapping[str, Any],
        lang: str,
    ) -> Dict[str, Any]:
        """Committed record with the caller's own wording for submitted text fields."""
        descriptor = descriptor_for(entity_type)
        view = copy.deepcopy(dict(record))
        for hidden in descriptor.hidden_fields:
            view.pop(hidden, None)
        if not self.policy.is_source(lang):
            for fd in descriptor.top_level_text_fields():
                if fd.name in data:
                    view[fd.name] = copy.deepcopy(data[fd.name])
        return json.loads(serialize_view(view))

    async def _user_dependents(
        self, user_id: EntityId
    ) -> Dict[EntityType, List[EntityId]]:
        """
        Views embedding a user's name: the user's bookings and reviews and
        the listings that summarize them.
        """
        dependents: Dict[EntityType, List[EntityId]] = {}
        for owned_type in (EntityType.BOOKING, EntityType.REVIEW):
            for owned in await self.repository.list_owned(owned_type, user_id):
                refs = (
                    (owned_type, owned.get("id")),
                    (EntityType.LISTING, owned.get("listingId")),
                )
                for ref_type, ref_id in refs:
                    if ref_id is None:
                        continue
                    ids = dependents.setdefault(ref_type, [])
                    if ref_id not in ids:
                        ids.append(ref_id)
        return dependents

    async def _invalidate_and_schedule(
        self,
        kind: RepairKind,
        entity_type: EntityType,
        entity_id: EntityId,
        lang: str,
        records: Tuple[Optional[Mapping[str, Any]], ...],
        actor_user_id: Optional[EntityId],
        extra_parents: Optional[Dict[EntityType, List[EntityId]]] = None,
    ) -> Tuple[InvalidationReport, Optional[RepairTask]]:
        users, parents = affected_ids(entity_type, *records)
        merged = {t: list(ids) for t, ids in parents.items()}
        for parent_type, ids in (extra_parents or {}).items():
            bucket = merged.setdefault(parent_type, [])
            bucket.extend(i for i in ids if i not in bucket)

        uids: Tuple[str, ...] = ()
        if entity_type is EntityType.USER:
            uids = tuple(
                {str(r["uid"]) for r in records if r and r.get("uid") is not None}
            )

        report = await self.invalidator.invalidate(
            entity_type, entity_id, users, merged, uids
        )

        reward_points = 0
        reward_user_id = None
        if (
            kind is RepairKind.CREATED
            and entity_type is EntityType.BOOKING
            and users
            and self.booking_reward_points > 0
        ):
            reward_points = self.booking_reward_points
            reward_user_id = users[0]

        task = RepairTask(
            kind=kind,
            entity_type=entity_type,
            entity_id=entity_id,
            language=lang,
            affected_user_ids=users,
            affected_parent_ids=tuple(
                (parent_type, parent_id)
                for parent_type, ids in merged.items()
                for parent_id in ids
            ),
            user_uids=uids,
            actor_user_id=actor_user_id,
            audit_action=audit_action(entity_type, kind),
            reward_points=reward_points,
            reward_user_id=reward_user_id,
        )
        if not self.queue.submit(task):
            return report, None
        return report, task

    async def create(
        self,
        entity_type: EntityType,
        data: Mapping[str, Any],
        lang: str,
        actor_user_id: Optional[EntityId] = None,
    ) -> WriteResult:
        """
        Create an entity from input in either language.

        Raises:
            WriteFailureError: If the canonical create failed
        """
        lang = self.policy.normalize_language(lang)
        payload = await self._canonical_payload(entity_type, data, lang)

        try:
            record = await self.repository.create(entity_type, payload)
        except Exception as e:
            raise WriteFailureError("create", entity_type.value, original_error=e) from e

        report, task = await self._invalidate_and_schedule(
            RepairKind.CREATED,
            entity_type,
            record["id"],
            lang,
            (record,),
            actor_user_id,
        )
        return WriteResult(
            view=self._echo(entity_type, record, data, lang),
            entity_id=record["id"],
            scheduled_task_id=task.task_id if task else None,
            invalidation=report,
        )

    async def update(
        self,
        entity_type: EntityType,
        entity_id: EntityId,
        data: Mapping[str, Any],
        lang: str,
        actor_user_id: Optional[EntityId] = None,
    ) -> WriteResult:
        """
        Update an entity; a missing entity yields an empty result.

        Raises:
            WriteFailureError: If the canonical update failed
        """
        lang = self.policy.normalize_language(lang)
        payload = await self._canonical_payload(entity_type, data, lang)
        extra_parents: Dict[EntityType, List[EntityId]] = {}

        try:
            previous = await self.repository.get(entity_type, entity_id)
            if entity_type is EntityType.USER and previous is not None:
                extra_parents = await self._user_dependents(entity_id)
            record = await self.repository.update(entity_type, entity_id, payload)
        except Exception as e:
            raise WriteFailureError(
                "update", entity_type.value, entity_id, original_error=e
            ) from e

        if record is None:
            return WriteResult(view=None, entity_id=entity_id)

        report, task = await self._invalidate_and_schedule(
            RepairKind.UPDATED,
            entity_type,
            entity_id,
            lang,
            (previous, record),
            actor_user_id,
            extra_parents,
        )
        return WriteResult(
            view=self._echo(entity_type, record, data, lang),
            entity_id=entity_id,
            scheduled_task_id=task.task_id if task else None,
            invalidation=report,
        )

    async def delete(
        self,
        entity_type: EntityType,
        entity_id: EntityId,
        lang: str,
        actor_user_id: Optional[EntityId] = None,
    ) -> WriteResult:
        """
        Delete an entity; a missing entity yields an empty result.

        Deleting a user also invalidates the listings the user booked or
        reviewed, since their embedded summaries and stats change.

        Raises:
            WriteFailureError: If the canonical delete failed
        """
        lang = self.policy.normalize_language(lang)
        extra_parents: Dict[EntityType, List[EntityId]] = {}

        try:
            if entity_type is EntityType.USER:
                extra_parents = await self._user_dependents(entity_id)
            record = await self.repository.delete(entity_type, entity_id)
        except Exception as e:
            raise WriteFailureError(
                "delete", entity_type.value, entity_id, original_error=e
            ) from e

        if record is None:
            return WriteResult(view=None, entity_id=entity_id)

        report, task = await self._invalidate_and_schedule(
            RepairKind.DELETED,
            entity_type,
            entity_id,
            lang,
            (record,),
            actor_user_id,
            extra_parents,
        )
        return WriteResult(
            view=self._echo(entity_type, record, {}, lang),
            entity_id=entity_id,
            scheduled_task_id=task.task_id if task else None,
            invalidation=report,
        )
