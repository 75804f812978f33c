"""
Reward Service

Appends reward ledger entries and records tier changes. The ledger is
append-only: a tier change is a new zero-point entry, never an update.
Awards for one user are serialized in-process, and the tier on file is
re-read after the points are appended so that a change entry is written
only when the tier actually differs from the latest one recorded.
"""

import asyncio
import logging
import weakref
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from ...domain.localization.ports import EntityRepository
from ...domain.localization.rewards import (
    RewardTier,
    parse_tier,
    tier_for_points,
    total_points,
)
from ...domain.localization.value_objects import EntityId, EntityType
from .invalidator import CacheInvalidator
from .notifications import NotificationService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RewardOutcome:
    """Result of awarding points."""

    user_id: EntityId
    points_awarded: int
    total_points: int
    tier: RewardTier
    previous_tier: RewardTier

    @property
    def tier_changed(self) -> bool:
        return self.tier is not self.previous_tier


def _tier_on_file(ledger) -> RewardTier:
    latest = parse_tier(ledger[-1].get("category")) if ledger else None
    return latest or RewardTier.BRONZE


class RewardService:
    """Reward ledger and tier computation."""

    def __init__(
        self,
        repository: EntityRepository,
        notifications: Optional[NotificationService] = None,
        invalidator: Optional[CacheInvalidator] = None,
    ):
        self.repository = repository
        self.notifications = notifications
        self.invalidator = invalidator
        self._locks: "weakref.WeakValueDictionary[EntityId, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, user_id: EntityId) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    async def award_points(self, user_id: EntityId, points: int) -> RewardOutcome:
        """
        Append a points entry, then recompute the tier.

        The new entry carries the tier of the most recent entry on file.
        When the recomputed tier differs from the tier on file after the
        append, a zero-point entry with the new tier is appended and the
        user is notified. Cached views carrying the user's totals are
        invalidated once the ledger is written.

        Args:
            user_id: User earning the points
            points: Points to append (non-negative)

        Returns:
            RewardOutcome with old and new tier
        """
        if points < 0:
            raise ValueError("Reward points cannot be negative")

        async with self._lock_for(user_id):
            history = await self.repository.list_rewards(user_id)
            await self.repository.append_reward(
                user_id, points, _tier_on_file(history).value
            )

            ledger = await self.repository.list_rewards(user_id)
            total = total_points(ledger)
            outcome = RewardOutcome(
                user_id=user_id,
                points_awarded=points,
                total_points=total,
                tier=tier_for_points(total),
                previous_tier=_tier_on_file(ledger),
            )

            if outcome.tier_changed:
                await self.repository.append_reward(user_id, 0, outcome.tier.value)
                logger.info(
                    f"User {user_id} moved from {outcome.previous_tier.value} "
                    f"to {outcome.tier.value}",
                    extra={"user_id": str(user_id), "total_points": total},
                )

            await self._invalidate_user(user_id)

        if outcome.tier_changed and self.notifications is not None:
            await self.notifications.notify(
                user_id,
                "Reward Tier Updated",
                f"Congratulations! You have reached the {outcome.tier.value} tier "
                f"with {total} points.",
                entity_type=EntityType.USER,
                entity_id=user_id,
            )

        return outcome

    async def _invalidate_user(self, user_id: EntityId) -> None:
        if self.invalidator is None:
            return
        user = await self.repository.get(EntityType.USER, user_id)
        uids: Tuple[str, ...] = ()
        if user and user.get("uid") is not None:
            uids = (str(user["uid"]),)
        await self.invalidator.invalidate_user_summary(user_id, uids)

    async def summary(self, user_id: EntityId) -> Dict[str, Any]:
        """Current total and tier computed from the ledger."""
        ledger = await self.repository.list_rewards(user_id)
        total = total_points(ledger)
        return {"totalRewardPoints": total, "tier": tier_for_points(total).value}
