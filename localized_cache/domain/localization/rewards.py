"""
Reward Tiers

Loyalty classification derived from the sum of a user's reward ledger.
"""

from enum import Enum
from typing import Any, Iterable, Mapping, Optional

from ...constants import REWARD_TIER_THRESHOLDS


class RewardTier(str, Enum):
    """Reward tiers in ascending order."""

    BRONZE = "BRONZE"
    SILVER = "SILVER"
    GOLD = "GOLD"
    PLATINUM = "PLATINUM"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    @property
    def threshold(self) -> int:
        return _THRESHOLDS[self]


_THRESHOLDS = {RewardTier(name): points for name, points in REWARD_TIER_THRESHOLDS}
_RANKS = {tier: index + 1 for index, tier in enumerate(RewardTier)}


def tier_for_points(points: int) -> RewardTier:
    """Map a point total to its tier using the fixed ascending thresholds."""
    current = RewardTier.BRONZE
    for tier in RewardTier:
        if points >= tier.threshold:
            current = tier
    return current


def parse_tier(value: Any) -> Optional[RewardTier]:
    """Parse a ledger category, ignoring unknown values."""
    if isinstance(value, RewardTier):
        return value
    try:
        return RewardTier(str(value).upper())
    except ValueError:
        return None


def total_points(entries: Iterable[Mapping[str, Any]]) -> int:
    return sum(int(entry.get("points") or 0) for entry in entries)


def highest_tier(entries: Iterable[Mapping[str, Any]]) -> RewardTier:
    """Highest tier recorded on any ledger entry; BRONZE for an empty ledger."""
    tiers = [parse_tier(entry.get("category")) for entry in entries]
    known = [tier for tier in tiers if tier is not None]
    if not known:
        return RewardTier.BRONZE
    return max(known, key=lambda tier: tier.rank)
