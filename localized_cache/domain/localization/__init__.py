"""
Localization cache domain: key scheme, field descriptors, typed results,
aggregate statistics, reward tiers and collaborator ports.
"""

from .aggregates import AggregateStats, compute_listing_stats
from .field_descriptors import (
    DESCRIPTORS,
    EntityDescriptor,
    FieldDescriptor,
    FieldKind,
    descriptor_for,
)
from .results import (
    CacheOutcome,
    CacheRead,
    CacheWrite,
    FieldTranslation,
    InvalidationReport,
    Materialized,
    Page,
    WriteResult,
)
from .rewards import RewardTier, tier_for_points
from .value_objects import TTL, CacheKey, EntityType, UserCollection, filter_hash

__all__ = [
    "AggregateStats",
    "compute_listing_stats",
    "DESCRIPTORS",
    "EntityDescriptor",
    "FieldDescriptor",
    "FieldKind",
    "descriptor_for",
    "CacheOutcome",
    "CacheRead",
    "CacheWrite",
    "FieldTranslation",
    "InvalidationReport",
    "Materialized",
    "Page",
    "WriteResult",
    "RewardTier",
    "tier_for_points",
    "TTL",
    "CacheKey",
    "EntityType",
    "UserCollection",
    "filter_hash",
]
