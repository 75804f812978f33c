"""
Localized Cache Global Constants

Centralized location for system-wide constants used across the package.
"""

from datetime import datetime, timezone

SECONDS_PER_DAY = 86400

# Languages
DEFAULT_SOURCE_LANGUAGE = "en"
DEFAULT_TARGET_LANGUAGE = "ar"

# Reward tiers, ascending by threshold (points needed to enter the tier)
REWARD_TIER_THRESHOLDS = (
    ("BRONZE", 0),
    ("SILVER", 1000),
    ("GOLD", 1500),
    ("PLATINUM", 2500),
)

# Moderation / booking statuses consulted by aggregate computation
ACCEPTED_REVIEW_STATUS = "ACCEPTED"
CONFIRMED_BOOKING_STATUS = "CONFIRMED"

# Default page sizes for filtered list caches
DEFAULT_LISTING_PAGE_SIZE = 8
DEFAULT_PAGE_SIZE = 10

# Batch size for SCAN-based pattern deletes
SCAN_BATCH_SIZE = 100


def get_current_timestamp() -> datetime:
    """Get current timestamp with UTC timezone."""
    return datetime.now(timezone.utc)
