"""
Localization services: materializer, read-through accessor, invalidator,
write path, rewards and notification cache.
"""

from .accessor import ReadThroughAccessor
from .invalidator import CacheInvalidator
from .materializer import Materializer
from .notifications import NotificationService
from .policy import CachePolicy
from .rewards import RewardOutcome, RewardService
from .writes import LocalizedWriteService

__all__ = [
    "ReadThroughAccessor",
    "CacheInvalidator",
    "Materializer",
    "NotificationService",
    "CachePolicy",
    "RewardOutcome",
    "RewardService",
    "LocalizedWriteService",
]
