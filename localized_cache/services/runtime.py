"""
Localization Runtime

Explicit composition root. Builds the cache store, translation provider,
services and repair worker pool from one Settings instance; start() and
stop() own their lifecycle. Components receive their collaborators as
constructor arguments; nothing is module-level state.
"""

from typing import Any, Dict, Optional

import structlog

from ..core.config import Settings, get_settings
from ..domain.localization.ports import (
    AuditLogSink,
    CacheStore,
    EmailSink,
    EntityRepository,
    NotificationSink,
    TranslationProvider,
)
from ..infrastructure.redis.cache_store import RedisCacheStore
from ..infrastructure.translation.deepl_provider import DeepLTranslationProvider
from .localization.accessor import ReadThroughAccessor
from .localization.invalidator import CacheInvalidator
from .localization.materializer import Materializer
from .localization.notifications import NotificationService
from .localization.policy import CachePolicy
from .localization.rewards import RewardService
from .localization.writes import LocalizedWriteService
from .queues.tasks import RepairQueue
from .queues.workers import RepairWorkerPool
from .repair import RepairHandler

logger = structlog.get_logger()


class LocalizationRuntime:
    """
    Wires and runs the localization cache.

    Usage:
        async with LocalizationRuntime(repository, sink, settings=settings) as runtime:
            view = await runtime.accessor.get_listing(7, "ar")
    """

    def __init__(
        self,
        repository: EntityRepository,
        notification_sink: NotificationSink,
        settings: Optional[Settings] = None,
        email_sink: Optional[EmailSink] = None,
        audit_sink: Optional[AuditLogSink] = None,
        cache_store: Optional[CacheStore] = None,
        translator: Optional[TranslationProvider] = None,
    ):
        self.settings = settings or get_settings()
        self.policy = CachePolicy.from_settings(self.settings)
        self.repository = repository

        self.cache_store = cache_store or RedisCacheStore(self.settings)
        self.translator = translator or DeepLTranslationProvider(self.settings)

        self.materializer = Materializer(self.translator)
        self.accessor = ReadThroughAccessor(
            self.cache_store, repository, self.materializer, self.policy
        )
        self.invalidator = CacheInvalidator(self.cache_store, self.policy)
        self.notifications = NotificationService(
            notification_sink, self.cache_store, self.materializer, self.policy
        )
        self.rewards = RewardService(
            repository, self.notifications, self.invalidator
        )

        self.queue = RepairQueue(self.settings.REPAIR_QUEUE_MAX_SIZE)
        self.repair_handler = RepairHandler(
            policy=self.policy,
            repository=repository,
            accessor=self.accessor,
            invalidator=self.invalidator,
            materializer=self.materializer,
            rewards=self.rewards,
            notifications=self.notifications,
            email_sink=email_sink,
            audit_sink=audit_sink,
            admin_email=self.settings.ADMIN_EMAIL,
        )
        self.workers = RepairWorkerPool(
            self.queue, self.repair_handler, worker_count=self.settings.REPAIR_WORKERS
        )
        self.writes = LocalizedWriteService(
            repository,
            self.materializer,
            self.invalidator,
            self.queue,
            self.policy,
            booking_reward_points=self.settings.BOOKING_REWARD_POINTS,
        )
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        """Connect clients and start the repair workers."""
        if self._started:
            return

        logger.info(
            "Starting localization runtime",
            source_language=self.policy.source_language,
            target_language=self.policy.target_language,
            repair_workers=self.settings.REPAIR_WORKERS,
        )
        await _maybe_call(self.cache_store, "initialize")
        await _maybe_call(self.translator, "initialize")
        if not self.translator.enabled:
            logger.warning(
                "Translation provider disabled; localized reads serve source text"
            )
        await self.workers.start()
        self._started = True
        logger.info("Localization runtime started")

    async def stop(self) -> None:
        """Drain the repair queue within the grace period and close clients."""
        if not self._started:
            return

        logger.info("Stopping localization runtime", pending=self.queue.qsize())
        try:
            await self.workers.stop(self.settings.REPAIR_SHUTDOWN_GRACE_SECONDS)
        finally:
            await _maybe_call(self.translator, "close")
            await _maybe_call(self.cache_store, "close")
            self._started = False
        logger.info("Localization runtime stopped")

    async def __aenter__(self) -> "LocalizationRuntime":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def health_check(self) -> Dict[str, Any]:
        cache_health: Dict[str, Any] = {"status": "unknown"}
        if hasattr(self.cache_store, "health_check"):
            cache_health = await self.cache_store.health_check()
        return {
            "status": "healthy" if cache_health.get("status") == "healthy" else "degraded",
            "cache_store": cache_health,
            "translation_enabled": self.translator.enabled,
            "repair_workers": self.workers.get_pool_stats(),
        }


async def _maybe_call(component: Any, method: str) -> None:
    """Call an optional lifecycle hook on an injected component."""
    hook = getattr(component, method, None)
    if hook is not None:
        await hook()
