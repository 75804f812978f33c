"""
Background Repair

Runs after a write has returned: re-invalidates, eagerly repopulates the
most requested views (the entity, its owner's list, its parent listing
with fresh stats) and performs ledger, notification, email and audit
side effects. Every step is isolated; a failing step is logged and the
remaining steps still run. Nothing propagates to the original request.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple
from uuid import UUID

from opentelemetry import trace

from ..domain.localization.ports import AuditLogSink, EmailSink, EntityRepository
from ..domain.localization.value_objects import EntityType, UserCollection
from .localization.accessor import ReadThroughAccessor
from .localization.invalidator import CacheInvalidator
from .localization.materializer import Materializer
from .localization.notifications import NotificationService
from .localization.policy import CachePolicy
from .localization.rewards import RewardService
from .queues.tasks import RepairKind, RepairTask

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass(frozen=True)
class RepairReport:
    """Outcome of one repair task."""

    task_id: UUID
    completed_steps: Tuple[str, ...] = ()
    failed_steps: Tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.failed_steps


@dataclass
class _StepLog:
    completed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


def booking_email(
    booking: Mapping[str, Any], listing: Mapping[str, Any], user: Mapping[str, Any]
) -> Tuple[str, str]:
    """Subject and body of the customer booking email (source language)."""
    subject = "Booking Confirmation"
    body = (
        f"Hello {user.get('fname') or 'Customer'},\n\n"
        f"Your booking has been confirmed for: {listing.get('name')}\n"
        f"Booking Date: {booking.get('bookingDate')}\n"
        f"Number of Persons: {booking.get('numberOfPersons')}\n\n"
        "Thank you for choosing our services."
    )
    return subject, body


def admin_booking_email(
    booking: Mapping[str, Any], listing: Mapping[str, Any], user: Mapping[str, Any]
) -> Tuple[str, str]:
    subject = "New Booking Notification"
    body = (
        "Hello,\n\n"
        f"A new booking has been created for your listing: {listing.get('name')}\n"
        f"Customer: {user.get('fname') or ''} {user.get('lname') or ''}\n"
        f"Email: {user.get('email')}\n"
        f"Booking Date: {booking.get('bookingDate')}\n"
        f"Number of Persons: {booking.get('numberOfPersons')}\n\n"
        "Please review and manage this booking."
    )
    return subject, body


class RepairHandler:
    """Processes RepairTask payloads for the worker pool."""

    def __init__(
        self,
        policy: CachePolicy,
        repository: EntityRepository,
        accessor: ReadThroughAccessor,
        invalidator: CacheInvalidator,
        materializer: Materializer,
        rewards: RewardService,
        notifications: NotificationService,
        email_sink: Optional[EmailSink] = None,
        audit_sink: Optional[AuditLogSink] = None,
        admin_email: Optional[str] = None,
    ):
        self.policy = policy
        self.repository = repository
        self.accessor = accessor
        self.invalidator = invalidator
        self.materializer = materializer
        self.rewards = rewards
        self.notifications = notifications
        self.email_sink = email_sink
        self.audit_sink = audit_sink
        self.admin_email = admin_email

    async def __call__(self, task: RepairTask) -> RepairReport:
        return await self.handle(task)

    async def _step(
        self, steps: _StepLog, name: str, action: Callable[[], Awaitable[Any]], task
    ) -> None:
        try:
            await action()
        except Exception:
            steps.failed.append(name)
            logger.exception(
                f"Repair step '{name}' failed", extra={**task.log_context(), "step": name}
            )
        else:
            steps.completed.append(name)

    async def handle(self, task: RepairTask) -> RepairReport:
        """
        Run every repair step for one task.

        Returns:
            RepairReport listing completed and failed steps; never raises
        """
        steps = _StepLog()
        with tracer.start_as_current_span("repair.handle") as span:
            span.set_attribute("task_id", str(task.task_id))
            span.set_attribute("entity_type", task.entity_type.value)
            span.set_attribute("entity_id", str(task.entity_id))
            span.set_attribute("kind", task.kind.value)

            await self._step(steps, "invalidate", lambda: self._invalidate(task), task)
            await self._step(steps, "repopulate", lambda: self._repopulate(task), task)

            if task.reward_points and task.reward_user_id is not None:
                await self._step(
                    steps,
                    "rewards",
                    lambda: self.rewards.award_points(
                        task.reward_user_id, task.reward_points
                    ),
                    task,
                )

            await self._step(steps, "notify", lambda: self._notify(task), task)
            await self._step(steps, "email", lambda: self._email(task), task)
            await self._step(steps, "audit", lambda: self._audit(task), task)

            span.set_attribute("failed_steps", len(steps.failed))

        report = RepairReport(
            task_id=task.task_id,
            completed_steps=tuple(steps.completed),
            failed_steps=tuple(steps.failed),
        )
        if report.failed_steps:
            logger.error(
                f"Repair task {task.task_id} finished with failures",
                extra={**task.log_context(), "failed_steps": list(report.failed_steps)},
            )
        else:
            logger.debug("Repair task completed", extra=task.log_context())
        return report

    async def _invalidate(self, task: RepairTask) -> None:
        await self.invalidator.invalidate(
            task.entity_type,
            task.entity_id,
            task.affected_user_ids,
            task.parent_ids(),
            task.user_uids,
        )

    async def _repopulate(self, task: RepairTask) -> None:
        collection = UserCollection.for_entity(task.entity_type)
        for lang in self.policy.cached_languages:
            if task.kind is not RepairKind.DELETED:
                await self.accessor.get_entity(task.entity_type, task.entity_id, lang)

            if collection in (UserCollection.BOOKINGS, UserCollection.REVIEWS):
                for user_id in task.affected_user_ids:
                    await self.accessor.get_user_collection(
                        user_id, task.entity_type, lang
                    )

            for parent_id in task.parent_ids().get(EntityType.LISTING, ()):
                await self.accessor.get_entity(EntityType.LISTING, parent_id, lang)

    async def _related(self, task: RepairTask) -> Dict[str, Optional[Dict[str, Any]]]:
        record = await self.repository.get(task.entity_type, task.entity_id)
        listing = None
        user = None
        if record:
            if record.get("listingId") is not None:
                listing = await self.repository.get(
                    EntityType.LISTING, record["listingId"]
                )
            if record.get("userId") is not None:
                user = await self.repository.get(EntityType.USER, record["userId"])
        return {"record": record, "listing": listing, "user": user}

    async def _notify(self, task: RepairTask) -> None:
        if task.entity_type not in (EntityType.BOOKING, EntityType.REVIEW):
            return
        if task.kind is RepairKind.DELETED:
            return

        related = await self._related(task)
        record, listing = related["record"], related["listing"]
        if not record or record.get("userId") is None:
            return
        listing_name = (listing or {}).get("name") or "your listing"

        if task.entity_type is EntityType.BOOKING and task.kind is RepairKind.CREATED:
            title = "Booking Created"
            message = f"Your booking for {listing_name} has been created."
        elif task.entity_type is EntityType.REVIEW and task.kind is RepairKind.CREATED:
            title = "Review Submitted"
            message = (
                f"Your review for {listing_name} has been submitted "
                "and is pending approval."
            )
        elif task.entity_type is EntityType.REVIEW:
            title = "Review Status Updated"
            message = (
                f"Your review for {listing_name} is now "
                f"{str(record.get('status') or '').lower()}."
            )
        else:
            return

        await self.notifications.notify(
            record["userId"],
            title,
            message,
            entity_type=task.entity_type,
            entity_id=task.entity_id,
        )

    async def _email(self, task: RepairTask) -> None:
        if self.email_sink is None:
            return
        if task.entity_type is not EntityType.BOOKING or task.kind is not RepairKind.CREATED:
            return

        related = await self._related(task)
        booking, listing, user = related["record"], related["listing"], related["user"]
        if not booking or not listing or not user or not user.get("email"):
            return

        subject, body = booking_email(booking, listing, user)
        if not self.policy.is_source(task.language):
            subject = (
                await self.materializer.translate_text(
                    subject, task.language, self.policy.source_language, "email.subject"
                )
            ).value
            body = (
                await self.materializer.translate_text(
                    body, task.language, self.policy.source_language, "email.body"
                )
            ).value
        await self.email_sink.send(user["email"], subject, body)

        if self.admin_email:
            admin_subject, admin_body = admin_booking_email(booking, listing, user)
            await self.email_sink.send(self.admin_email, admin_subject, admin_body)

    async def _audit(self, task: RepairTask) -> None:
        if self.audit_sink is None or not task.audit_action:
            return
        await self.audit_sink.record(
            task.audit_action,
            {
                "entityName": task.entity_type.value.capitalize(),
                "entityId": task.entity_id,
                "userId": task.actor_user_id,
                "language": task.language,
                "taskId": str(task.task_id),
                "occurredAt": task.created_at.isoformat(),
            },
        )
