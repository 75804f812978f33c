"""
Main pytest configuration for the localized cache tests.

Wires the real services over in-memory collaborators: a dict-backed
cache store, a deterministic translator and an in-memory repository.
"""

import os

import pytest
import structlog

# Set test environment variables before importing package modules
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ.pop("DEEPL_AUTH_KEY", None)

from localized_cache.services.localization import (
    CacheInvalidator,
    CachePolicy,
    LocalizedWriteService,
    Materializer,
    NotificationService,
    ReadThroughAccessor,
    RewardService,
)
from localized_cache.services.queues import RepairQueue
from localized_cache.services.repair import RepairHandler
from tests.fixtures.cache_doubles import FakeTranslator, InMemoryCacheStore
from tests.fixtures.config_data import make_settings
from tests.fixtures.entity_data import (
    InMemoryEntityRepository,
    RecordingAuditSink,
    RecordingEmailSink,
    RecordingNotificationSink,
    seed,
)

# Configure logging for tests
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def policy(settings):
    return CachePolicy.from_settings(settings)


@pytest.fixture
def store():
    return InMemoryCacheStore()


@pytest.fixture
def translator():
    return FakeTranslator()


@pytest.fixture
def repository():
    """Repository loaded with two users, one listing, reviews and bookings."""
    return seed(InMemoryEntityRepository())


@pytest.fixture
def notification_sink():
    return RecordingNotificationSink()


@pytest.fixture
def email_sink():
    return RecordingEmailSink()


@pytest.fixture
def audit_sink():
    return RecordingAuditSink()


@pytest.fixture
def materializer(translator):
    return Materializer(translator)


@pytest.fixture
def accessor(store, repository, materializer, policy):
    return ReadThroughAccessor(store, repository, materializer, policy)


@pytest.fixture
def invalidator(store, policy):
    return CacheInvalidator(store, policy)


@pytest.fixture
def notifications(notification_sink, store, materializer, policy):
    return NotificationService(notification_sink, store, materializer, policy)


@pytest.fixture
def rewards(repository, notifications, invalidator):
    return RewardService(repository, notifications, invalidator)


@pytest.fixture
def repair_queue():
    return RepairQueue(max_size=100)


@pytest.fixture
def writes(repository, materializer, invalidator, repair_queue, policy):
    return LocalizedWriteService(
        repository, materializer, invalidator, repair_queue, policy
    )


@pytest.fixture
def repair_handler(
    policy,
    repository,
    accessor,
    invalidator,
    materializer,
    rewards,
    notifications,
    email_sink,
    audit_sink,
):
    return RepairHandler(
        policy=policy,
        repository=repository,
        accessor=accessor,
        invalidator=invalidator,
        materializer=materializer,
        rewards=rewards,
        notifications=notifications,
        email_sink=email_sink,
        audit_sink=audit_sink,
        admin_email="admin@example.com",
    )
