"""
Unit tests for the localized write path.
"""

import pytest

from localized_cache.core.exceptions import WriteFailureError
from localized_cache.domain.localization.value_objects import EntityType
from localized_cache.services.localization.writes import (
    LocalizedWriteService,
    audit_action,
)
from localized_cache.services.queues.tasks import RepairKind, RepairQueue
from tests.fixtures.cache_doubles import translated

NEW_BOOKING = {
    "listingId": 10,
    "userId": 2,
    "additionalNote": "قرب النافذة",
    "numberOfPersons": 3,
    "bookingDate": "2024-07-01",
}


class TestLocalizedWriteService:
    """Test synchronous invalidation and repair scheduling."""

    @pytest.fixture
    async def warm(self, accessor, store):
        await accessor.get_listing(10, "ar")
        await accessor.get_user_collection(2, EntityType.BOOKING, "ar")
        await accessor.get_filtered_list(EntityType.BOOKING, {}, "ar")
        await accessor.get_user(2, "ar")
        await accessor.get_user_by_uid("uid-sara", "ar")
        await accessor.get_category(1, "ar")
        return store

    @pytest.mark.asyncio
    async def test_create_canonicalizes_and_echoes_input(self, writes, repository):
        result = await writes.create(EntityType.BOOKING, NEW_BOOKING, "ar", actor_user_id=2)

        stored = repository.raw(EntityType.BOOKING, result.entity_id)
        assert stored["additionalNote"] == "en:قرب النافذة"
        assert stored["numberOfPersons"] == 3
        assert result.view["additionalNote"] == "قرب النافذة"
        assert result.view["id"] == result.entity_id

    @pytest.mark.asyncio
    async def test_source_language_input_stored_verbatim(self, writes, repository, translator):
        data = {**NEW_BOOKING, "additionalNote": "By the window"}

        result = await writes.create(EntityType.BOOKING, data, "en")

        assert repository.raw(EntityType.BOOKING, result.entity_id)["additionalNote"] == (
            "By the window"
        )
        assert translator.calls == []

    @pytest.mark.asyncio
    async def test_create_invalidates_before_returning(self, writes, warm):
        await writes.create(EntityType.BOOKING, NEW_BOOKING, "ar")

        assert warm.keys("listing:10:ar") == []
        assert warm.keys("user:2:bookings:ar") == []
        assert warm.keys("bookings:all*:ar") == []
        assert warm.keys("user:2:ar") == []
        assert warm.keys("category:1:ar") == ["category:1:ar"]

    @pytest.mark.asyncio
    async def test_create_schedules_repair_with_reward(self, writes, repair_queue):
        result = await writes.create(EntityType.BOOKING, NEW_BOOKING, "ar", actor_user_id=2)

        assert repair_queue.qsize() == 1
        task = await repair_queue.get()
        assert task.task_id == result.scheduled_task_id
        assert task.kind is RepairKind.CREATED
        assert task.language == "ar"
        assert task.affected_user_ids == (2,)
        assert task.parent_ids() == {EntityType.LISTING: (10,)}
        assert task.reward_points == 50
        assert task.reward_user_id == 2
        assert task.audit_action == "BOOKING_CREATED"

    @pytest.mark.asyncio
    async def test_reviews_earn_no_reward(self, writes, repair_queue):
        await writes.create(
            EntityType.REVIEW,
            {"listingId": 10, "userId": 2, "rating": 4, "comment": "Nice"},
            "en",
        )

        task = await repair_queue.get()
        assert task.reward_points == 0
        assert task.reward_user_id is None

    @pytest.mark.asyncio
    async def test_read_after_write_is_fresh(self, writes, accessor, warm):
        await writes.update(EntityType.LISTING, 10, {"name": "Sunrise Yoga"}, "en")

        view = await accessor.get_listing(10, "ar")

        assert view["name"] == translated("Sunrise Yoga")

    @pytest.mark.asyncio
    async def test_new_review_visible_in_listing_stats(self, writes, accessor, warm):
        await writes.create(
            EntityType.REVIEW,
            {"listingId": 10, "userId": 2, "rating": 1, "status": "ACCEPTED"},
            "en",
        )

        view = await accessor.get_listing(10, "ar")

        assert view["stats"]["totalReviews"] == 5
        assert view["stats"]["ratingHistogram"]["1"] == 1

    @pytest.mark.asyncio
    async def test_moving_a_review_invalidates_both_listings(
        self, writes, accessor, repository, store
    ):
        repository.add(EntityType.LISTING, {"id": 11, "name": "Pilates"})
        await accessor.get_listing(10, "ar")
        await accessor.get_listing(11, "ar")

        await writes.update(EntityType.REVIEW, 100, {"listingId": 11}, "en")

        assert store.keys("listing:10:ar") == []
        assert store.keys("listing:11:ar") == []

    @pytest.mark.asyncio
    async def test_listing_update_refreshes_embedding_views(
        self, writes, accessor, store
    ):
        await accessor.get_booking(200, "ar")
        await accessor.get_review(100, "ar")
        await accessor.get_user_collection(1, EntityType.BOOKING, "ar")
        await accessor.get_filtered_list(EntityType.REVIEW, {}, "ar")

        await writes.update(EntityType.LISTING, 10, {"name": "Moon Yoga"}, "en")

        assert store.keys("user:1:bookings:ar") == []
        assert store.keys("reviews:all*:ar") == []
        booking = await accessor.get_booking(200, "ar")
        review = await accessor.get_review(100, "ar")
        assert booking["listing"]["name"] == translated("Moon Yoga")
        assert review["listing"]["name"] == translated("Moon Yoga")

    @pytest.mark.asyncio
    async def test_review_update_refreshes_linked_booking(
        self, writes, accessor, repository
    ):
        repository.raw(EntityType.REVIEW, 100)["bookingId"] = 200
        before = await accessor.get_booking(200, "ar")

        await writes.update(EntityType.REVIEW, 100, {"comment": "Awful"}, "en")

        after = await accessor.get_booking(200, "ar")
        assert before["review"]["comment"] == translated("Great")
        assert after["review"]["comment"] == translated("Awful")

    @pytest.mark.asyncio
    async def test_user_update_refreshes_views_embedding_the_user(
        self, writes, accessor, store, repair_queue
    ):
        await accessor.get_listing(10, "ar")
        await accessor.get_booking(200, "ar")
        await accessor.get_review(100, "ar")
        await accessor.get_filtered_list(EntityType.BOOKING, {}, "ar")

        await writes.update(EntityType.USER, 1, {"fname": "Omar"}, "en")

        assert store.keys("bookings:all*:ar") == []
        listing = await accessor.get_listing(10, "ar")
        booking = await accessor.get_booking(200, "ar")
        review = await accessor.get_review(100, "ar")
        assert listing["reviews"][0]["userName"] == "Omar Hassan"
        assert booking["user"]["fname"] == "Omar"
        assert review["user"]["fname"] == "Omar"
        task = await repair_queue.get()
        assert task.parent_ids() == {
            EntityType.BOOKING: (200,),
            EntityType.LISTING: (10,),
            EntityType.REVIEW: (100, 102),
        }

    @pytest.mark.asyncio
    async def test_write_failure_changes_nothing(self, writes, repository, repair_queue, warm):
        before = dict(warm.values)
        repository.fail_writes = True

        with pytest.raises(WriteFailureError) as exc_info:
            await writes.create(EntityType.BOOKING, NEW_BOOKING, "ar")

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert warm.values == before
        assert repair_queue.qsize() == 0

    @pytest.mark.asyncio
    async def test_update_failure(self, writes, repository, repair_queue):
        repository.fail_writes = True

        with pytest.raises(WriteFailureError):
            await writes.update(EntityType.LISTING, 10, {"name": "x"}, "en")
        assert repair_queue.qsize() == 0

    @pytest.mark.asyncio
    async def test_update_missing_entity(self, writes, repair_queue):
        result = await writes.update(EntityType.LISTING, 999, {"name": "x"}, "en")

        assert result.view is None
        assert result.scheduled_task_id is None
        assert repair_queue.qsize() == 0

    @pytest.mark.asyncio
    async def test_update_user_hides_password(self, writes):
        result = await writes.update(EntityType.USER, 1, {"phone": "+971"}, "en")

        assert "password" not in result.view
        assert result.view["phone"] == "+971"

    @pytest.mark.asyncio
    async def test_delete_booking(self, writes, repair_queue, warm):
        result = await writes.delete(EntityType.BOOKING, 201, "ar")

        assert result.view["id"] == 201
        assert warm.keys("user:2:bookings:ar") == []
        assert warm.keys("listing:10:ar") == []
        task = await repair_queue.get()
        assert task.kind is RepairKind.DELETED
        assert task.audit_action == "BOOKING_DELETED"

    @pytest.mark.asyncio
    async def test_delete_user_cascades_to_listings_and_aliases(self, writes, warm, repair_queue):
        await writes.delete(EntityType.USER, 2, "en")

        assert warm.keys("user:2:*") == []
        assert warm.keys("user:uid:uid-sara:ar") == []
        assert warm.keys("listing:10:ar") == []
        task = await repair_queue.get()
        assert task.user_uids == ("uid-sara",)
        assert task.parent_ids() == {
            EntityType.BOOKING: (201,),
            EntityType.LISTING: (10,),
            EntityType.REVIEW: (101, 103, 104),
        }

    @pytest.mark.asyncio
    async def test_full_queue_drops_repair_but_keeps_invalidation(
        self, repository, materializer, invalidator, policy, warm
    ):
        queue = RepairQueue(max_size=1)
        writes = LocalizedWriteService(repository, materializer, invalidator, queue, policy)

        first = await writes.create(EntityType.BOOKING, NEW_BOOKING, "en")
        await writes.update(EntityType.LISTING, 10, {"name": "x"}, "en")
        second = await writes.create(EntityType.BOOKING, NEW_BOOKING, "en")

        assert first.scheduled_task_id is not None
        assert second.scheduled_task_id is None
        assert second.invalidation.keys
        assert queue.get_stats()["dropped"] == 2


def test_audit_action():
    assert audit_action(EntityType.REVIEW, RepairKind.UPDATED) == "REVIEW_UPDATED"
