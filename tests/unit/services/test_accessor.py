"""
Unit tests for the read-through accessor.
"""

import asyncio
import dataclasses
import json

import pytest

from localized_cache.core.exceptions import UnsupportedLanguageError
from localized_cache.domain.localization.value_objects import CacheKey, EntityType
from localized_cache.services.localization.accessor import (
    ReadThroughAccessor,
    serialize_view,
)
from localized_cache.services.localization.materializer import Materializer
from tests.fixtures.cache_doubles import FakeTranslator, translated


class TestEntityReads:
    """Test single entity read-through."""

    @pytest.mark.asyncio
    async def test_miss_populates_cache(self, accessor, store):
        view = await accessor.get_listing(10, "ar")

        assert view["name"] == translated("Sunset Yoga")
        assert "listing:10:ar" in store.values
        assert store.ttls["listing:10:ar"] == 30 * 86400
        assert json.loads(store.values["listing:10:ar"]) == view

    @pytest.mark.asyncio
    async def test_hit_skips_repository_and_translation(
        self, accessor, repository, translator
    ):
        first = await accessor.get_listing(10, "ar")
        gets, calls = repository.get_calls, len(translator.calls)

        second = await accessor.get_listing(10, "ar")

        assert second == first
        assert repository.get_calls == gets
        assert len(translator.calls) == calls

    @pytest.mark.asyncio
    async def test_repeated_reads_are_identical(self, accessor, store):
        first = await accessor.get_listing(10, "ar")
        stored = store.values["listing:10:ar"]
        second = await accessor.get_listing(10, "ar")

        assert serialize_view(first) == serialize_view(second)
        assert store.values["listing:10:ar"] == stored

    @pytest.mark.asyncio
    async def test_listing_stats_from_canonical_reviews(self, accessor):
        view = await accessor.get_listing(10, "ar")
        stats = view["stats"]

        assert stats["totalReviews"] == 4
        assert stats["ratingHistogram"] == {"5": 2, "4": 1, "3": 1, "2": 0, "1": 0}
        assert stats["totalBookings"] == 2
        assert stats["confirmedBookings"] == 1

    @pytest.mark.asyncio
    async def test_embedded_reviews_localized_with_display_names(self, accessor):
        view = await accessor.get_listing(10, "ar")
        review = view["reviews"][0]

        assert review["comment"] == translated("Great")
        assert review["user"]["fname"] == "Ali"
        assert review["userName"] == "Ali Hassan"

    @pytest.mark.asyncio
    async def test_source_language_bypasses_cache(self, accessor, store, translator):
        view = await accessor.get_listing(10, "en")

        assert view["name"] == "Sunset Yoga"
        assert view["stats"]["totalReviews"] == 4
        assert store.values == {}
        assert translator.calls == []

    @pytest.mark.asyncio
    async def test_not_found_is_not_cached(self, accessor, store, repository):
        assert await accessor.get_listing(999, "ar") is None
        assert await accessor.get_listing(999, "ar") is None

        assert store.values == {}
        assert repository.get_calls == 2

    @pytest.mark.asyncio
    async def test_store_outage_still_serves_views(self, accessor, store):
        store.available = False

        view = await accessor.get_listing(10, "ar")

        assert view["name"] == translated("Sunset Yoga")
        assert store.values == {}

    @pytest.mark.asyncio
    async def test_provider_outage_serves_source_text(self, store, repository, policy):
        accessor = ReadThroughAccessor(
            store, repository, Materializer(FakeTranslator(enabled=False)), policy
        )

        view = await accessor.get_listing(10, "ar")

        assert view["name"] == "Sunset Yoga"
        assert "listing:10:ar" in store.values

    @pytest.mark.asyncio
    async def test_undecodable_entry_replaced(self, accessor, store):
        store.values["listing:10:ar"] = "{not json"

        view = await accessor.get_listing(10, "ar")

        assert view["id"] == 10
        assert json.loads(store.values["listing:10:ar"]) == view

    @pytest.mark.asyncio
    async def test_ttl_not_refreshed_on_read_by_default(self, accessor, store):
        await accessor.get_listing(10, "ar")
        await accessor.get_listing(10, "ar")

        assert "expire listing:10:ar" not in store.operations

    @pytest.mark.asyncio
    async def test_ttl_refreshed_on_read_when_enabled(
        self, store, repository, materializer, policy
    ):
        accessor = ReadThroughAccessor(
            store,
            repository,
            materializer,
            dataclasses.replace(policy, refresh_ttl_on_read=True),
        )
        await accessor.get_listing(10, "ar")
        await accessor.get_listing(10, "ar")

        assert store.operations.count("expire listing:10:ar") == 1

    @pytest.mark.asyncio
    async def test_concurrent_misses_converge(self, store, repository, policy):
        accessor = ReadThroughAccessor(
            store, repository, Materializer(FakeTranslator(delay=0.01)), policy
        )

        views = await asyncio.gather(*(accessor.get_listing(10, "ar") for _ in range(5)))

        assert all(view == views[0] for view in views)
        assert json.loads(store.values["listing:10:ar"]) == views[0]

    @pytest.mark.asyncio
    async def test_category_kept_until_invalidated(self, accessor, store):
        view = await accessor.get_category(1, "ar")

        assert view["name"] == translated("Sports")
        assert store.ttls["category:1:ar"] == 0

    @pytest.mark.asyncio
    async def test_unsupported_language(self, accessor):
        with pytest.raises(UnsupportedLanguageError):
            await accessor.get_listing(10, "fr")

    @pytest.mark.asyncio
    async def test_language_code_normalized(self, accessor, store):
        await accessor.get_listing(10, "AR")
        assert "listing:10:ar" in store.values


class TestUserReads:
    @pytest.mark.asyncio
    async def test_user_view(self, accessor, repository):
        await repository.append_reward(1, 1200, "SILVER")

        view = await accessor.get_user(1, "ar")

        assert "password" not in view
        assert view["fname"] == "Ali"
        assert view["totalRewardPoints"] == 1200
        assert view["highestRewardCategory"] == translated("SILVER")

    @pytest.mark.asyncio
    async def test_user_by_uid(self, accessor, store):
        view = await accessor.get_user_by_uid("uid-ali", "ar")

        assert view["id"] == 1
        assert "user:uid:uid-ali:ar" in store.values
        assert await accessor.get_user_by_uid("missing", "ar") is None


class TestCollectionReads:
    @pytest.mark.asyncio
    async def test_user_bookings(self, accessor, store):
        bookings = await accessor.get_user_collection(1, EntityType.BOOKING, "ar")

        assert [b["id"] for b in bookings] == [200]
        assert bookings[0]["additionalNote"] == translated("Near the window")
        assert bookings[0]["userName"] == "Ali Hassan"
        assert bookings[0]["listing"]["name"] == translated("Sunset Yoga")
        assert "user:1:bookings:ar" in store.values

    @pytest.mark.asyncio
    async def test_user_collection_rejects_other_types(self, accessor):
        with pytest.raises(ValueError):
            await accessor.get_user_collection(1, EntityType.LISTING, "ar")

    @pytest.mark.asyncio
    async def test_empty_collection_cached(self, accessor, store, repository):
        repository.add(EntityType.USER, {"id": 3, "fname": "New", "lname": "User"})

        assert await accessor.get_user_collection(3, EntityType.REVIEW, "ar") == []
        assert store.values["user:3:reviews:ar"] == "[]"

    @pytest.mark.asyncio
    async def test_parent_collection(self, accessor, store):
        reviews = await accessor.get_parent_collection(
            EntityType.LISTING, 10, EntityType.REVIEW, "ar"
        )

        assert len(reviews) == 5
        assert "listing:10:reviews:ar" in store.values

    @pytest.mark.asyncio
    async def test_filtered_list_pagination(self, accessor, store):
        result = await accessor.get_filtered_list(
            EntityType.REVIEW, {"listingId": 10}, "ar", page=2, limit=2
        )

        assert [item["id"] for item in result["items"]] == [102, 103]
        assert result["pagination"] == {
            "total": 5,
            "page": 2,
            "limit": 2,
            "totalPages": 3,
            "hasNextPage": True,
            "hasPrevPage": True,
        }
        key = CacheKey.filtered_list(
            EntityType.REVIEW, {"listingId": 10, "page": 2, "limit": 2}, "ar"
        )
        assert key.value in store.values

    @pytest.mark.asyncio
    async def test_filtered_list_default_page_size(self, accessor):
        result = await accessor.get_filtered_list(EntityType.LISTING, None, "ar")

        assert result["pagination"]["limit"] == 8
        assert result["items"][0]["name"] == translated("Sunset Yoga")
        assert result["items"][0]["stats"]["totalReviews"] == 4

    @pytest.mark.asyncio
    async def test_filter_shapes_cached_separately(self, accessor, store):
        await accessor.get_filtered_list(EntityType.REVIEW, {}, "ar", page=1, limit=2)
        await accessor.get_filtered_list(EntityType.REVIEW, {}, "ar", page=2, limit=2)

        assert len(store.keys("reviews:all*:ar")) == 2
