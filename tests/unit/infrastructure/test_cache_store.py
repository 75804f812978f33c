"""
Unit tests for the Redis cache store.

The redis client is an AsyncMock; no server is required.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from localized_cache.core.config import Settings
from localized_cache.domain.localization.results import CacheOutcome
from localized_cache.infrastructure.redis.cache_store import RedisCacheStore
from localized_cache.infrastructure.redis.circuit_breaker import CircuitState


class TestRedisCacheStore:
    """Test RedisCacheStore over a mocked client."""

    @pytest.fixture
    def mock_client(self):
        client = AsyncMock()
        client.get = AsyncMock(return_value=None)
        client.ping = AsyncMock(return_value=True)
        return client

    @pytest.fixture
    def store(self, mock_client):
        return RedisCacheStore(Settings(_env_file=None), client=mock_client)

    @pytest.mark.asyncio
    async def test_get_hit_and_miss(self, store, mock_client):
        mock_client.get.return_value = '{"id": 1}'
        result = await store.get("listing:1:ar")
        assert result.hit
        assert result.value == '{"id": 1}'

        mock_client.get.return_value = None
        result = await store.get("listing:1:ar")
        assert result.outcome is CacheOutcome.MISS

    @pytest.mark.asyncio
    async def test_set_with_ttl_uses_setex(self, store, mock_client):
        result = await store.set_with_ttl("listing:1:ar", "{}", 60)

        assert result.ok
        mock_client.setex.assert_awaited_once_with("listing:1:ar", 60, "{}")

    @pytest.mark.asyncio
    async def test_zero_ttl_sets_without_expiry(self, store, mock_client):
        await store.set_with_ttl("category:1:ar", "{}", 0)

        mock_client.set.assert_awaited_once_with("category:1:ar", "{}")
        mock_client.setex.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_many(self, store, mock_client):
        mock_client.delete.return_value = 2
        result = await store.delete("a", "b", "c")

        assert result.affected == 2
        mock_client.delete.assert_awaited_once_with("a", "b", "c")

    @pytest.mark.asyncio
    async def test_delete_nothing(self, store, mock_client):
        result = await store.delete()
        assert result.ok
        mock_client.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_pattern_scans_until_cursor_zero(self, store, mock_client):
        mock_client.scan = AsyncMock(
            side_effect=[(17, ["listings:all:ar", "listings:all:x:ar"]), (0, ["listings:all:y:ar"])]
        )
        mock_client.unlink = AsyncMock(side_effect=[2, 1])

        result = await store.delete_pattern("listings:all*:ar")

        assert result.ok
        assert result.affected == 3
        assert mock_client.scan.await_count == 2
        first_call = mock_client.scan.await_args_list[0]
        assert first_call.kwargs["match"] == "listings:all*:ar"
        assert first_call.kwargs["cursor"] == 0
        assert mock_client.scan.await_args_list[1].kwargs["cursor"] == 17
        mock_client.keys.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_pattern_skips_empty_batches(self, store, mock_client):
        mock_client.scan = AsyncMock(return_value=(0, []))

        result = await store.delete_pattern("users:all*:ar")

        assert result.affected == 0
        mock_client.unlink.assert_not_called()

    @pytest.mark.asyncio
    async def test_key_prefix(self, mock_client):
        store = RedisCacheStore(
            Settings(_env_file=None, REDIS_KEY_PREFIX="app:"), client=mock_client
        )
        mock_client.scan = AsyncMock(return_value=(0, []))

        await store.get("listing:1:ar")
        await store.delete_pattern("listings:all*:ar")

        mock_client.get.assert_awaited_once_with("app:listing:1:ar")
        assert mock_client.scan.await_args.kwargs["match"] == "app:listings:all*:ar"

    @pytest.mark.asyncio
    async def test_list_operations(self, store, mock_client):
        mock_client.lpush.return_value = 3
        mock_client.lrange.return_value = ["b", "a"]

        assert (await store.list_push("user:1:notifications_list:ar", "c")).affected == 3
        assert (await store.list_trim("user:1:notifications_list:ar", 0, 999)).ok
        read = await store.list_range("user:1:notifications_list:ar", 0, -1)

        assert read.value == ["b", "a"]
        mock_client.ltrim.assert_awaited_once_with("user:1:notifications_list:ar", 0, 999)

    @pytest.mark.asyncio
    async def test_push_only_if_exists_uses_lpushx(self, store, mock_client):
        mock_client.lpushx.return_value = 0

        result = await store.list_push(
            "user:1:notifications_list:ar", "c", only_if_exists=True
        )

        assert result.ok
        assert result.affected == 0
        mock_client.lpushx.assert_awaited_once_with("user:1:notifications_list:ar", "c")
        mock_client.lpush.assert_not_called()

    @pytest.mark.asyncio
    async def test_list_replace_runs_one_transaction(self, store, mock_client):
        pipe = MagicMock()
        pipe.execute = AsyncMock(return_value=[1, 2, True])
        mock_client.pipeline = MagicMock(return_value=pipe)

        result = await store.list_replace("user:1:notifications_list:ar", ["b", "a"], 60)

        assert result.affected == 2
        mock_client.pipeline.assert_called_once_with(transaction=True)
        pipe.delete.assert_called_once_with("user:1:notifications_list:ar")
        pipe.rpush.assert_called_once_with("user:1:notifications_list:ar", "b", "a")
        pipe.expire.assert_called_once_with("user:1:notifications_list:ar", 60)
        pipe.execute.assert_awaited_once()
        mock_client.lpush.assert_not_called()

    @pytest.mark.asyncio
    async def test_list_replace_failure_is_unavailable(self, store, mock_client):
        pipe = MagicMock()
        pipe.execute = AsyncMock(side_effect=RedisConnectionError("connection refused"))
        mock_client.pipeline = MagicMock(return_value=pipe)

        result = await store.list_replace("user:1:notifications_list:ar", ["a"], 60)

        assert result.outcome is CacheOutcome.UNAVAILABLE

    @pytest.mark.asyncio
    async def test_empty_list_is_a_miss(self, store, mock_client):
        mock_client.lrange.return_value = []
        read = await store.list_range("user:1:notifications_list:ar", 0, 0)
        assert read.outcome is CacheOutcome.MISS

    @pytest.mark.asyncio
    async def test_expire_and_persist(self, store, mock_client):
        mock_client.expire.return_value = True
        mock_client.persist.return_value = True

        assert (await store.expire("k", 10)).affected == 1
        await store.expire("k", 0)
        mock_client.persist.assert_awaited_once_with("k")

    @pytest.mark.asyncio
    async def test_failures_become_unavailable(self, store, mock_client):
        mock_client.get.side_effect = RedisConnectionError("connection refused")
        mock_client.setex.side_effect = RedisConnectionError("connection refused")

        read = await store.get("listing:1:ar")
        write = await store.set_with_ttl("listing:1:ar", "{}", 60)

        assert read.outcome is CacheOutcome.UNAVAILABLE
        assert write.outcome is CacheOutcome.UNAVAILABLE

    @pytest.mark.asyncio
    async def test_circuit_opens_and_short_circuits(self, mock_client):
        store = RedisCacheStore(
            Settings(_env_file=None, CIRCUIT_BREAKER_FAILURE_THRESHOLD=2),
            client=mock_client,
        )
        mock_client.get.side_effect = RedisConnectionError("connection refused")

        for _ in range(3):
            result = await store.get("listing:1:ar")
            assert result.outcome is CacheOutcome.UNAVAILABLE

        assert store.circuit_breaker.state is CircuitState.OPEN
        assert mock_client.get.await_count == 2

    @pytest.mark.asyncio
    async def test_uninitialized_store_is_unavailable(self):
        store = RedisCacheStore(Settings(_env_file=None))

        assert (await store.get("listing:1:ar")).outcome is CacheOutcome.UNAVAILABLE
        assert (await store.delete_pattern("x*")).outcome is CacheOutcome.UNAVAILABLE
        assert await store.ping() is False

    @pytest.mark.asyncio
    async def test_injected_client_not_closed(self, store, mock_client):
        await store.initialize()
        await store.close()

        mock_client.ping.assert_awaited()
        mock_client.aclose.assert_not_called()

    @pytest.mark.asyncio
    async def test_health_check(self, store):
        health = await store.health_check()

        assert health["status"] == "healthy"
        assert health["circuit_breaker"]["state"] == "closed"
