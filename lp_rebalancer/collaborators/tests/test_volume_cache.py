"""Tests for the cached market data source."""
import pytest
from unittest.mock import AsyncMock, Mock, patch

from lp_rebalancer.collaborators import CachedMarketData, create_volume_cache
from lp_rebalancer.core.models import VolumeData
from lp_rebalancer.core.storage import DataError, MemoryCache, RedisStorage


@pytest.fixture
def source():
    market = AsyncMock()
    market.get_volume.return_value = VolumeData(volume_24h=10_000.0, volume_ratio=1.4,
                                                fees_24h=30.0, total_liquidity=500_000.0)
    return market


class TestCachedMarketData:
    """Test cases for volume caching."""

    @pytest.mark.asyncio
    async def test_second_lookup_is_cached(self, source):
        cached = CachedMarketData(source, MemoryCache(), ttl=300)

        first = await cached.get_volume("pool-a")
        second = await cached.get_volume("pool-a")

        assert first == second
        source.get_volume.assert_awaited_once_with("pool-a")

    @pytest.mark.asyncio
    async def test_expired_entry_is_refetched(self, source):
        now = [0.0]
        cached = CachedMarketData(source, MemoryCache(clock=lambda: now[0]), ttl=300)

        await cached.get_volume("pool-a")
        now[0] = 301.0
        await cached.get_volume("pool-a")

        assert source.get_volume.await_count == 2

    @pytest.mark.asyncio
    async def test_pool_info_is_not_cached(self, source):
        cached = CachedMarketData(source)
        await cached.get_pool_info("pool-a")
        await cached.get_pool_info("pool-a")

        assert source.get_pool_info.await_count == 2

    @pytest.mark.asyncio
    async def test_cache_failure_falls_through(self, source):
        broken = AsyncMock()
        broken.get.side_effect = DataError("redis down")
        broken.set.side_effect = DataError("redis down")

        volume = await CachedMarketData(source, broken).get_volume("pool-a")

        assert volume.volume_ratio == 1.4

    @pytest.mark.asyncio
    async def test_source_errors_propagate(self, source):
        source.get_volume.side_effect = TimeoutError("upstream")
        with pytest.raises(TimeoutError):
            await CachedMarketData(source).get_volume("pool-a")

    @pytest.mark.asyncio
    async def test_invalidate(self, source):
        cached = CachedMarketData(source)
        await cached.get_volume("pool-a")
        await cached.invalidate("pool-a")
        await cached.get_volume("pool-a")

        assert source.get_volume.await_count == 2


class TestCreateVolumeCache:
    @pytest.mark.asyncio
    async def test_memory_backend(self, source):
        settings = Mock(CACHE_BACKEND="memory", VOLUME_CACHE_TTL=120)
        cached = await create_volume_cache(source, settings)

        assert isinstance(cached.cache, MemoryCache)
        assert cached.ttl == 120

    @patch.object(RedisStorage, 'connect', new_callable=AsyncMock)
    @pytest.mark.asyncio
    async def test_redis_backend(self, mock_connect, source):
        settings = Mock(CACHE_BACKEND="redis", VOLUME_CACHE_TTL=300)
        settings.get_redis_connection_kwargs.return_value = {'host': 'localhost', 'port': 6379}

        cached = await create_volume_cache(source, settings)

        assert isinstance(cached.cache, RedisStorage)
        mock_connect.assert_awaited_once()

    @patch.object(RedisStorage, 'connect', new_callable=AsyncMock)
    @pytest.mark.asyncio
    async def test_unreachable_redis_uses_memory(self, mock_connect, source):
        from lp_rebalancer.core.storage import ConnectionError as StorageConnectionError
        mock_connect.side_effect = StorageConnectionError("refused")
        settings = Mock(CACHE_BACKEND="redis", VOLUME_CACHE_TTL=300)
        settings.get_redis_connection_kwargs.return_value = {}

        cached = await create_volume_cache(source, settings)

        assert isinstance(cached.cache, MemoryCache)
