"""
TTL cache in front of a market data source.

Volume data changes slowly relative to the check cadences, so repeated
lookups for the same pool within the TTL are served from the cache. Pool
info is passed through uncached.
"""

import logging
from typing import Optional

from .base import MarketDataSource
from ..core.models import PoolInfo, VolumeData
from ..core.storage.base import CacheInterface, StorageError
from ..core.storage.redis import MemoryCache, RedisStorage

logger = logging.getLogger(__name__)

DEFAULT_VOLUME_TTL = 300


class CachedMarketData(MarketDataSource):
    """
    Market data source with cached volume lookups.

    Cache failures are logged and fall through to the wrapped source.
    """

    def __init__(self, source: MarketDataSource, cache: Optional[CacheInterface] = None,
                 ttl: int = DEFAULT_VOLUME_TTL):
        self.source = source
        self.cache = cache if cache is not None else MemoryCache()
        self.ttl = ttl

    @staticmethod
    def _volume_key(pool_id: str) -> str:
        return f"volume:{pool_id}"

    async def get_pool_info(self, pool_id: str) -> PoolInfo:
        return await self.source.get_pool_info(pool_id)

    async def get_volume(self, pool_id: str) -> VolumeData:
        key = self._volume_key(pool_id)

        try:
            cached = await self.cache.get(key)
            if cached is not None:
                logger.debug(f"Volume cache hit for {pool_id}")
                return VolumeData.from_dict(cached)
        except StorageError as e:
            logger.warning(f"Volume cache read failed for {pool_id}: {e}")

        volume = await self.source.get_volume(pool_id)

        try:
            await self.cache.set(key, volume.to_dict(), ttl=self.ttl)
        except StorageError as e:
            logger.warning(f"Volume cache write failed for {pool_id}: {e}")

        return volume

    async def invalidate(self, pool_id: Optional[str] = None) -> None:
        """Drop one pool's cached volume, or everything when pool_id is None."""
        if pool_id is None:
            await self.cache.clear()
        else:
            await self.cache.delete(self._volume_key(pool_id))


async def create_volume_cache(source: MarketDataSource, cache_settings) -> CachedMarketData:
    """
    Build the cached source from CacheSettings.

    A Redis backend that cannot be reached falls back to the in-memory cache.
    """
    if cache_settings.CACHE_BACKEND == "redis":
        redis_cache = RedisStorage(cache_settings.get_redis_connection_kwargs())
        try:
            await redis_cache.connect()
            return CachedMarketData(source, redis_cache, ttl=cache_settings.VOLUME_CACHE_TTL)
        except StorageError as e:
            logger.warning(f"Redis volume cache unavailable, using memory cache: {e}")

    return CachedMarketData(source, MemoryCache(), ttl=cache_settings.VOLUME_CACHE_TTL)
