"""
Cache backends for short-lived market data.
"""

import json
import logging
import time
from typing import Any, Dict, Optional, Tuple

import redis.asyncio as redis
from redis.asyncio import Redis

from .base import (
    StorageBase,
    CacheInterface,
    ConnectionError,
    DataError
)

logger = logging.getLogger(__name__)


class RedisStorage(StorageBase, CacheInterface):
    """
    Redis cache with TTL support.

    Values are JSON serialized. All keys are namespaced with key_prefix so
    clear() only touches entries owned by this cache.
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize Redis storage.

        Args:
            config: Configuration with keys:
                - host: Redis host
                - port: Redis port
                - password: Redis password (optional)
                - db: Redis database number (default: 0)
                - socket_timeout: Socket timeout in seconds (default: 5)
                - key_prefix: Namespace for cache keys (default: 'lp_rebalancer')
        """
        super().__init__(config)
        self.client: Optional[Redis] = None
        self.key_prefix = config.get('key_prefix', 'lp_rebalancer')

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}:{key}"

    async def connect(self) -> None:
        """Establish connection to Redis."""
        try:
            pool_kwargs = {
                'host': self.config.get('host', 'localhost'),
                'port': self.config.get('port', 6379),
                'db': self.config.get('db', 0),
                'decode_responses': True,
                'socket_timeout': self.config.get('socket_timeout', 5),
            }

            # Only add password if it's actually set
            password = self.config.get('password')
            if password is not None:
                pool_kwargs['password'] = password

            pool = redis.ConnectionPool(**pool_kwargs)
            self.client = redis.Redis(connection_pool=pool)

            # Test connection
            await self.client.ping()

            self.is_connected = True
            logger.info("Redis connection established")

        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            raise ConnectionError(f"Redis connection failed: {e}")

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self.client:
            await self.client.close()

        self.is_connected = False
        logger.info("Redis connection closed")

    async def health_check(self) -> bool:
        """Check Redis connection health."""
        if not self.client:
            return False

        try:
            response = await self.client.ping()
            return response is True
        except Exception as e:
            logger.error(f"Redis health check failed: {e}")
            return False

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if not self.client:
            raise ConnectionError("Not connected to Redis")

        try:
            payload = json.dumps(value, default=str)

            if ttl:
                result = await self.client.setex(self._key(key), ttl, payload)
            else:
                result = await self.client.set(self._key(key), payload)

            return result is True

        except Exception as e:
            logger.error(f"Failed to set cache key {key}: {e}")
            raise DataError(f"Cache set failed: {e}")

    async def get(self, key: str) -> Optional[Any]:
        if not self.client:
            raise ConnectionError("Not connected to Redis")

        try:
            value = await self.client.get(self._key(key))
            if value is None:
                return None
            return json.loads(value)

        except Exception as e:
            logger.error(f"Failed to get cache key {key}: {e}")
            raise DataError(f"Cache get failed: {e}")

    async def delete(self, key: str) -> bool:
        if not self.client:
            raise ConnectionError("Not connected to Redis")

        try:
            result = await self.client.delete(self._key(key))
            return result > 0

        except Exception as e:
            logger.error(f"Failed to delete cache key {key}: {e}")
            raise DataError(f"Cache delete failed: {e}")

    async def clear(self) -> None:
        if not self.client:
            raise ConnectionError("Not connected to Redis")

        try:
            async for key in self.client.scan_iter(match=self._key('*')):
                await self.client.delete(key)
        except Exception as e:
            logger.error(f"Failed to clear cache: {e}")
            raise DataError(f"Cache clear failed: {e}")


class MemoryCache(CacheInterface):
    """Process-local TTL cache. Expired entries are dropped on read."""

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, Optional[float]]] = {}

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        expires_at = self._clock() + ttl if ttl else None
        self._entries[key] = (value, expires_at)
        return True

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def clear(self) -> None:
        self._entries.clear()
