"""
Cache Utility Module

Redis-backed cache for system-wide analytics. Caching is only active when
``REDIS_URL`` is configured; otherwise every lookup is a miss and nothing
is stored.
"""

import json
import logging
import time
from typing import Any

import redis.asyncio as redis

from viewguard.config import settings

logger = logging.getLogger(__name__)


class CacheManager:
    """
    Manages Redis-based caching for the application.

    Provides key-value caching with TTL and prefix invalidation. A failed
    connection disables caching and is retried after a 30-second cooldown.
    """

    PREFIX_ANALYTICS = "cache:analytics:"

    TTL_ANALYTICS = 120

    def __init__(self, redis_url: str | None = None):
        self.redis_url = redis_url
        self._redis: redis.Redis | None = None
        self._enabled = redis_url is not None
        self._last_connect_attempt: float = 0

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def connect(self) -> None:
        """Establish connection to Redis."""
        if self._redis is not None or self.redis_url is None:
            return

        self._last_connect_attempt = time.time()
        try:
            self._redis = redis.Redis.from_url(self.redis_url, decode_responses=True)
            await self._redis.ping()
            self._enabled = True
            logger.info("Cache: Successfully connected to Redis")
        except Exception as e:
            logger.warning(f"Cache: Failed to connect to Redis: {e}. Caching disabled.")
            self._redis = None
            self._enabled = False

    async def disconnect(self) -> None:
        """Close Redis connection"""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            logger.info("Cache: Disconnected from Redis")

    async def _maybe_retry_connect(self) -> None:
        """Re-attempt connection after a 30-second cooldown to allow self-healing."""
        if self.redis_url and not self._enabled and time.time() - self._last_connect_attempt >= 30:
            logger.info("Cache: retrying Redis connection after cooldown...")
            await self.connect()

    async def get(self, key: str) -> Any | None:
        await self._maybe_retry_connect()
        if not self._enabled:
            return None

        try:
            if not self._redis:
                await self.connect()
            if not self._redis:
                return None

            data = await self._redis.get(key)
            if data:
                logger.debug(f"Cache HIT: {key}")
                return json.loads(data)

            logger.debug(f"Cache MISS: {key}")
            return None
        except Exception as e:
            logger.warning(f"Cache get error for {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """
        Set a cached value with optional TTL.

        Args:
            key: Cache key
            value: Value to cache (must be JSON serializable)
            ttl: Time to live in seconds (default: TTL_ANALYTICS)

        Returns:
            True if successful, False otherwise
        """
        await self._maybe_retry_connect()
        if not self._enabled:
            return False

        try:
            if not self._redis:
                await self.connect()
            if not self._redis:
                return False

            ttl = ttl or self.TTL_ANALYTICS
            await self._redis.setex(key, ttl, json.dumps(value, default=str))
            logger.debug(f"Cache SET: {key} (TTL: {ttl}s)")
            return True
        except Exception as e:
            logger.warning(f"Cache set error for {key}: {e}")
            return False

    async def invalidate_analytics(self) -> int:
        """Drop every cached analytics entry."""
        if not self._enabled or not self._redis:
            return 0

        try:
            keys = [key async for key in self._redis.scan_iter(match=f"{self.PREFIX_ANALYTICS}*")]
            if keys:
                deleted = await self._redis.delete(*keys)
                logger.info(f"Cache: invalidated {deleted} analytics keys")
                return deleted
            return 0
        except Exception as e:
            logger.warning(f"Cache invalidation error: {e}")
            return 0


# Global cache manager instance
cache_manager = CacheManager(settings.redis_url)


async def get_cache_manager() -> CacheManager:
    """Return the cache manager, connecting on first use."""
    if cache_manager._redis is None and cache_manager.enabled:
        await cache_manager.connect()
    return cache_manager
