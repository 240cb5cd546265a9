"""Redis Client

Provides async Redis client management for the response cache.
Redis is optional: when no URL is configured the client stays disconnected
and callers fall back to in-process storage.
"""

import logging
from typing import Optional

import redis.asyncio as redis

from bizsuite.config.settings import get_settings

logger = logging.getLogger(__name__)


class RedisClient:
    """Async Redis client wrapper"""

    def __init__(self, url: Optional[str] = None):
        self._url = url
        self._client: Optional[redis.Redis] = None

    @property
    def is_configured(self) -> bool:
        return bool(self._url)

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def connect(self):
        """Establish Redis connection.

        Does nothing when no URL is configured. A failed ping leaves the
        client disconnected and is logged, not raised.
        """
        if self._client or not self._url:
            return

        client = redis.from_url(self._url, decode_responses=True)
        try:
            await client.ping()
        except redis.RedisError as e:
            logger.warning(f"Redis unavailable at startup, using in-memory cache: {e}")
            await client.close()
            return

        self._client = client
        logger.info("Connected to Redis")

    async def disconnect(self):
        """Close Redis connection"""
        if self._client:
            await self._client.close()
            self._client = None
            logger.info("Disconnected from Redis")

    def get_client(self) -> redis.Redis:
        """Get the underlying Redis client

        Raises:
            RuntimeError: If client not connected
        """
        if not self._client:
            raise RuntimeError("Redis client not connected. Call connect() first.")
        return self._client

    async def health_check(self) -> bool:
        """Check Redis connection health

        Returns:
            True if Redis is responsive, False otherwise
        """
        try:
            if not self._client:
                return False
            await self._client.ping()
            return True
        except redis.RedisError as e:
            logger.error(f"Redis health check failed: {e}")
            return False


# Global Redis client instance
_redis_client: Optional[RedisClient] = None


async def get_redis_client() -> RedisClient:
    """Get or create global Redis client

    Returns:
        RedisClient instance, connected when Redis is configured and reachable
    """
    global _redis_client
    if not _redis_client:
        _redis_client = RedisClient(get_settings().redis_url)
        await _redis_client.connect()
    return _redis_client


async def close_redis_client():
    """Close global Redis client"""
    global _redis_client
    if _redis_client:
        await _redis_client.disconnect()
        _redis_client = None
