"""
Redis Client Management
Shared async connection helper for the conversation, profile and interaction stores
"""

from typing import Optional

import redis.asyncio as redis
from loguru import logger

from ..config import settings


async def connect_redis(redis_url: Optional[str] = None) -> Optional[redis.Redis]:
    """
    Open and ping an async Redis client.

    Args:
        redis_url: Connection URL (defaults to settings.redis_url)

    Returns:
        Connected client, or None when Redis is unreachable
    """
    url = redis_url or settings.redis_url
    try:
        client = redis.from_url(
            url,
            encoding="utf-8",
            decode_responses=True,
            socket_timeout=5,
            socket_connect_timeout=5,
        )
        await client.ping()
        logger.info(f"Redis connected: {settings.REDIS_HOST}:{settings.REDIS_PORT} (DB: {settings.REDIS_DB})")
        return client
    except Exception as e:
        logger.warning(f"Redis connection failed, using in-memory storage: {e}")
        return None


class RedisBackedStore:
    """
    Base for stores that keep data in Redis and fall back to process memory
    when Redis is disabled, unreachable or failing.
    """

    key_prefix = "tenant_ai"

    def __init__(self, redis_url: Optional[str] = None, enabled: Optional[bool] = None):
        self.redis_url = redis_url or settings.redis_url
        self.enabled = settings.REDIS_ENABLED if enabled is None else enabled
        self.redis_client: Optional[redis.Redis] = None
        self._initialized = False

    async def _ensure_connected(self):
        """Connect once; stay in memory mode if that fails"""
        if self._initialized:
            return
        if self.enabled:
            self.redis_client = await connect_redis(self.redis_url)
        self._initialized = True

    def _get_key(self, user_id: str) -> str:
        return f"{self.key_prefix}:{user_id}"

    @property
    def backend(self) -> str:
        return "redis" if self.redis_client is not None else "memory"

    async def close(self):
        if self.redis_client is not None:
            await self.redis_client.aclose()
            logger.info(f"{type(self).__name__} connection closed")
