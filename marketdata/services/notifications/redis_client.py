"""
Redis client for price update fan-out.

Newly saved price records are published on Redis pub/sub channels so that
other processes can follow them. When Redis is unreachable the notifier
keeps delivering in-process only.
"""

import logging
from typing import Optional

import redis.asyncio as redis

from marketdata.core.config import settings

logger = logging.getLogger(__name__)

# Global Redis connection pool
_redis_pool: Optional[redis.Redis] = None

# Channel prefix for pub/sub topics
CHANNEL_PREFIX = "marketdata:"


def channel_for(topic: str) -> str:
    """Redis channel name for a notifier topic."""
    return f"{CHANNEL_PREFIX}{topic}"


async def init_redis(url: Optional[str] = None) -> Optional[redis.Redis]:
    """
    Initialize Redis connection pool.
    Called on application startup.
    """
    global _redis_pool

    if _redis_pool is not None:
        return _redis_pool

    if not settings.redis_enabled:
        logger.info("Redis disabled; price updates delivered in-process only")
        return None

    try:
        _redis_pool = redis.from_url(
            url or settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
        # Test connection
        await _redis_pool.ping()
        logger.info(f"Redis connected: {url or settings.redis_url}")
        return _redis_pool
    except Exception as e:
        logger.warning(f"Redis connection failed: {e}. Using in-process delivery only.")
        _redis_pool = None
        return None


async def close_redis() -> None:
    """Close Redis connection pool."""
    global _redis_pool
    if _redis_pool:
        await _redis_pool.close()
        _redis_pool = None
        logger.info("Redis connection closed")


def get_redis() -> Optional[redis.Redis]:
    """Get the Redis connection pool."""
    return _redis_pool
