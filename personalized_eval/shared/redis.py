"""Redis connection management for the conversation state backend."""

import logging

import redis.asyncio as redis

from personalized_eval.shared.config import get_settings

logger = logging.getLogger(__name__)

_redis_pool: redis.ConnectionPool | None = None


async def get_redis() -> redis.Redis:
    """Get a Redis client backed by the shared connection pool.

    Usage:
        redis_client = await get_redis()
        await redis_client.set("key", "value")
    """
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = redis.ConnectionPool.from_url(
            get_settings().redis_url,
            decode_responses=True,
        )
    return redis.Redis(connection_pool=_redis_pool)


async def close_redis() -> None:
    """Close the Redis connection pool.

    Call this on application shutdown.
    """
    global _redis_pool
    if _redis_pool is not None:
        try:
            await _redis_pool.aclose()
        except Exception as e:
            logger.warning(f"Error closing Redis pool: {e}")
        finally:
            _redis_pool = None
