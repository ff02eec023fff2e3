"""Redis client for RelayFlow."""

from typing import Optional

import redis.asyncio as redis
import structlog

from relayflow.config import settings

logger = structlog.get_logger()

_redis_client: Optional[redis.Redis] = None


def get_redis_client() -> redis.Redis:
    """Get Redis client instance (singleton)."""
    global _redis_client

    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.redis_url,
            decode_responses=True,
            encoding="utf-8",
        )
        logger.info("Connected to Redis", redis_url=settings.redis_url)

    return _redis_client


async def close_redis_client():
    """Close Redis client connection."""
    global _redis_client

    if _redis_client:
        await _redis_client.close()
        _redis_client = None
        logger.info("Closed Redis connection")
