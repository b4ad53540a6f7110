"""
Async Redis client construction for the feed cache.
The client is created once at startup and owned by the application state.
"""
import logging
from typing import Optional

import redis.asyncio as aioredis

from tubehub.core.config import Settings

logger = logging.getLogger(__name__)


def create_redis_client(settings: Settings) -> aioredis.Redis:
    """
    Create an async Redis client with its own connection pool.

    No connection is made here; the first command connects lazily so a
    missing Redis never prevents startup.

    Args:
        settings: Application settings

    Returns:
        Redis client instance
    """
    logger.info("Initializing Redis client for feed cache")
    pool = aioredis.ConnectionPool.from_url(
        settings.redis_url,
        decode_responses=True,  # Automatically decode bytes to strings
        max_connections=10,
        socket_connect_timeout=settings.redis_socket_timeout,
        socket_timeout=settings.redis_socket_timeout,
    )
    return aioredis.Redis(connection_pool=pool)


async def close_redis_client(client: Optional[aioredis.Redis]) -> None:
    """
    Close the Redis client connection and cleanup resources.
    Should be called on application shutdown.
    """
    if client is None:
        return
    try:
        logger.info("Closing Redis connection")
        await client.aclose()
        logger.info("Redis connection closed successfully")
    except Exception as e:
        logger.error(f"Error closing Redis connection: {e}")


async def health_check(client: Optional[aioredis.Redis]) -> bool:
    """
    Check if Redis connection is healthy.

    Returns:
        True if Redis is accessible, False otherwise
    """
    if client is None:
        return False
    try:
        await client.ping()
        return True
    except Exception as e:
        logger.error(f"Redis health check failed: {e}")
        return False
