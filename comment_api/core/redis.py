# ruff: noqa: PLW0603
"""Key-value store connection management.

The store (Redis or Valkey) is the only persistence layer. A single
``redis.asyncio`` client with its own connection pool is shared by all
requests.
"""

import redis.asyncio as redis

from comment_api.config import get_settings
from comment_api.core.logging import get_logger


logger = get_logger(__name__)

_redis_client: redis.Redis | None = None


async def init_redis() -> redis.Redis:
    """Initialize the store client and verify it answers PING.

    Raises:
        redis.RedisError: If the store cannot be reached.
    """
    global _redis_client

    settings = get_settings()

    client = redis.from_url(
        settings.redis_url,
        max_connections=settings.redis_max_connections,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_connect_timeout,
        health_check_interval=settings.redis_health_check_interval,
        decode_responses=True,
    )

    try:
        await client.ping()
    except redis.RedisError as e:
        logger.error(
            "redis_connection_failed", addr=settings.redis_addr, error=str(e)
        )
        await client.aclose()
        raise

    logger.info("redis_connected", addr=settings.redis_addr, db=settings.redis_db)
    _redis_client = client
    return _redis_client


async def shutdown_redis() -> None:
    """Close the store client."""
    global _redis_client

    if _redis_client:
        await _redis_client.aclose()
        logger.info("redis_disconnected")
        _redis_client = None


def get_redis() -> redis.Redis | None:
    """Get the store client instance."""
    return _redis_client


async def ping_redis(client: redis.Redis | None) -> tuple[bool, str]:
    """Check store reachability.

    Returns:
        Tuple of (reachable, error message).
    """
    if client is None:
        return False, "store client not initialized"
    try:
        await client.ping()
    except redis.RedisError as e:
        return False, str(e)
    return True, ""
