"""
Centralized Redis client manager with connection pooling.
Shared by the event publisher, the retention locks and the readiness probe.
"""
import logging

import redis
from redis.connection import ConnectionPool

from alertproc.core.config import settings
from alertproc.core.redis_utils import prepare_redis_url

logger = logging.getLogger(__name__)

_pool: ConnectionPool | None = None
_client: redis.Redis | None = None


def get_redis_pool() -> ConnectionPool:
    """Get or create a shared Redis connection pool."""
    global _pool
    if _pool is not None:
        return _pool

    redis_url = prepare_redis_url(settings.REDIS_URL)
    if not redis_url:
        raise RuntimeError("REDIS_URL is not configured")

    _pool = ConnectionPool.from_url(
        redis_url,
        max_connections=settings.REDIS_MAX_CONNECTIONS,
        socket_timeout=5,
        socket_connect_timeout=5,
        health_check_interval=30,
        decode_responses=True,
    )
    logger.info("Redis pool ready | max_connections=%s", settings.REDIS_MAX_CONNECTIONS)
    return _pool


def get_redis_client() -> redis.Redis:
    """Get or create a Redis client using the shared connection pool."""
    global _client
    if _client is not None:
        return _client
    _client = redis.Redis(connection_pool=get_redis_pool())
    return _client


def close_redis_pool():
    """Close the Redis connection pool. Called on app shutdown."""
    global _pool, _client
    if _client is not None:
        _client.close()
        _client = None
    if _pool is not None:
        _pool.disconnect()
        _pool = None
    logger.info("Redis pool closed")
