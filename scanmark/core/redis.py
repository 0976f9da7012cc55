"""Redis client for the import queue."""

import logging

import redis

from scanmark.core.config import settings

logger = logging.getLogger(__name__)

_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis:
    """Lazy singleton: one client per process, strings decoded."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)
        url = settings.REDIS_URL
        logger.info(f"[QUEUE] Redis client created for {url.split('@')[-1] if '@' in url else url}")
    return _redis_client


def close_redis() -> None:
    """Graceful shutdown: close the Redis connection pool."""
    global _redis_client
    if _redis_client is not None:
        try:
            _redis_client.close()
        except redis.RedisError as e:
            logger.warning(f"[QUEUE] Redis close error: {e}")
        _redis_client = None
