import redis.asyncio as redis
from functools import lru_cache
from src.infra.config.settings import settings


@lru_cache()
def get_redis_pool() -> redis.ConnectionPool:
    """Shared connection pool for the record store and token blacklist (cached)"""
    return redis.ConnectionPool.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        max_connections=settings.REDIS_MAX_CONNECTIONS
    )


def get_redis_client() -> redis.Redis:
    """Client bound to the shared pool. Connections open lazily."""
    return redis.Redis(connection_pool=get_redis_pool())
