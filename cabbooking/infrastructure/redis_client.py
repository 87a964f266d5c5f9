"""Redis async connection pool (maintenance locks)."""

import redis.asyncio as aioredis

from cabbooking.config import settings

_pool = aioredis.ConnectionPool.from_url(settings.redis_url, decode_responses=True)


def get_redis() -> aioredis.Redis:
    """A client on the shared pool; cheap to create per call."""
    return aioredis.Redis(connection_pool=_pool)
