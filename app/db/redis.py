"""Redis connection management.

Mirrors engine.py: with REDIS_URL set a shared async client is created
on import; without it ``redis_pool`` is None and the rate limiter keeps
its buckets in process memory.  Only ephemeral counters live in Redis;
credentials never do.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from app.core.config import SETTINGS

logger = logging.getLogger(__name__)

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,
        max_connections=20,
    )
else:
    redis_pool = None


@asynccontextmanager
async def lifespan_redis():
    """Startup/shutdown hook for Redis, mirroring lifespan_db().

    An unreachable Redis at startup is logged, not fatal: requests are
    still served, just without shared rate limiting.
    """
    if redis_pool is None:
        logger.info("No REDIS_URL configured, rate limiting is per-process")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
        logger.info("Redis connected")
    except (RedisError, OSError):
        logger.exception("Redis connection failed on startup")

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
