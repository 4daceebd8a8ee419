"""Health and readiness endpoints.

  /health  liveness: answers 200 whenever the process can respond, with
           per-dependency status in the body ("ok" or "degraded").
  /ready   readiness: 503 while a configured database is unreachable,
           so the load balancer stops routing here until it recovers.

Redis is not part of readiness: while it is down the rate limiter lets
requests through, so issuance and verification keep working.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response, status
from redis.exceptions import RedisError

from app.db.engine import ping_database
from app.db.redis import redis_pool

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


def _status(ok: bool | None) -> str:
    if ok is None:
        return "not_configured"
    return "ok" if ok else "degraded"


async def _ping_redis() -> bool | None:
    if redis_pool is None:
        return None
    try:
        await redis_pool.ping()  # type: ignore[misc]
    except (RedisError, OSError):
        logger.warning("Redis ping failed", exc_info=True)
        return False
    return True


@router.get("/health")
async def health() -> dict:
    checks = {
        "database": _status(await ping_database()),
        "redis": _status(await _ping_redis()),
    }
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    if await ping_database() is False:
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)
