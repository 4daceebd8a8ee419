"""Rate limiting dependency for FastAPI routes.

Applied per route, never as middleware, so /health and /metrics stay
unlimited:

  GET  /v1/verify/{code}   → keyed by client IP; slows code guessing
  POST /v1/credentials     → keyed by user (falls back to IP)

Keying by user: learners behind one NAT share an IP, so authenticated
routes get a bucket per ``sub``.  The public verification route has no
identity and is always keyed by IP, even if a token is sent, so a
guesser cannot mint fresh buckets with forged tokens.

X-RateLimit-* headers go on every limited response, not just 429s.
"""

from __future__ import annotations

import logging
from typing import Literal

import jwt as pyjwt
from fastapi import HTTPException, Request, status
from redis.exceptions import RedisError

from app.core.metrics import RATE_LIMIT_HITS
from app.db.redis import redis_pool
from app.services.rate_limiter import (
    InMemoryRateLimiter,
    RateLimitConfig,
    RateLimitResult,
    RedisRateLimiter,
)

logger = logging.getLogger(__name__)

KeyBy = Literal["user", "ip"]

if redis_pool is not None:
    _rate_limiter = RedisRateLimiter(redis_pool)
else:
    _rate_limiter = InMemoryRateLimiter()


_DEFAULT_CONFIG = RateLimitConfig()

VERIFY_LIMIT = RateLimitConfig(capacity=30, refill_rate=0.5)
ISSUE_LIMIT = RateLimitConfig(capacity=20, refill_rate=0.2)


def require_rate_limit(
    config: RateLimitConfig = _DEFAULT_CONFIG,
    *,
    key_by: KeyBy = "user",
):
    """Dependency factory: enforce a token bucket on a route.

    Usage:
        @router.get("/v1/verify/{code}", dependencies=[Depends(
            require_rate_limit(VERIFY_LIMIT, key_by="ip")
        )])
    """

    async def _check(request: Request) -> None:
        key = _build_key(request) if key_by == "user" else _ip_key(request)
        try:
            result: RateLimitResult = await _rate_limiter.check(key, config)
        except RedisError:
            logger.warning(
                "Rate limiter unavailable, allowing key=%s", key, exc_info=True
            )
            return

        request.state.rate_limit_headers = {
            "X-RateLimit-Limit": str(result.limit),
            "X-RateLimit-Remaining": str(result.remaining),
        }

        if not result.allowed:
            RATE_LIMIT_HITS.labels(
                key_type="user" if key.startswith("user:") else "ip"
            ).inc()
            logger.warning("Rate limit exceeded key=%s", key)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Rate limit exceeded",
                headers={
                    "Retry-After": str(int(result.retry_after) + 1),
                    "X-RateLimit-Limit": str(result.limit),
                    "X-RateLimit-Remaining": "0",
                },
            )

    return _check


def _build_key(request: Request) -> str:
    """Key by the bearer token's ``sub`` when present, else by IP.

    The token is decoded without signature verification: it only picks
    a bucket.  A forged ``sub`` just gets its own bucket, and the real
    authentication check happens in require_user.
    """
    auth_header = request.headers.get("authorization", "")
    if auth_header.startswith("Bearer "):
        try:
            claims = pyjwt.decode(
                auth_header[7:], options={"verify_signature": False}
            )
        except pyjwt.InvalidTokenError:
            claims = {}
        sub = claims.get("sub")
        if sub:
            return f"user:{sub}"
    return _ip_key(request)


def _ip_key(request: Request) -> str:
    client_ip = request.client.host if request.client else "unknown"
    return f"ip:{client_ip}"
