"""Rate limiting on the credential routes.

Issuance is limited per user (capacity 20), verification per client IP
(capacity 30).  Health and metrics are never limited.
"""

from __future__ import annotations

import asyncio

from fastapi.testclient import TestClient
from prometheus_client import REGISTRY
from redis.exceptions import ConnectionError as RedisConnectionError

from app.api import ratelimit
from app.api.ratelimit import ISSUE_LIMIT, VERIFY_LIMIT
from app.repos.course_repo import SAMPLE_COURSE_ID
from app.services.rate_limiter import InMemoryRateLimiter, RateLimitConfig
from tests.conftest import auth_headers


def _hits(key_type: str) -> float:
    value = REGISTRY.get_sample_value(
        "rate_limit_hits_total", labels={"key_type": key_type}
    )
    return value if value is not None else 0.0


def _issue(client: TestClient, user: str = "rate-limit-user"):
    return client.post(
        "/v1/credentials",
        json={"course_id": SAMPLE_COURSE_ID},
        headers=auth_headers(user),
    )


def test_requests_within_limit_are_not_throttled(client: TestClient) -> None:
    # Unknown course: 404 every time, but never 429.
    statuses = {_issue(client).status_code for _ in range(5)}
    assert statuses == {404}


def test_issuance_over_limit_gets_429(client: TestClient) -> None:
    statuses = [_issue(client).status_code for _ in range(ISSUE_LIMIT.capacity + 3)]
    assert 429 not in statuses[: ISSUE_LIMIT.capacity]
    assert statuses[-1] == 429


def test_429_includes_retry_after_header(client: TestClient) -> None:
    for _ in range(ISSUE_LIMIT.capacity):
        _issue(client)
    resp = _issue(client)
    assert resp.status_code == 429
    assert int(resp.headers["retry-after"]) > 0
    assert resp.headers["x-ratelimit-limit"] == str(ISSUE_LIMIT.capacity)
    assert resp.headers["x-ratelimit-remaining"] == "0"


def test_429_counted_by_key_type(client: TestClient) -> None:
    before = _hits("user")
    for _ in range(ISSUE_LIMIT.capacity + 2):
        _issue(client)
    assert _hits("user") - before >= 1


def test_verify_429_counted_as_ip(client: TestClient) -> None:
    before = _hits("ip")
    for _ in range(VERIFY_LIMIT.capacity + 5):
        client.get("/v1/verify/some-code")
    assert _hits("ip") - before >= 1


def test_different_users_have_separate_buckets(client: TestClient) -> None:
    for _ in range(ISSUE_LIMIT.capacity + 1):
        _issue(client, user="user-a")
    assert _issue(client, user="user-a").status_code == 429
    assert _issue(client, user="user-b").status_code == 404


def test_success_responses_carry_rate_limit_headers(client: TestClient) -> None:
    resp = _issue(client)
    assert resp.headers["x-ratelimit-limit"] == str(ISSUE_LIMIT.capacity)
    assert resp.headers["x-ratelimit-remaining"] == str(ISSUE_LIMIT.capacity - 1)


class _UnreachableLimiter:
    async def check(self, key: str, config: RateLimitConfig):
        raise RedisConnectionError("connection refused")

    async def reset(self, key: str) -> None:
        return None


def test_limiter_outage_fails_open(client: TestClient, monkeypatch) -> None:
    monkeypatch.setattr(ratelimit, "_rate_limiter", _UnreachableLimiter())
    statuses = {
        client.get("/v1/verify/some-code").status_code
        for _ in range(VERIFY_LIMIT.capacity + 5)
    }
    assert statuses == {200}


def test_in_memory_bucket_refills() -> None:
    limiter = InMemoryRateLimiter()
    config = RateLimitConfig(capacity=1, refill_rate=1000.0)

    async def scenario() -> list[bool]:
        first = await limiter.check("k", config)
        await asyncio.sleep(0.01)
        second = await limiter.check("k", config)
        return [first.allowed, second.allowed]

    assert asyncio.run(scenario()) == [True, True]


def test_in_memory_reset_restores_capacity() -> None:
    limiter = InMemoryRateLimiter()
    config = RateLimitConfig(capacity=1, refill_rate=0.001)

    async def scenario() -> list[bool]:
        results = [(await limiter.check("k", config)).allowed]
        results.append((await limiter.check("k", config)).allowed)
        await limiter.reset("k")
        results.append((await limiter.check("k", config)).allowed)
        return results

    assert asyncio.run(scenario()) == [True, False, True]
