#!/usr/bin/env python3
"""Hammer the public verification endpoint and report how much got through.

RUN:  python scripts/load_test_rate_limit.py [BASE_URL]

The API must be running (uvicorn app.main:app --port 8000).  Codes are
random, so every allowed request answers 200 with valid=false.  From one
client IP the verify bucket lets about VERIFY_LIMIT.capacity requests
through before 429s start.
"""

from __future__ import annotations

import secrets
import sys
import time

import httpx

from app.api.ratelimit import VERIFY_LIMIT

TOTAL_REQUESTS = 60


def main(base_url: str = "http://localhost:8000") -> int:
    print(f"Target: {base_url}/v1/verify/<random>  requests={TOTAL_REQUESTS}")

    results: dict[int, int] = {}
    retry_after: str | None = None
    start = time.monotonic()

    with httpx.Client(base_url=base_url, timeout=10) as client:
        for _ in range(TOTAL_REQUESTS):
            resp = client.get(f"/v1/verify/{secrets.token_urlsafe(16)}")
            results[resp.status_code] = results.get(resp.status_code, 0) + 1
            if resp.status_code == 429 and retry_after is None:
                retry_after = resp.headers.get("retry-after")

    elapsed = time.monotonic() - start
    allowed = results.get(200, 0)
    throttled = results.get(429, 0)
    other = sum(v for k, v in results.items() if k not in (200, 429))

    print(f"\n{TOTAL_REQUESTS} requests in {elapsed:.2f}s")
    print(f"  allowed   (200): {allowed:>4}")
    print(f"  throttled (429): {throttled:>4}")
    if other:
        print(f"  other:           {other:>4}")
    print(
        f"bucket capacity={VERIFY_LIMIT.capacity} "
        f"refill={VERIFY_LIMIT.refill_rate}/s first Retry-After={retry_after}"
    )

    if throttled == 0:
        print("WARNING: nothing was throttled; is the limiter wired up?")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main(*sys.argv[1:2]))
