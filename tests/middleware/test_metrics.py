"""Tests for the Prometheus metrics middleware.

The default registry is global and counters never go down, so every
assertion is on a delta: read, act, read again.
"""

from __future__ import annotations

from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from app.middleware.metrics import UNMATCHED


def _get_sample(name: str, labels: dict | None = None) -> float:
    value = REGISTRY.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0


def _requests(endpoint: str, status_code: str, method: str = "GET") -> float:
    return _get_sample(
        "http_requests_total",
        {"method": method, "endpoint": endpoint, "status_code": status_code},
    )


def test_request_counter_increments(client: TestClient) -> None:
    before = _requests("/health", "200")
    client.get("/health")
    assert _requests("/health", "200") - before >= 1


def test_request_duration_histogram_observes(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health"}
    before = _get_sample("http_request_duration_seconds_count", labels)
    client.get("/health")
    after = _get_sample("http_request_duration_seconds_count", labels)
    assert after - before >= 1


def test_verify_requests_labelled_by_template(client: TestClient) -> None:
    """Codes never become label values."""
    before = _requests("/v1/verify/{code}", "200")
    client.get("/v1/verify/first-made-up-code")
    client.get("/v1/verify/second-made-up-code")
    assert _requests("/v1/verify/{code}", "200") - before == 2
    assert _requests("/v1/verify/first-made-up-code", "200") == 0


def test_credential_routes_labelled_by_template(client: TestClient) -> None:
    before = _requests("/v1/credentials/{credential_id}", "401")
    client.get("/v1/credentials/7f0c3a52-3f43-4a0e-9a49-8b0f6a0f2f11")
    assert _requests("/v1/credentials/{credential_id}", "401") - before == 1


def test_unknown_paths_share_one_label(client: TestClient) -> None:
    before = _requests(UNMATCHED, "404")
    client.get("/nope/one")
    client.get("/nope/two")
    assert _requests(UNMATCHED, "404") - before == 2


def test_metrics_endpoint_returns_prometheus_format(client: TestClient) -> None:
    client.get("/health")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/plain")
    assert "http_requests_total" in resp.text
    assert "http_request_duration_seconds" in resp.text


def test_metrics_endpoint_lists_credential_metrics(client: TestClient) -> None:
    text = client.get("/metrics").text
    assert "credential_verifications_total" in text
    assert "credential_render_duration_seconds" in text
    assert "rate_limit_hits_total" in text


def test_metrics_endpoint_not_self_instrumented(client: TestClient) -> None:
    before = _requests("/metrics", "200")
    client.get("/metrics")
    client.get("/metrics")
    assert _requests("/metrics", "200") == before
