"""Tests for the public verification endpoint."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

from fastapi.testclient import TestClient

from app.api import dependencies
from app.api.dependencies import get_verification_service
from app.api.verify import MESSAGE_EXPIRED, MESSAGE_INVALID, MESSAGE_VALID
from app.core.config import SETTINGS
from app.main import app
from app.models.credential import CompletionSnapshot
from app.repos.course_repo import SAMPLE_COURSE_ID
from app.services.verification_service import VerificationService
from tests.conftest import LEARNER_ID, LEARNER_NAME, auth_headers


def _issued_code(client: TestClient) -> str:
    resp = client.post(
        "/v1/credentials",
        json={"course_id": SAMPLE_COURSE_ID},
        headers=auth_headers(),
    )
    assert resp.status_code == 201
    return resp.json()["verification_code"]


def test_verify_needs_no_auth(client: TestClient, eligible_learner) -> None:
    code = _issued_code(client)
    resp = client.get(f"/v1/verify/{code}")
    assert resp.status_code == 200
    body = resp.json()
    assert body["valid"] is True
    assert body["expired"] is False
    assert body["message"] == MESSAGE_VALID

    cred = body["credential"]
    assert cred["verification_code"] == code
    assert cred["recipient_name"] == LEARNER_NAME
    assert cred["course_title"] == "AI Act Fundamentals"
    assert cred["issuer"] == SETTINGS.credentials.issuer_name
    assert cred["issued_at"]


def test_verify_response_leaks_nothing_internal(
    client: TestClient, eligible_learner
) -> None:
    code = _issued_code(client)
    cred = client.get(f"/v1/verify/{code}").json()["credential"]
    assert set(cred) == {
        "verification_code",
        "recipient_name",
        "course_title",
        "course_description",
        "issuer",
        "issued_at",
        "valid_until",
    }
    assert LEARNER_ID not in str(cred)
    assert "@" not in str(cred)


def test_unknown_code_is_200_invalid(client: TestClient) -> None:
    resp = client.get("/v1/verify/not-a-real-code")
    assert resp.status_code == 200
    assert resp.json() == {
        "valid": False,
        "expired": False,
        "message": MESSAGE_INVALID,
        "credential": None,
    }


def test_well_formed_but_unknown_code_is_invalid(client: TestClient) -> None:
    resp = client.get("/v1/verify/AAAAAAAAAAAAAAAAAAAAAA")
    assert resp.status_code == 200
    assert resp.json()["valid"] is False


def test_verification_matches_issued_view(client: TestClient, eligible_learner) -> None:
    issued = client.post(
        "/v1/credentials",
        json={"course_id": SAMPLE_COURSE_ID},
        headers=auth_headers(),
    ).json()
    verified = client.get(f"/v1/verify/{issued['verification_code']}").json()
    assert verified["credential"]["recipient_name"] == issued["recipient"]["name"]
    assert verified["credential"]["course_title"] == issued["course"]["title"]
    assert verified["credential"]["issued_at"] == issued["issued_at"]


def _create_directly(*, issued_at: datetime, valid_until: datetime):
    return asyncio.run(
        dependencies.credential_repo.create_if_absent(
            LEARNER_ID,
            SAMPLE_COURSE_ID,
            CompletionSnapshot(percentage=100, completed_count=15, total_count=15),
            issued_at=issued_at,
            valid_until=valid_until,
        )
    )


def test_expired_credential(client: TestClient) -> None:
    issued_at = datetime(2024, 1, 1, tzinfo=UTC)
    credential, _ = _create_directly(
        issued_at=issued_at, valid_until=issued_at + timedelta(days=365)
    )

    def _late_service() -> VerificationService:
        return VerificationService(
            credentials=dependencies.credential_repo,
            identity=dependencies.identity_repo,
            settings=SETTINGS.credentials,
            clock=lambda: issued_at + timedelta(days=400),
        )

    app.dependency_overrides[get_verification_service] = _late_service
    body = client.get(f"/v1/verify/{credential.verification_code}").json()
    assert body["valid"] is False
    assert body["expired"] is True
    assert body["message"] == MESSAGE_EXPIRED
    assert body["credential"]["valid_until"].startswith("2024-12-31")


def test_verify_is_rate_limited_by_ip(client: TestClient) -> None:
    statuses = [
        client.get("/v1/verify/not-a-real-code").status_code for _ in range(35)
    ]
    assert statuses[0] == 200
    assert 429 in statuses


def test_verify_limit_ignores_bearer_tokens(client: TestClient) -> None:
    """Sending a fresh token per request does not buy a fresh bucket."""
    statuses = [
        client.get(
            "/v1/verify/not-a-real-code", headers=auth_headers(f"guesser-{i}")
        ).status_code
        for i in range(35)
    ]
    assert 429 in statuses
