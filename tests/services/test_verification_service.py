"""Tests for VerificationService."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta

import pytest
from prometheus_client import REGISTRY

from app.core.config import CredentialSettings
from app.models.credential import CompletionSnapshot
from app.models.user import User
from app.repos.course_repo import SAMPLE_COURSE_ID, InMemoryCourseRepo, sample_course
from app.repos.credential_repo import InMemoryCredentialRepo
from app.repos.identity_repo import InMemoryIdentityRepo
from app.repos.user_repo import InMemoryUserRepo
from app.services.display import UNKNOWN_COURSE_TITLE
from app.services.verification_service import VerificationService

ISSUED_AT = datetime(2026, 3, 1, 9, 30, tzinfo=UTC)
SNAPSHOT = CompletionSnapshot(percentage=100, completed_count=15, total_count=15)


def _metric(result: str) -> float:
    value = REGISTRY.get_sample_value(
        "credential_verifications_total", {"result": result}
    )
    return value if value is not None else 0.0


class Env:
    def __init__(self, now: datetime = ISSUED_AT) -> None:
        self.credentials = InMemoryCredentialRepo()
        self.courses = InMemoryCourseRepo()
        self.users = InMemoryUserRepo()
        self.courses.put(sample_course())
        self.users.add(User(id="u-1", email="ada@example.com", name="Ada Lovelace"))
        self.service = VerificationService(
            credentials=self.credentials,
            identity=InMemoryIdentityRepo(self.users, self.courses),
            settings=CredentialSettings(issuer_name="Test Academy"),
            clock=lambda: now,
        )

    def issue(self, valid_until: datetime | None = None) -> str:
        credential, _ = asyncio.run(
            self.credentials.create_if_absent(
                "u-1",
                SAMPLE_COURSE_ID,
                SNAPSHOT,
                issued_at=ISSUED_AT,
                valid_until=valid_until,
            )
        )
        return credential.verification_code


@pytest.fixture
def env() -> Env:
    return Env()


def test_valid_code_returns_public_view(env: Env) -> None:
    code = env.issue()
    result = asyncio.run(env.service.verify(code))

    assert result.valid is True
    assert result.expired is False
    view = result.credential
    assert view is not None
    assert view.verification_code == code
    assert view.recipient_name == "Ada Lovelace"
    assert view.course_title == "AI Act Fundamentals"
    assert view.course_description
    assert view.issuer_name == "Test Academy"
    assert view.issued_at == ISSUED_AT


def test_public_view_has_no_internal_fields(env: Env) -> None:
    result = asyncio.run(env.service.verify(env.issue()))
    view = result.credential
    assert view is not None
    for hidden in ("id", "user_id", "course_id", "email", "snapshot"):
        assert not hasattr(view, hidden)


def test_unknown_code_is_invalid_not_error(env: Env) -> None:
    result = asyncio.run(env.service.verify("not-a-real-code-at-all"))
    assert result.valid is False
    assert result.expired is False
    assert result.credential is None


@pytest.mark.parametrize(
    "code",
    ["", "   ", "short", "has spaces in it here", "../../etc/passwd", "x" * 200],
)
def test_malformed_code_is_invalid(env: Env, code: str) -> None:
    result = asyncio.run(env.service.verify(code))
    assert result.valid is False
    assert result.credential is None


def test_surrounding_whitespace_is_ignored(env: Env) -> None:
    code = env.issue()
    assert asyncio.run(env.service.verify(f"  {code}\n")).valid is True


def test_codes_are_case_sensitive(env: Env) -> None:
    code = env.issue()
    flipped = code.swapcase()
    if flipped == code:
        pytest.skip("code has no letters to flip")
    assert asyncio.run(env.service.verify(flipped)).valid is False


def test_expired_credential_reports_expired() -> None:
    env = Env(now=ISSUED_AT + timedelta(days=800))
    code = env.issue(valid_until=ISSUED_AT + timedelta(days=730))

    result = asyncio.run(env.service.verify(code))
    assert result.valid is False
    assert result.expired is True
    assert result.credential is not None
    assert result.credential.valid_until == ISSUED_AT + timedelta(days=730)


def test_credential_within_window_is_valid() -> None:
    env = Env(now=ISSUED_AT + timedelta(days=10))
    code = env.issue(valid_until=ISSUED_AT + timedelta(days=730))
    result = asyncio.run(env.service.verify(code))
    assert result.valid is True
    assert result.expired is False


def test_verification_survives_deleted_user_and_course(env: Env) -> None:
    code = env.issue()
    env.users.clear()
    env.courses.clear()

    result = asyncio.run(env.service.verify(code))
    assert result.valid is True
    assert result.credential is not None
    assert result.credential.recipient_name == "u-1"
    assert result.credential.course_title == UNKNOWN_COURSE_TITLE


def test_metrics_count_outcomes(env: Env) -> None:
    code = env.issue()
    valid_before, invalid_before = _metric("valid"), _metric("invalid")

    asyncio.run(env.service.verify(code))
    asyncio.run(env.service.verify("unknown-code-1234567890"))

    assert _metric("valid") - valid_before == 1
    assert _metric("invalid") - invalid_before == 1


def test_unknown_code_is_not_logged_in_full(
    env: Env, caplog: pytest.LogCaptureFixture
) -> None:
    code = "Zq7nP2xWm4Ty8Lk1Vb6Hc3"
    with caplog.at_level(logging.INFO, logger="app.services.verification_service"):
        asyncio.run(env.service.verify(code))
    assert code not in caplog.text
    assert code[:6] in caplog.text
