from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure repo root is on sys.path so `import app` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.api import dependencies  # noqa: E402
from app.api.ratelimit import _rate_limiter  # noqa: E402
from app.main import app  # noqa: E402
from app.models.course import Course, CourseModule  # noqa: E402
from app.models.user import User  # noqa: E402
from app.repos.course_repo import SAMPLE_COURSE_ID, sample_course  # noqa: E402
from app.services import token_service  # noqa: E402

LEARNER_ID = "learner-1"
LEARNER_NAME = "Ada Lovelace"


@pytest.fixture(autouse=True)
def reset_backends() -> None:
    """Clear the in-memory store and collaborators between tests."""
    dependencies.credential_repo.clear()
    dependencies.course_repo.clear()
    dependencies.progress_repo.clear()
    dependencies.user_repo.clear()


@pytest.fixture(autouse=True)
def reset_rate_limiter() -> None:
    """Clear rate limit buckets between tests so limits don't bleed."""
    if hasattr(_rate_limiter, "clear"):
        _rate_limiter.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_dependency_overrides() -> Iterator[None]:
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(
    username: str = LEARNER_ID,
    roles: list[str] | None = None,
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=username, roles=roles)


def auth_headers(username: str = LEARNER_ID) -> dict[str, str]:
    return {"Authorization": f"Bearer {mint_token(username)}"}


@pytest.fixture
def token() -> str:
    return mint_token()


# ---------------------------------------------------------------------------
# Seed helpers (operate on the in-memory backends the app is wired to)
# ---------------------------------------------------------------------------


def seed_learner(user_id: str = LEARNER_ID, name: str = LEARNER_NAME) -> User:
    user = User(id=user_id, email=f"{user_id}@example.com", name=name)
    dependencies.user_repo.add(user)
    return user


def seed_course(course: Course | None = None) -> Course:
    course = course or sample_course()
    dependencies.course_repo.put(course)
    return course


def empty_course(course_id: str = "empty-course") -> Course:
    return Course(
        id=course_id,
        title="Empty Course",
        modules=(CourseModule(id=f"{course_id}-m1", position=1, title="Intro"),),
    )


def complete_lessons(
    user_id: str = LEARNER_ID,
    course_id: str = SAMPLE_COURSE_ID,
    count: int | None = None,
) -> None:
    """Mark the first ``count`` lessons (all when None) of a seeded course done."""
    course = dependencies.course_repo.get(course_id)
    assert course is not None, f"course {course_id} not seeded"
    lessons = sorted(course.lesson_ids())
    if count is not None:
        lessons = lessons[:count]
    dependencies.progress_repo.mark_completed(user_id, course_id, *lessons)


@pytest.fixture
def eligible_learner() -> User:
    """Seeded learner who has finished every lesson of the sample course."""
    seed_course()
    user = seed_learner()
    complete_lessons()
    return user
