from __future__ import annotations

from typing import Protocol

from app.models.course import CourseDisplay
from app.models.user import UserDisplay
from app.repos.course_repo import InMemoryCourseRepo
from app.repos.user_repo import InMemoryUserRepo


class IdentitySource(Protocol):
    """Resolves ids to the human-facing names printed on a credential."""

    async def get_user_display(self, user_id: str) -> UserDisplay | None: ...
    async def get_course_display(self, course_id: str) -> CourseDisplay | None: ...


class InMemoryIdentityRepo:
    """Answers identity lookups from the in-memory user and course repos."""

    def __init__(self, users: InMemoryUserRepo, courses: InMemoryCourseRepo) -> None:
        self._users = users
        self._courses = courses

    async def get_user_display(self, user_id: str) -> UserDisplay | None:
        return await self._users.get_user_display(user_id)

    async def get_course_display(self, course_id: str) -> CourseDisplay | None:
        return await self._courses.get_course_display(course_id)
