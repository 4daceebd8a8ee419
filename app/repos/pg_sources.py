"""PostgreSQL adapters for the collaborator interfaces.

Read-only views over tables owned by the identity and course-content
services.  Ids arrive as strings; anything that is not a canonical
(lower-case, hyphenated) UUID is treated as unknown, so one course can
never be keyed two different ways in the credentials table.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import (
    CourseModuleRow,
    CourseRow,
    ModuleItemRow,
    ProgressEventRow,
    UserRow,
)
from app.models.course import CourseDisplay
from app.models.user import User, UserDisplay


def _canonical_uuid(value: str) -> UUID | None:
    try:
        parsed = UUID(value)
    except ValueError:
        return None
    return parsed if str(parsed) == value else None


class PgCourseCatalog:
    """Satisfies the CourseCatalog Protocol from courses/modules/items."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_required_lesson_ids(self, course_id: str) -> frozenset[str] | None:
        course_uuid = _canonical_uuid(course_id)
        if course_uuid is None:
            return None
        if await self._session.get(CourseRow, course_uuid) is None:
            return None

        stmt = (
            select(ModuleItemRow.id)
            .join(CourseModuleRow, ModuleItemRow.module_id == CourseModuleRow.id)
            .where(
                CourseModuleRow.course_id == course_uuid,
                ModuleItemRow.type == "lesson",
            )
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return frozenset(str(item_id) for item_id in rows)


class PgProgressSource:
    """Satisfies the ProgressSource Protocol from the progress event log."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_completed_lesson_ids(
        self, user_id: str, course_id: str
    ) -> frozenset[str]:
        user_uuid = _canonical_uuid(user_id)
        course_uuid = _canonical_uuid(course_id)
        if user_uuid is None or course_uuid is None:
            return frozenset()

        stmt = (
            select(ProgressEventRow.entity_id)
            .where(
                ProgressEventRow.user_id == user_uuid,
                ProgressEventRow.course_id == course_uuid,
                ProgressEventRow.type == "item_completed",
                ProgressEventRow.entity_id.is_not(None),
            )
            .distinct()
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return frozenset(str(entity_id) for entity_id in rows)


class PgIdentitySource:
    """Satisfies the IdentitySource Protocol from users/courses."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_user_display(self, user_id: str) -> UserDisplay | None:
        user_uuid = _canonical_uuid(user_id)
        if user_uuid is None:
            return None
        row = await self._session.get(UserRow, user_uuid)
        if row is None:
            return None
        return User(id=str(row.id), email=row.email, name=row.name or "").display()

    async def get_course_display(self, course_id: str) -> CourseDisplay | None:
        course_uuid = _canonical_uuid(course_id)
        if course_uuid is None:
            return None
        row = await self._session.get(CourseRow, course_uuid)
        if row is None:
            return None
        return CourseDisplay(title=row.title, description=row.description or "")
