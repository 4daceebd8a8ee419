from __future__ import annotations

from typing import Protocol

from app.models.course import Course, CourseDisplay, CourseModule


class CourseCatalog(Protocol):
    async def get_required_lesson_ids(self, course_id: str) -> frozenset[str] | None:
        """Lesson ids a learner must complete, or None if the course is unknown."""
        ...


class InMemoryCourseRepo:
    def __init__(self) -> None:
        self._by_id: dict[str, Course] = {}

    def put(self, course: Course) -> None:
        # Upsert: course content changes independently of issued credentials.
        self._by_id[course.id] = course

    def get(self, course_id: str) -> Course | None:
        return self._by_id.get(course_id)

    async def get_required_lesson_ids(self, course_id: str) -> frozenset[str] | None:
        course = self._by_id.get(course_id)
        if course is None:
            return None
        return course.lesson_ids()

    async def get_course_display(self, course_id: str) -> CourseDisplay | None:
        course = self._by_id.get(course_id)
        if course is None:
            return None
        return CourseDisplay(title=course.title, description=course.description)

    def clear(self) -> None:
        self._by_id.clear()


SAMPLE_COURSE_ID = "ai-act-fundamentals"

_SAMPLE_MODULES = (
    "Scope and Definitions",
    "Risk Categories",
    "Obligations for Providers",
    "Transparency Requirements",
    "Governance and Enforcement",
)


def sample_course() -> Course:
    """Five modules of three lessons each (15 lessons)."""
    modules = tuple(
        CourseModule(
            id=f"{SAMPLE_COURSE_ID}-m{m}",
            position=m,
            title=title,
            lesson_ids=tuple(f"{SAMPLE_COURSE_ID}-m{m}-l{n}" for n in range(1, 4)),
        )
        for m, title in enumerate(_SAMPLE_MODULES, start=1)
    )
    return Course(
        id=SAMPLE_COURSE_ID,
        title="AI Act Fundamentals",
        description="Core obligations of the EU AI Act for teams building AI systems.",
        modules=modules,
    )


def seed_sample_course(repo: InMemoryCourseRepo) -> None:
    """Seed a sample course for development/testing."""
    if repo.get(SAMPLE_COURSE_ID) is None:
        repo.put(sample_course())
