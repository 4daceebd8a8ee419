from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class CourseModule:
    id: str
    position: int
    title: str
    lesson_ids: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Course:
    """Course shape as seen by this service: ordered modules of lesson ids.

    Owned by the course-content service; read-only here.
    """

    id: str
    title: str
    description: str = ""
    modules: tuple[CourseModule, ...] = ()

    def lesson_ids(self) -> frozenset[str]:
        return frozenset(
            lesson_id for module in self.modules for lesson_id in module.lesson_ids
        )


@dataclass(frozen=True, slots=True)
class CourseDisplay:
    title: str
    description: str = ""
