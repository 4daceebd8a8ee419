from __future__ import annotations

from collections import defaultdict
from typing import Protocol


class ProgressSource(Protocol):
    async def get_completed_lesson_ids(
        self, user_id: str, course_id: str
    ) -> frozenset[str]: ...


class InMemoryProgressRepo:
    """Completed-lesson facts keyed by (user, course).

    Read fresh on every issuance attempt; nothing here is cached by the
    issuance service.
    """

    def __init__(self) -> None:
        self._completed: defaultdict[tuple[str, str], set[str]] = defaultdict(set)

    def mark_completed(self, user_id: str, course_id: str, *lesson_ids: str) -> None:
        self._completed[(user_id, course_id)].update(lesson_ids)

    async def get_completed_lesson_ids(
        self, user_id: str, course_id: str
    ) -> frozenset[str]:
        return frozenset(self._completed.get((user_id, course_id), ()))

    def clear(self) -> None:
        self._completed.clear()
