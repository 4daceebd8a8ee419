"""Completion evaluation: has a learner finished a course?

Pure and deterministic.  No I/O, no clock, no shared state, so it is
safe to call from any number of concurrent requests.

Default policy is strict: every required lesson must be completed
(threshold=100).  A lower threshold is only ever applied when a caller
passes one explicitly.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from app.models.credential import CompletionSnapshot

ALL_LESSONS = 100


class NoContentError(ValueError):
    """The course has no required lessons, so it can never be completed."""


@dataclass(frozen=True, slots=True)
class CompletionResult:
    eligible: bool
    completed_count: int
    total_count: int
    percentage: int

    def snapshot(self) -> CompletionSnapshot:
        return CompletionSnapshot(
            percentage=self.percentage,
            completed_count=self.completed_count,
            total_count=self.total_count,
        )


def evaluate(
    required_lesson_ids: Iterable[str],
    completed_lesson_ids: Iterable[str],
    *,
    threshold: int = ALL_LESSONS,
) -> CompletionResult:
    """Decide eligibility from the required and completed lesson sets.

    Completed ids that are not required (stale progress on a removed
    lesson, lessons from another course) are ignored.

    Raises:
        NoContentError: required_lesson_ids is empty.
        ValueError: threshold outside 1..100.
    """
    if not 1 <= threshold <= ALL_LESSONS:
        raise ValueError(f"threshold must be 1..100 (got {threshold})")

    required = frozenset(required_lesson_ids)
    if not required:
        raise NoContentError("course has no lessons")

    completed_count = len(required.intersection(completed_lesson_ids))
    total_count = len(required)
    percentage = (100 * completed_count) // total_count

    if threshold == ALL_LESSONS:
        eligible = completed_count == total_count
    else:
        eligible = percentage >= threshold

    return CompletionResult(
        eligible=eligible,
        completed_count=completed_count,
        total_count=total_count,
        percentage=percentage,
    )
