"""Credential issuance: evaluate completion, mint once, return the view.

Flow for issue(user, course):

  1. Existing credential for (user, course)?  Return it unchanged.  An
     issued credential never depends on today's course shape or progress.
  2. Required lessons from the course catalog (None → CourseNotFoundError).
  3. Completed lessons from the progress source, read fresh every time.
  4. evaluate(), which may raise NoContentError; ineligible → NotEligibleError.
  5. create_if_absent() in the credential store; losing a race returns
     the winner's record, never an error.
  6. Resolve recipient/course display names for the response.

Exactly one durable write per (user, course), ever.  Step 1 is only a
fast path; step 5 is what guarantees it under concurrency.
"""

from __future__ import annotations

import calendar
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from uuid import UUID

from app.core.config import CredentialSettings
from app.core.metrics import CREDENTIALS_ISSUED, ISSUANCE_REJECTED
from app.models.credential import Credential, CredentialView
from app.repos.course_repo import CourseCatalog
from app.repos.credential_repo import CredentialRepo
from app.repos.identity_repo import IdentitySource
from app.repos.progress_repo import ProgressSource
from app.services.completion import CompletionResult, NoContentError, evaluate
from app.services.display import resolve_display

logger = logging.getLogger(__name__)


class CourseNotFoundError(LookupError):
    """No course with this id exists in the catalog."""


class CredentialNotFoundError(LookupError):
    """No credential with this id belongs to the requesting learner."""


class NotEligibleError(Exception):
    """The learner has not completed enough of the course.

    An expected outcome, not a fault: carries the figures the UI needs
    to say "80% complete, 100% required".
    """

    def __init__(self, result: CompletionResult, threshold: int) -> None:
        super().__init__(
            f"completed {result.completed_count}/{result.total_count} lessons "
            f"({result.percentage}%), {threshold}% required"
        )
        self.percentage = result.percentage
        self.completed_count = result.completed_count
        self.total_count = result.total_count
        self.required_percentage = threshold


def _utcnow() -> datetime:
    return datetime.now(UTC)


def add_months(moment: datetime, months: int) -> datetime:
    """Calendar month arithmetic; Jan 31 + 1 month clamps to Feb 28/29."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


class IssuanceService:
    def __init__(
        self,
        *,
        credentials: CredentialRepo,
        catalog: CourseCatalog,
        progress: ProgressSource,
        identity: IdentitySource,
        settings: CredentialSettings,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._credentials = credentials
        self._catalog = catalog
        self._progress = progress
        self._identity = identity
        self._settings = settings
        self._clock = clock

    async def issue(self, user_id: str, course_id: str) -> CredentialView:
        existing = await self._credentials.get_by_user_and_course(user_id, course_id)
        if existing is not None:
            CREDENTIALS_ISSUED.labels(outcome="existing").inc()
            logger.info(
                "Returning existing credential user=%s course=%s",
                user_id,
                course_id,
                extra={"credential_id": str(existing.id), "outcome": "existing"},
            )
            return await self._view(existing)

        required = await self._catalog.get_required_lesson_ids(course_id)
        if required is None:
            ISSUANCE_REJECTED.labels(reason="course_not_found").inc()
            logger.warning(
                "Issuance for unknown course=%s user=%s", course_id, user_id
            )
            raise CourseNotFoundError(course_id)

        completed = await self._progress.get_completed_lesson_ids(user_id, course_id)

        threshold = self._settings.completion_threshold
        try:
            result = evaluate(required, completed, threshold=threshold)
        except NoContentError:
            ISSUANCE_REJECTED.labels(reason="no_content").inc()
            logger.warning("Issuance for course=%s with no lessons", course_id)
            raise

        if not result.eligible:
            ISSUANCE_REJECTED.labels(reason="not_eligible").inc()
            logger.info(
                "Not eligible user=%s course=%s completed=%d/%d",
                user_id,
                course_id,
                result.completed_count,
                result.total_count,
            )
            raise NotEligibleError(result, threshold)

        issued_at = self._clock()
        valid_until = None
        if self._settings.validity_months is not None:
            valid_until = add_months(issued_at, self._settings.validity_months)

        credential, created = await self._credentials.create_if_absent(
            user_id,
            course_id,
            result.snapshot(),
            issued_at=issued_at,
            valid_until=valid_until,
        )
        outcome = "created" if created else "existing"
        CREDENTIALS_ISSUED.labels(outcome=outcome).inc()
        logger.info(
            "Credential %s user=%s course=%s",
            outcome,
            user_id,
            course_id,
            extra={"credential_id": str(credential.id), "outcome": outcome},
        )
        return await self._view(credential)

    async def list_for_user(self, user_id: str) -> list[CredentialView]:
        """All of a learner's credentials, newest first."""
        credentials = await self._credentials.list_by_user(user_id)
        return [await self._view(c) for c in credentials]

    async def get_for_owner(self, credential_id: UUID, user_id: str) -> CredentialView:
        """Fetch one credential, only if user_id holds it.

        Someone else's credential is reported as not found so ids cannot
        be probed.
        """
        credential = await self._credentials.get_by_id(credential_id)
        if credential is None or credential.user_id != user_id:
            raise CredentialNotFoundError(str(credential_id))
        return await self._view(credential)

    async def _view(self, credential: Credential) -> CredentialView:
        recipient, course = await resolve_display(
            self._identity, credential.user_id, credential.course_id
        )
        return CredentialView(
            credential=credential,
            recipient=recipient,
            course=course,
            issuer_name=self._settings.issuer_name,
            verification_url=self._settings.verification_url(
                credential.verification_code
            ),
        )
