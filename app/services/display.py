from __future__ import annotations

import logging

from app.models.course import CourseDisplay
from app.models.user import UserDisplay
from app.repos.identity_repo import IdentitySource

logger = logging.getLogger(__name__)

UNKNOWN_COURSE_TITLE = "Unknown course"


async def resolve_display(
    identity: IdentitySource, user_id: str, course_id: str
) -> tuple[UserDisplay, CourseDisplay]:
    """Look up recipient and course names for a credential.

    A credential outlives the records it points at.  If the user or the
    course has since been removed, fall back to placeholders rather than
    failing: the credential itself is still valid.
    """
    # Pg sources share one AsyncSession, which forbids concurrent calls.
    user = await identity.get_user_display(user_id)
    course = await identity.get_course_display(course_id)
    if user is None:
        logger.warning("No identity record for user=%s", user_id)
        user = UserDisplay(name=user_id, email="")
    if course is None:
        logger.warning("No course record for course=%s", course_id)
        course = CourseDisplay(title=UNKNOWN_COURSE_TITLE)
    return user, course
