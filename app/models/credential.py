from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID, uuid4

from app.models.course import CourseDisplay
from app.models.user import UserDisplay

# 16 random bytes → 22 URL-safe base64 characters (128 bits).
VERIFICATION_CODE_BYTES = 16


def new_verification_code() -> str:
    return secrets.token_urlsafe(VERIFICATION_CODE_BYTES)


@dataclass(frozen=True, slots=True)
class CompletionSnapshot:
    """Completion figures frozen at the moment of issuance.

    Later lesson additions/removals on the course never touch this.
    """

    percentage: int
    completed_count: int
    total_count: int


@dataclass(frozen=True, slots=True)
class Credential:
    """Issued course-completion credential (a "certificate").

    Natural key: (user_id, course_id).  Every field is immutable once
    the store has accepted the record.
    """

    id: UUID
    user_id: str
    course_id: str
    verification_code: str
    issued_at: datetime
    snapshot: CompletionSnapshot
    valid_until: datetime | None = None

    @staticmethod
    def new(
        *,
        user_id: str,
        course_id: str,
        snapshot: CompletionSnapshot,
        issued_at: datetime,
        valid_until: datetime | None = None,
    ) -> Credential:
        return Credential(
            id=uuid4(),
            user_id=user_id,
            course_id=course_id,
            verification_code=new_verification_code(),
            issued_at=issued_at,
            snapshot=snapshot,
            valid_until=valid_until,
        )

    def is_expired(self, now: datetime) -> bool:
        return self.valid_until is not None and now >= self.valid_until


@dataclass(frozen=True, slots=True)
class CredentialView:
    """Owner-facing credential: the stored record plus display names
    resolved at response time."""

    credential: Credential
    recipient: UserDisplay
    course: CourseDisplay
    issuer_name: str
    verification_url: str


@dataclass(frozen=True, slots=True)
class PublicCredentialView:
    """What an anonymous verifier may see.

    No internal ids, no email, nothing about the holder's other credentials.
    """

    verification_code: str
    recipient_name: str
    course_title: str
    course_description: str
    issuer_name: str
    issued_at: datetime
    valid_until: datetime | None = None
