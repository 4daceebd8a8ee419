"""Public credential verification.

Anyone holding a verification code may ask "is this real?".  The store
lookup is the source of truth; a printed document proves nothing on its
own.  An unknown code is a normal answer (valid=False), not an error.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from app.core.config import CredentialSettings
from app.core.logging import code_hint
from app.core.metrics import VERIFICATIONS
from app.models.credential import PublicCredentialView
from app.repos.credential_repo import CredentialRepo
from app.repos.identity_repo import IdentitySource
from app.services.display import resolve_display

logger = logging.getLogger(__name__)

# URL-safe base64 alphabet; anything else cannot be one of our codes.
_CODE_PATTERN = re.compile(r"^[A-Za-z0-9_-]{16,64}$")


@dataclass(frozen=True, slots=True)
class VerificationResult:
    valid: bool
    expired: bool = False
    credential: PublicCredentialView | None = None


INVALID = VerificationResult(valid=False)


class VerificationService:
    def __init__(
        self,
        *,
        credentials: CredentialRepo,
        identity: IdentitySource,
        settings: CredentialSettings,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._credentials = credentials
        self._identity = identity
        self._settings = settings
        self._clock = clock

    async def verify(self, code: str) -> VerificationResult:
        code = code.strip()
        if not _CODE_PATTERN.match(code):
            VERIFICATIONS.labels(result="invalid").inc()
            logger.info("Malformed verification code rejected")
            return INVALID

        credential = await self._credentials.get_by_code(code)
        if credential is None:
            VERIFICATIONS.labels(result="invalid").inc()
            logger.info("Unknown verification code %s", code_hint(code))
            return INVALID

        recipient, course = await resolve_display(
            self._identity, credential.user_id, credential.course_id
        )
        public = PublicCredentialView(
            verification_code=credential.verification_code,
            recipient_name=recipient.name,
            course_title=course.title,
            course_description=course.description,
            issuer_name=self._settings.issuer_name,
            issued_at=credential.issued_at,
            valid_until=credential.valid_until,
        )

        if credential.is_expired(self._clock()):
            VERIFICATIONS.labels(result="expired").inc()
            logger.info("Expired credential verified code=%s", code_hint(code))
            return VerificationResult(valid=False, expired=True, credential=public)

        VERIFICATIONS.labels(result="valid").inc()
        return VerificationResult(valid=True, credential=public)
