"""Public credential verification.

GET /v1/verify/{code} needs no account.  It always answers 200: an
unknown code is ``{"valid": false}``, so a verifier UI can branch on the
body without treating transport errors as "fake certificate".
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.dependencies import get_verification_service
from app.api.ratelimit import VERIFY_LIMIT, require_rate_limit
from app.services.verification_service import VerificationResult, VerificationService

router = APIRouter(prefix="/v1/verify", tags=["verification"])

MESSAGE_VALID = "This credential is valid."
MESSAGE_EXPIRED = "This credential was valid but has expired."
MESSAGE_INVALID = "No credential matches this verification code."


class PublicCredentialOut(BaseModel):
    verification_code: str
    recipient_name: str
    course_title: str
    course_description: str
    issuer: str
    issued_at: datetime
    valid_until: datetime | None


class VerificationOut(BaseModel):
    valid: bool
    expired: bool
    message: str
    credential: PublicCredentialOut | None = None


def _message(result: VerificationResult) -> str:
    if result.valid:
        return MESSAGE_VALID
    if result.expired:
        return MESSAGE_EXPIRED
    return MESSAGE_INVALID


@router.get(
    "/{code}",
    response_model=VerificationOut,
    dependencies=[Depends(require_rate_limit(VERIFY_LIMIT, key_by="ip"))],
)
async def verify_credential(
    code: str,
    service: Annotated[VerificationService, Depends(get_verification_service)],
) -> VerificationOut:
    result = await service.verify(code)
    out = VerificationOut(
        valid=result.valid,
        expired=result.expired,
        message=_message(result),
    )
    if result.credential is not None:
        p = result.credential
        out.credential = PublicCredentialOut(
            verification_code=p.verification_code,
            recipient_name=p.recipient_name,
            course_title=p.course_title,
            course_description=p.course_description,
            issuer=p.issuer_name,
            issued_at=p.issued_at,
            valid_until=p.valid_until,
        )
    return out
