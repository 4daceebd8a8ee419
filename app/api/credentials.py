"""Learner-facing credential endpoints (authenticated).

- POST /v1/credentials                 issue (or return) the caller's credential
- GET  /v1/credentials                 the caller's credentials, newest first
- GET  /v1/credentials/{id}            one credential, owner only
- GET  /v1/credentials/{id}/document   the credential as a PDF download

Issuance is synchronous: 201 means the credential is durably stored.
A repeat POST for the same course returns the same credential, still 201.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from app.api.dependencies import get_issuance_service, get_renderer, require_user
from app.api.ratelimit import ISSUE_LIMIT, require_rate_limit
from app.models.credential import CredentialView
from app.models.principal import Principal
from app.services.completion import NoContentError
from app.services.document_renderer import DocumentRenderer, RenderError
from app.services.issuance_service import (
    CourseNotFoundError,
    CredentialNotFoundError,
    IssuanceService,
    NotEligibleError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/credentials", tags=["credentials"])

RENDER_RETRY_AFTER_SECONDS = 5


class CredentialIssueIn(BaseModel):
    course_id: str = Field(min_length=1, max_length=255)


class CompletionOut(BaseModel):
    percentage: int
    completed_count: int
    total_count: int


class RecipientOut(BaseModel):
    name: str
    email: str


class CourseOut(BaseModel):
    id: str
    title: str
    description: str


class CredentialOut(BaseModel):
    id: UUID
    verification_code: str
    verification_url: str
    issuer: str
    issued_at: datetime
    valid_until: datetime | None
    recipient: RecipientOut
    course: CourseOut
    completion: CompletionOut


def _to_out(view: CredentialView) -> CredentialOut:
    c = view.credential
    return CredentialOut(
        id=c.id,
        verification_code=c.verification_code,
        verification_url=view.verification_url,
        issuer=view.issuer_name,
        issued_at=c.issued_at,
        valid_until=c.valid_until,
        recipient=RecipientOut(name=view.recipient.name, email=view.recipient.email),
        course=CourseOut(
            id=c.course_id,
            title=view.course.title,
            description=view.course.description,
        ),
        completion=CompletionOut(
            percentage=c.snapshot.percentage,
            completed_count=c.snapshot.completed_count,
            total_count=c.snapshot.total_count,
        ),
    )


@router.post(
    "",
    response_model=CredentialOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_rate_limit(ISSUE_LIMIT))],
)
async def issue_credential(
    body: CredentialIssueIn,
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[IssuanceService, Depends(get_issuance_service)],
) -> CredentialOut:
    try:
        view = await service.issue(principal.user_id, body.course_id)
    except CourseNotFoundError:
        raise HTTPException(status_code=404, detail="course not found") from None
    except NoContentError:
        raise HTTPException(
            status_code=400,
            detail={"error": "no_content", "message": "course has no lessons"},
        ) from None
    except NotEligibleError as e:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "not_eligible",
                "percentage": e.percentage,
                "completed_count": e.completed_count,
                "total_count": e.total_count,
                "required_percentage": e.required_percentage,
            },
        ) from None
    return _to_out(view)


@router.get("", response_model=list[CredentialOut])
async def list_credentials(
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[IssuanceService, Depends(get_issuance_service)],
) -> list[CredentialOut]:
    views = await service.list_for_user(principal.user_id)
    return [_to_out(v) for v in views]


async def _owned_view(
    credential_id: UUID, principal: Principal, service: IssuanceService
) -> CredentialView:
    try:
        return await service.get_for_owner(credential_id, principal.user_id)
    except CredentialNotFoundError:
        raise HTTPException(status_code=404, detail="credential not found") from None


@router.get("/{credential_id}", response_model=CredentialOut)
async def get_credential(
    credential_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[IssuanceService, Depends(get_issuance_service)],
) -> CredentialOut:
    return _to_out(await _owned_view(credential_id, principal, service))


@router.get(
    "/{credential_id}/document",
    response_class=Response,
    responses={200: {"content": {"application/pdf": {}}}},
)
async def download_document(
    credential_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[IssuanceService, Depends(get_issuance_service)],
    renderer: Annotated[DocumentRenderer, Depends(get_renderer)],
) -> Response:
    view = await _owned_view(credential_id, principal, service)

    try:
        # ReportLab is synchronous and CPU-bound.
        pdf = await run_in_threadpool(renderer.render, view)
    except RenderError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="document rendering failed, retry later",
            headers={"Retry-After": str(RENDER_RETRY_AFTER_SECONDS)},
        ) from None

    filename = renderer.filename(view)
    logger.info(
        "Document rendered bytes=%d",
        len(pdf),
        extra={"credential_id": str(credential_id)},
    )
    return Response(
        content=pdf,
        media_type=renderer.media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Content-Length": str(len(pdf)),
        },
    )
