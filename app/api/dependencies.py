from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from app.core.config import SETTINGS
from app.db.engine import async_session_factory
from app.models.principal import Principal
from app.repos.course_repo import CourseCatalog, InMemoryCourseRepo, seed_sample_course
from app.repos.credential_repo import CredentialRepo, InMemoryCredentialRepo
from app.repos.identity_repo import IdentitySource, InMemoryIdentityRepo
from app.repos.pg_credential_repo import PgCredentialRepo
from app.repos.pg_sources import PgCourseCatalog, PgIdentitySource, PgProgressSource
from app.repos.progress_repo import InMemoryProgressRepo, ProgressSource
from app.repos.user_repo import InMemoryUserRepo
from app.services import token_service
from app.services.document_renderer import DocumentRenderer, RenderConfig
from app.services.issuance_service import IssuanceService
from app.services.verification_service import VerificationService

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/oauth/token")


def require_user(
    raw_token: Annotated[str, Depends(oauth2_scheme)],
) -> Principal:
    """Extract and validate the JWT bearer token. Returns a Principal.

    Used as a FastAPI dependency on any learner-facing endpoint.
    """
    try:
        claims = token_service.decode_access_token(raw_token)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None

    principal = Principal(
        user_id=claims["sub"],
        roles=frozenset(claims.get("roles", [])),
    )
    logger.debug("Token validated for user=%s", principal.user_id)
    return principal


# ---------------------------------------------------------------------------
# Backends: in-memory singletons without DATABASE_URL, Pg adapters with it
# ---------------------------------------------------------------------------

credential_repo = InMemoryCredentialRepo()
course_repo = InMemoryCourseRepo()
progress_repo = InMemoryProgressRepo()
user_repo = InMemoryUserRepo()
identity_repo = InMemoryIdentityRepo(user_repo, course_repo)

if async_session_factory is None and SETTINGS.is_dev:
    seed_sample_course(course_repo)


@dataclass(frozen=True, slots=True)
class Backends:
    credentials: CredentialRepo
    catalog: CourseCatalog
    progress: ProgressSource
    identity: IdentitySource


async def get_backends() -> AsyncGenerator[Backends, None]:
    """Request-scoped store and collaborator adapters.

    In Postgres mode all four share one AsyncSession, which is closed
    (rolling back anything uncommitted) when the request ends.
    """
    if async_session_factory is None:
        yield Backends(
            credentials=credential_repo,
            catalog=course_repo,
            progress=progress_repo,
            identity=identity_repo,
        )
        return

    async with async_session_factory() as session:
        yield Backends(
            credentials=PgCredentialRepo(session),
            catalog=PgCourseCatalog(session),
            progress=PgProgressSource(session),
            identity=PgIdentitySource(session),
        )


def get_issuance_service(
    backends: Annotated[Backends, Depends(get_backends)],
) -> IssuanceService:
    return IssuanceService(
        credentials=backends.credentials,
        catalog=backends.catalog,
        progress=backends.progress,
        identity=backends.identity,
        settings=SETTINGS.credentials,
    )


def get_verification_service(
    backends: Annotated[Backends, Depends(get_backends)],
) -> VerificationService:
    return VerificationService(
        credentials=backends.credentials,
        identity=backends.identity,
        settings=SETTINGS.credentials,
    )


renderer = DocumentRenderer(RenderConfig())


def get_renderer() -> DocumentRenderer:
    return renderer
