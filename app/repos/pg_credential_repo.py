"""PostgreSQL implementation of CredentialRepo.

Uniqueness is enforced by the database, not by this process:

  - uq_credentials_user_course on (user_id, course_id)
  - unique index on verification_code

create_if_absent uses INSERT ... ON CONFLICT (user_id, course_id) DO
NOTHING RETURNING id.  If another request already committed (or commits
while we wait on the index lock) the insert returns no row and we read
the winner's record back.  A verification_code clash is a different
constraint, so it surfaces as IntegrityError and is retried with a new
code inside a savepoint.
"""

from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import CredentialRow
from app.models.credential import CompletionSnapshot, Credential
from app.repos.credential_repo import (
    MAX_CODE_ATTEMPTS,
    VerificationCodeCollisionError,
)

logger = logging.getLogger(__name__)


class PgCredentialRepo:
    """Satisfies the CredentialRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_if_absent(
        self,
        user_id: str,
        course_id: str,
        snapshot: CompletionSnapshot,
        *,
        issued_at: datetime,
        valid_until: datetime | None = None,
    ) -> tuple[Credential, bool]:
        for attempt in range(1, MAX_CODE_ATTEMPTS + 1):
            candidate = Credential.new(
                user_id=user_id,
                course_id=course_id,
                snapshot=snapshot,
                issued_at=issued_at,
                valid_until=valid_until,
            )
            stmt = (
                insert(CredentialRow)
                .values(**_credential_to_values(candidate))
                .on_conflict_do_nothing(index_elements=["user_id", "course_id"])
                .returning(CredentialRow.id)
            )
            try:
                async with self._session.begin_nested():
                    result = await self._session.execute(stmt)
                    inserted_id = result.scalar_one_or_none()
            except IntegrityError:
                logger.warning(
                    "Verification code collision, retrying attempt=%d", attempt
                )
                continue

            # Commit here: once this returns, the credential must be durable
            # whatever happens to the rest of the request.
            await self._session.commit()

            if inserted_id is not None:
                return candidate, True

            existing = await self.get_by_user_and_course(user_id, course_id)
            if existing is None:
                # ON CONFLICT fired but the row is not visible; only possible
                # if the winner was deleted in between, which nothing does.
                raise RuntimeError(
                    f"credential for user={user_id} course={course_id} vanished"
                )
            return existing, False

        raise VerificationCodeCollisionError(
            f"no free verification code after {MAX_CODE_ATTEMPTS} attempts"
        )

    async def get_by_id(self, credential_id: UUID) -> Credential | None:
        row = await self._session.get(CredentialRow, credential_id)
        if row is None:
            return None
        return _row_to_credential(row)

    async def get_by_code(self, code: str) -> Credential | None:
        stmt = select(CredentialRow).where(CredentialRow.verification_code == code)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_credential(row)

    async def get_by_user_and_course(
        self, user_id: str, course_id: str
    ) -> Credential | None:
        stmt = select(CredentialRow).where(
            CredentialRow.user_id == user_id,
            CredentialRow.course_id == course_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_credential(row)

    async def list_by_user(self, user_id: str) -> list[Credential]:
        stmt = (
            select(CredentialRow)
            .where(CredentialRow.user_id == user_id)
            .order_by(CredentialRow.issued_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_credential(row) for row in rows]


def _credential_to_values(credential: Credential) -> dict:
    return {
        "id": credential.id,
        "user_id": credential.user_id,
        "course_id": credential.course_id,
        "verification_code": credential.verification_code,
        "issued_at": credential.issued_at,
        "valid_until": credential.valid_until,
        "percentage": credential.snapshot.percentage,
        "completed_count": credential.snapshot.completed_count,
        "total_count": credential.snapshot.total_count,
    }


def _row_to_credential(row: CredentialRow) -> Credential:
    return Credential(
        id=row.id,
        user_id=row.user_id,
        course_id=row.course_id,
        verification_code=row.verification_code,
        issued_at=row.issued_at,
        valid_until=row.valid_until,
        snapshot=CompletionSnapshot(
            percentage=row.percentage,
            completed_count=row.completed_count,
            total_count=row.total_count,
        ),
    )
