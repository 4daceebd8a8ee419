from __future__ import annotations

import threading
from datetime import datetime
from typing import Protocol
from uuid import UUID

from app.models.credential import CompletionSnapshot, Credential

# A 128-bit code colliding even once is astronomically unlikely; needing
# more than a handful of retries means the generator is broken.
MAX_CODE_ATTEMPTS = 5


class VerificationCodeCollisionError(RuntimeError):
    """Every freshly generated verification code was already taken."""


class CredentialRepo(Protocol):
    async def create_if_absent(
        self,
        user_id: str,
        course_id: str,
        snapshot: CompletionSnapshot,
        *,
        issued_at: datetime,
        valid_until: datetime | None = None,
    ) -> tuple[Credential, bool]: ...
    async def get_by_id(self, credential_id: UUID) -> Credential | None: ...
    async def get_by_code(self, code: str) -> Credential | None: ...
    async def get_by_user_and_course(
        self, user_id: str, course_id: str
    ) -> Credential | None: ...
    async def list_by_user(self, user_id: str) -> list[Credential]: ...


class InMemoryCredentialRepo:
    """Dict-backed store that honours the same uniqueness rules as Postgres.

    The lock only guards the check-and-insert; nothing awaits while it
    is held.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_id: dict[UUID, Credential] = {}
        self._by_code: dict[str, Credential] = {}
        self._by_pair: dict[tuple[str, str], Credential] = {}

    async def create_if_absent(
        self,
        user_id: str,
        course_id: str,
        snapshot: CompletionSnapshot,
        *,
        issued_at: datetime,
        valid_until: datetime | None = None,
    ) -> tuple[Credential, bool]:
        with self._lock:
            existing = self._by_pair.get((user_id, course_id))
            if existing is not None:
                return existing, False

            for _ in range(MAX_CODE_ATTEMPTS):
                credential = Credential.new(
                    user_id=user_id,
                    course_id=course_id,
                    snapshot=snapshot,
                    issued_at=issued_at,
                    valid_until=valid_until,
                )
                if credential.verification_code not in self._by_code:
                    break
            else:
                raise VerificationCodeCollisionError(
                    f"no free verification code after {MAX_CODE_ATTEMPTS} attempts"
                )

            self._by_id[credential.id] = credential
            self._by_code[credential.verification_code] = credential
            self._by_pair[(user_id, course_id)] = credential
            return credential, True

    async def get_by_id(self, credential_id: UUID) -> Credential | None:
        return self._by_id.get(credential_id)

    async def get_by_code(self, code: str) -> Credential | None:
        return self._by_code.get(code)

    async def get_by_user_and_course(
        self, user_id: str, course_id: str
    ) -> Credential | None:
        return self._by_pair.get((user_id, course_id))

    async def list_by_user(self, user_id: str) -> list[Credential]:
        owned = [c for c in self._by_id.values() if c.user_id == user_id]
        return sorted(owned, key=lambda c: c.issued_at, reverse=True)

    def clear(self) -> None:
        with self._lock:
            self._by_id.clear()
            self._by_code.clear()
            self._by_pair.clear()
