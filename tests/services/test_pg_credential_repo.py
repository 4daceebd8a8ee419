"""PgCredentialRepo against a live PostgreSQL.

Prerequisites:
  1. A throwaway database, e.g.
       docker run --rm -p 5432:5432 -e POSTGRES_PASSWORD=pg postgres:16
  2. DATABASE_URL=postgresql+asyncpg://postgres:pg@localhost:5432/postgres
  3. pytest -m docker -v

Each test creates the credentials table and drops it afterwards.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from datetime import UTC, datetime

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.db.tables import CredentialRow
from app.models.credential import CompletionSnapshot
from app.repos.pg_credential_repo import PgCredentialRepo

DATABASE_URL = os.environ.get("DATABASE_URL", "")

pytestmark = [
    pytest.mark.docker,
    pytest.mark.skipif(not DATABASE_URL, reason="DATABASE_URL not set"),
]

SNAP = CompletionSnapshot(percentage=100, completed_count=15, total_count=15)
T0 = datetime(2026, 5, 1, tzinfo=UTC)


def _run(scenario) -> None:
    """Create the table, run ``scenario(session_factory)``, drop the table."""

    async def _main() -> None:
        engine = create_async_engine(DATABASE_URL, pool_size=25)
        table = CredentialRow.__table__
        async with engine.begin() as conn:
            await conn.run_sync(table.drop, checkfirst=True)
            await conn.run_sync(table.create)
        try:
            await scenario(async_sessionmaker(engine, class_=AsyncSession))
        finally:
            async with engine.begin() as conn:
                await conn.run_sync(table.drop, checkfirst=True)
            await engine.dispose()

    asyncio.run(_main())


def test_create_then_existing() -> None:
    async def scenario(factory) -> None:
        user, course = str(uuid.uuid4()), str(uuid.uuid4())
        async with factory() as session:
            repo = PgCredentialRepo(session)
            first, created = await repo.create_if_absent(
                user, course, SNAP, issued_at=T0
            )
            assert created is True
            second, created = await repo.create_if_absent(
                user, course, SNAP, issued_at=T0
            )
            assert created is False
            assert second.verification_code == first.verification_code

        # Durable: visible from a fresh session.
        async with factory() as session:
            found = await PgCredentialRepo(session).get_by_code(
                first.verification_code
            )
            assert found is not None
            assert found.id == first.id
            assert found.snapshot == SNAP

    _run(scenario)


def test_concurrent_sessions_create_exactly_one() -> None:
    async def scenario(factory) -> None:
        user, course = str(uuid.uuid4()), str(uuid.uuid4())

        async def attempt():
            async with factory() as session:
                return await PgCredentialRepo(session).create_if_absent(
                    user, course, SNAP, issued_at=T0
                )

        results = await asyncio.gather(*(attempt() for _ in range(20)))
        assert sum(created for _, created in results) == 1
        assert len({c.verification_code for c, _ in results}) == 1

        async with factory() as session:
            listed = await PgCredentialRepo(session).list_by_user(user)
            assert len(listed) == 1

    _run(scenario)
