from __future__ import annotations

import asyncio
import os
from datetime import UTC, datetime

import pytest
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from safemed.models import AccessRequest, Base, Doctor, GrantStatus, Patient, Record
from safemed.services.access import AccessWorkflow, SQLAccessGrantRepository
from safemed.services.directory import SQLPatientDirectory
from safemed.services.exceptions import ConflictError, InvalidStateError

pytestmark = pytest.mark.anyio


@pytest.fixture(scope="session")
def database_url():
    url = os.getenv("TEST_DATABASE_URL")
    if not url:
        pytest.skip("TEST_DATABASE_URL is required for DB tests")
    return url


@pytest.fixture(scope="session")
async def async_engine(database_url: str):
    engine = create_async_engine(database_url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(scope="session")
def session_maker(async_engine):
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest.fixture()
async def seeded(session_maker):
    async with session_maker() as session:
        session.add_all(
            [
                Patient(patient_id="P0009", full_name="Asha Raman"),
                Patient(patient_id="P0010", full_name="Ben Ortiz"),
                Doctor(doctor_id="D0001", name="Dr. Meera Iyer"),
            ]
        )
        await session.commit()
    yield
    async with session_maker() as session:
        for model in (AccessRequest, Record, Patient, Doctor):
            await session.execute(delete(model))
        await session.commit()


def _workflow(session: AsyncSession) -> AccessWorkflow:
    return AccessWorkflow(SQLAccessGrantRepository(session), SQLPatientDirectory(session))


async def test_create_and_approve_roundtrip(session_maker, seeded):
    async with session_maker() as session:
        workflow = _workflow(session)
        grant = await workflow.create_request("D0001", "p9", "routine checkup")
        await session.commit()

    async with session_maker() as session:
        workflow = _workflow(session)
        approved = await workflow.respond(grant.id, "approved")
        await session.commit()

        assert approved.status == GrantStatus.approved
        assert approved.responded_at is not None
        assert await workflow.is_authorized("D0001", "P0009") is True
        assert await workflow.authorized_patients("D0001") == ["P0009"]


async def test_duplicate_insert_maps_to_conflict(session_maker, seeded):
    now = datetime.now(UTC)
    async with session_maker() as session:
        repo = SQLAccessGrantRepository(session)
        await repo.add_pending("D0001", "P0009", None, now)

        with pytest.raises(ConflictError):
            await repo.add_pending("D0001", "P0009", "again", now)

        # The savepoint rollback leaves the first grant usable.
        await session.commit()

    async with session_maker() as session:
        grants = await SQLAccessGrantRepository(session).list_for_patient("P0009", None)
        assert len(grants) == 1


async def test_transition_on_decided_grant_is_noop(session_maker, seeded):
    async with session_maker() as session:
        repo = SQLAccessGrantRepository(session)
        grant = await repo.add_pending("D0001", "P0009", None, datetime.now(UTC))
        first = await repo.transition(grant.id, GrantStatus.rejected, datetime.now(UTC))
        second = await repo.transition(grant.id, GrantStatus.approved, datetime.now(UTC))
        await session.commit()

        assert first.status == GrantStatus.rejected
        assert second is None
        assert await repo.has_approved("D0001", "P0009") is False


async def test_decided_grant_requires_response_time(session_maker, seeded):
    async with session_maker() as session:
        session.add(
            AccessRequest(
                doctor_id="D0001",
                patient_id="P0009",
                status=GrantStatus.approved.value,
                requested_at=datetime.now(UTC),
                responded_at=None,
            )
        )
        with pytest.raises(IntegrityError):
            await session.flush()
        await session.rollback()


async def test_concurrent_requests_create_one_pending_grant(session_maker, seeded):
    async def attempt(n: int):
        async with session_maker() as session:
            try:
                grant = await _workflow(session).create_request("D0001", "P0009", f"attempt {n}")
                await session.commit()
                return grant
            except Exception:
                await session.rollback()
                raise

    results = await asyncio.gather(*(attempt(n) for n in range(5)), return_exceptions=True)

    created = [r for r in results if not isinstance(r, Exception)]
    conflicts = [r for r in results if isinstance(r, ConflictError)]
    assert len(created) == 1
    assert len(conflicts) == 4


async def test_concurrent_responses_have_one_winner(session_maker, seeded):
    async with session_maker() as session:
        grant = await _workflow(session).create_request("D0001", "P0009", None)
        await session.commit()

    async def answer(decision: str):
        async with session_maker() as session:
            try:
                result = await _workflow(session).respond(grant.id, decision)
                await session.commit()
                return result
            except Exception:
                await session.rollback()
                raise

    results = await asyncio.gather(
        answer("approved"), answer("rejected"), return_exceptions=True
    )

    winners = [r for r in results if not isinstance(r, Exception)]
    losers = [r for r in results if isinstance(r, InvalidStateError)]
    assert len(winners) == 1
    assert len(losers) == 1

    async with session_maker() as session:
        final = await _workflow(session).get_grant(grant.id)
        assert final.status == winners[0].status
