import asyncio
from datetime import UTC, datetime, timedelta

import anyio
import pytest

from safemed.models import GrantStatus
from safemed.services.access import AccessWorkflow, InMemoryAccessGrantRepository
from safemed.services.exceptions import (
    AccessValidationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
)

pytestmark = pytest.mark.anyio


class _TickingClock:
    """Deterministic clock: each call is one minute after the previous one."""

    def __init__(self):
        self.current = datetime(2026, 1, 1, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        self.current += timedelta(minutes=1)
        return self.current


@pytest.fixture()
def ticking_workflow(grant_repository, directory):
    return AccessWorkflow(grant_repository, directory, clock=_TickingClock())


async def test_create_request_normalizes_patient_id(workflow):
    grant = await workflow.create_request("D0001", "p9", "routine checkup")

    assert grant.patient_id == "P0009"
    assert grant.doctor_id == "D0001"
    assert grant.status == GrantStatus.pending
    assert grant.message == "routine checkup"
    assert grant.requested_at is not None
    assert grant.responded_at is None


async def test_repeated_request_conflicts(workflow, grant_repository):
    await workflow.create_request("D0001", "p9", "routine checkup")

    with pytest.raises(ConflictError, match="already pending"):
        await workflow.create_request("D0001", "P0009", "again")

    assert len(grant_repository.all()) == 1


async def test_request_for_unknown_patient_is_not_found(workflow, grant_repository):
    with pytest.raises(NotFoundError, match="Patient not found"):
        await workflow.create_request("D0002", "p0042", "")

    assert grant_repository.all() == []


@pytest.mark.parametrize("raw", ["", "   ", None, "P-0009"])
async def test_request_with_malformed_patient_id_is_rejected(workflow, raw):
    with pytest.raises(AccessValidationError):
        await workflow.create_request("D0001", raw, None)


async def test_blank_message_is_stored_as_none(workflow):
    grant = await workflow.create_request("D0001", "P0009", "   ")

    assert grant.message is None


async def test_overlong_message_is_rejected(grant_repository, directory):
    workflow = AccessWorkflow(grant_repository, directory, message_max_length=10)

    with pytest.raises(AccessValidationError, match="at most 10"):
        await workflow.create_request("D0001", "P0009", "x" * 11)


async def test_approve_authorizes_doctor(workflow):
    grant = await workflow.create_request("D0001", "p9", "routine checkup")
    assert await workflow.is_authorized("D0001", "P0009") is False

    approved = await workflow.respond(grant.id, "approved")

    assert approved.status == GrantStatus.approved
    assert approved.responded_at is not None
    assert await workflow.is_authorized("D0001", "P0009") is True
    assert await workflow.is_authorized("D0002", "P0009") is False
    assert await workflow.is_authorized("D0001", "P0010") is False


async def test_respond_to_decided_grant_is_invalid_state(workflow):
    grant = await workflow.create_request("D0001", "p9", "routine checkup")
    approved = await workflow.respond(grant.id, "approved")

    with pytest.raises(InvalidStateError, match="already responded"):
        await workflow.respond(grant.id, "rejected")

    unchanged = await workflow.get_grant(grant.id)
    assert unchanged.status == GrantStatus.approved
    assert unchanged.responded_at == approved.responded_at


async def test_respond_to_missing_grant_is_not_found(workflow):
    with pytest.raises(NotFoundError):
        await workflow.respond(999, "approved")


@pytest.mark.parametrize("decision", ["pending", "revoked", "", "APPROVED"])
async def test_respond_rejects_invalid_decision(workflow, decision):
    grant = await workflow.create_request("D0001", "P0009", None)

    with pytest.raises(AccessValidationError):
        await workflow.respond(grant.id, decision)

    assert (await workflow.get_grant(grant.id)).status == GrantStatus.pending


async def test_rejection_does_not_authorize_and_allows_new_request(workflow):
    first = await workflow.create_request("D0001", "P0009", None)
    await workflow.respond(first.id, "rejected")

    assert await workflow.is_authorized("D0001", "P0009") is False

    second = await workflow.create_request("D0001", "P0009", "please reconsider")
    assert second.id != first.id
    assert second.status == GrantStatus.pending

    await workflow.respond(second.id, GrantStatus.approved)
    assert await workflow.is_authorized("D0001", "P0009") is True
    assert (await workflow.get_grant(first.id)).status == GrantStatus.rejected


async def test_multiple_approved_grants_keep_authorization(workflow):
    first = await workflow.create_request("D0001", "P0009", None)
    await workflow.respond(first.id, "approved")
    second = await workflow.create_request("D0001", "P0009", "follow-up")
    await workflow.respond(second.id, "approved")

    assert await workflow.is_authorized("D0001", "P0009") is True
    assert await workflow.authorized_patients("D0001") == ["P0009"]


async def test_at_most_one_pending_grant_per_pair(workflow, grant_repository):
    first = await workflow.create_request("D0001", "P0009", None)
    with pytest.raises(ConflictError):
        await workflow.create_request("D0001", "p9", None)
    await workflow.create_request("D0002", "P0009", None)
    await workflow.create_request("D0001", "P0010", None)
    await workflow.respond(first.id, "rejected")
    await workflow.create_request("D0001", "P0009", None)

    pending_pairs = [
        (g.doctor_id, g.patient_id)
        for g in grant_repository.all()
        if g.status == GrantStatus.pending
    ]
    assert len(pending_pairs) == len(set(pending_pairs)) == 3


async def test_lists_are_newest_first(ticking_workflow):
    older = await ticking_workflow.create_request("D0001", "P0009", None)
    other_doctor = await ticking_workflow.create_request("D0002", "P0009", None)
    newer = await ticking_workflow.create_request("D0001", "P0010", None)

    for_patient = await ticking_workflow.list_for_patient("P0009")
    for_doctor = await ticking_workflow.list_for_doctor("D0001")

    assert [g.id for g in for_patient] == [other_doctor.id, older.id]
    assert [g.id for g in for_doctor] == [newer.id, older.id]


async def test_lists_filter_by_status(workflow):
    first = await workflow.create_request("D0001", "P0009", None)
    await workflow.create_request("D0002", "P0009", None)
    await workflow.respond(first.id, "approved")

    approved = await workflow.list_for_patient("P0009", "approved")
    pending = await workflow.list_for_patient("P0009", "pending")

    assert [g.doctor_id for g in approved] == ["D0001"]
    assert [g.doctor_id for g in pending] == ["D0002"]


async def test_access_status_follows_lifecycle(workflow):
    assert await workflow.access_status("D0001", "P0009") == "none"

    grant = await workflow.create_request("D0001", "P0009", None)
    assert await workflow.access_status("D0001", "P0009") == "pending"

    await workflow.respond(grant.id, "approved")
    assert await workflow.access_status("D0001", "P0009") == "approved"


async def test_returned_grants_are_snapshots(workflow):
    grant = await workflow.create_request("D0001", "P0009", None)
    grant.status = "approved"

    assert await workflow.is_authorized("D0001", "P0009") is False


class _InterleavingGrantRepository(InMemoryAccessGrantRepository):
    """Yields after every read so concurrent callers all pass the pre-checks."""

    def __init__(self):
        super().__init__()
        self.pending_misses = 0
        self.pending_reads = 0

    async def find_pending(self, doctor_id, patient_id):
        grant = await super().find_pending(doctor_id, patient_id)
        if grant is None:
            self.pending_misses += 1
        await anyio.sleep(0)
        return grant

    async def get(self, grant_id):
        grant = await super().get(grant_id)
        if grant is not None and grant.status == GrantStatus.pending:
            self.pending_reads += 1
        await anyio.sleep(0)
        return grant


@pytest.fixture()
def interleaving_repository():
    return _InterleavingGrantRepository()


@pytest.fixture()
def interleaving_workflow(interleaving_repository, directory):
    return AccessWorkflow(interleaving_repository, directory)


async def test_concurrent_duplicate_requests_create_one_grant(
    interleaving_workflow, interleaving_repository
):
    attempts = 10
    workflow = interleaving_workflow

    results = await asyncio.gather(
        *(workflow.create_request("D0001", "p9", f"attempt {n}") for n in range(attempts)),
        return_exceptions=True,
    )

    created = [r for r in results if not isinstance(r, Exception)]
    conflicts = [r for r in results if isinstance(r, ConflictError)]
    assert len(created) == 1
    assert len(conflicts) == attempts - 1
    assert interleaving_repository.pending_misses == attempts
    assert len(interleaving_repository.all()) == 1


async def test_concurrent_responses_have_one_winner(
    interleaving_workflow, interleaving_repository
):
    workflow = interleaving_workflow
    grant = await workflow.create_request("D0001", "P0009", None)
    interleaving_repository.pending_reads = 0

    results = await asyncio.gather(
        workflow.respond(grant.id, "approved"),
        workflow.respond(grant.id, "rejected"),
        return_exceptions=True,
    )

    winners = [r for r in results if not isinstance(r, Exception)]
    losers = [r for r in results if isinstance(r, InvalidStateError)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert interleaving_repository.pending_reads == 2
    final = await workflow.get_grant(grant.id)
    assert final.status == winners[0].status
    assert final.responded_at == winners[0].responded_at


async def test_transition_is_compare_and_set(grant_repository):
    grant = await grant_repository.add_pending(
        "D0001", "P0009", None, datetime.now(UTC)
    )
    now = datetime.now(UTC)

    first = await grant_repository.transition(grant.id, GrantStatus.approved, now)
    second = await grant_repository.transition(
        grant.id, GrantStatus.rejected, now + timedelta(seconds=1)
    )

    assert first.status == GrantStatus.approved
    assert second is None
    assert (await grant_repository.get(grant.id)).status == GrantStatus.approved
