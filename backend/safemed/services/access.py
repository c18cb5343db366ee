"""Access workflow: doctor requests, patient decisions and the record-read gate."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Literal, Optional, Protocol

from sqlalchemy import exists, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from safemed.models import TERMINAL_STATUSES, AccessRequest, GrantStatus
from safemed.services.directory import PatientDirectory
from safemed.services.exceptions import (
    AccessValidationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
)
from safemed.services.identifiers import DEFAULT_WIDTH, parse_patient_id

logger = logging.getLogger("safemed.access")

AccessLevel = Literal["approved", "pending", "none"]


class AccessGrantRepository(Protocol):
    async def find_pending(self, doctor_id: str, patient_id: str):
        ...

    async def add_pending(
        self,
        doctor_id: str,
        patient_id: str,
        message: Optional[str],
        requested_at: datetime,
    ):
        ...

    async def get(self, grant_id: int):
        ...

    async def list_for_patient(self, patient_id: str, status: Optional[str]) -> list:
        ...

    async def list_for_doctor(self, doctor_id: str, status: Optional[str]) -> list:
        ...

    async def transition(
        self, grant_id: int, decision: GrantStatus, responded_at: datetime
    ):
        ...

    async def has_approved(self, doctor_id: str, patient_id: str) -> bool:
        ...

    async def approved_patient_ids(self, doctor_id: str) -> list[str]:
        ...


class SQLAccessGrantRepository:
    """Grant store backed by the ``access_requests`` table.

    Uniqueness of pending requests is enforced by a partial unique index,
    and decisions are applied with a conditional UPDATE so that only one
    responder can move a grant out of ``pending``.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_pending(self, doctor_id: str, patient_id: str) -> Optional[AccessRequest]:
        result = await self.db.execute(
            select(AccessRequest).where(
                AccessRequest.doctor_id == doctor_id,
                AccessRequest.patient_id == patient_id,
                AccessRequest.status == GrantStatus.pending.value,
            )
        )
        return result.scalar_one_or_none()

    async def add_pending(
        self,
        doctor_id: str,
        patient_id: str,
        message: Optional[str],
        requested_at: datetime,
    ) -> AccessRequest:
        grant = AccessRequest(
            doctor_id=doctor_id,
            patient_id=patient_id,
            status=GrantStatus.pending.value,
            message=message,
            requested_at=requested_at,
            responded_at=None,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(grant)
                await self.db.flush()
        except IntegrityError as exc:
            # A concurrent request for the same pair committed first.
            if await self.find_pending(doctor_id, patient_id) is not None:
                raise ConflictError() from exc
            raise
        return grant

    async def get(self, grant_id: int) -> Optional[AccessRequest]:
        result = await self.db.execute(
            select(AccessRequest)
            .where(AccessRequest.id == grant_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_for_patient(
        self, patient_id: str, status: Optional[str]
    ) -> list[AccessRequest]:
        query = select(AccessRequest).where(AccessRequest.patient_id == patient_id)
        if status:
            query = query.where(AccessRequest.status == status)
        query = query.order_by(
            AccessRequest.requested_at.desc(), AccessRequest.id.desc()
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_for_doctor(
        self, doctor_id: str, status: Optional[str]
    ) -> list[AccessRequest]:
        query = select(AccessRequest).where(AccessRequest.doctor_id == doctor_id)
        if status:
            query = query.where(AccessRequest.status == status)
        query = query.order_by(
            AccessRequest.requested_at.desc(), AccessRequest.id.desc()
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def transition(
        self, grant_id: int, decision: GrantStatus, responded_at: datetime
    ) -> Optional[AccessRequest]:
        result = await self.db.execute(
            update(AccessRequest)
            .where(
                AccessRequest.id == grant_id,
                AccessRequest.status == GrantStatus.pending.value,
            )
            .values(status=decision.value, responded_at=responded_at)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return None
        return await self.get(grant_id)

    async def has_approved(self, doctor_id: str, patient_id: str) -> bool:
        approved = await self.db.scalar(
            select(
                exists().where(
                    AccessRequest.doctor_id == doctor_id,
                    AccessRequest.patient_id == patient_id,
                    AccessRequest.status == GrantStatus.approved.value,
                )
            )
        )
        return bool(approved)

    async def approved_patient_ids(self, doctor_id: str) -> list[str]:
        result = await self.db.execute(
            select(AccessRequest.patient_id)
            .where(
                AccessRequest.doctor_id == doctor_id,
                AccessRequest.status == GrantStatus.approved.value,
            )
            .distinct()
            .order_by(AccessRequest.patient_id)
        )
        return list(result.scalars().all())


@dataclass
class InMemoryAccessRequest:
    id: int
    doctor_id: str
    patient_id: str
    status: str
    message: Optional[str]
    requested_at: datetime
    responded_at: Optional[datetime] = None


class InMemoryAccessGrantRepository:
    """In-memory grant store for tests and local demos.

    Check-then-insert and transitions each run under a single store-wide
    lock. Callers always receive copies.
    """

    def __init__(self):
        self._grants: dict[int, InMemoryAccessRequest] = {}
        self._next_id = 1
        self._insert_lock = asyncio.Lock()
        self._transition_lock = asyncio.Lock()

    def _find_pending(self, doctor_id: str, patient_id: str) -> Optional[InMemoryAccessRequest]:
        for grant in self._grants.values():
            if (
                grant.doctor_id == doctor_id
                and grant.patient_id == patient_id
                and grant.status == GrantStatus.pending
            ):
                return grant
        return None

    @staticmethod
    def _newest_first(grants: list[InMemoryAccessRequest]) -> list[InMemoryAccessRequest]:
        ordered = sorted(grants, key=lambda g: (g.requested_at, g.id), reverse=True)
        return [replace(g) for g in ordered]

    async def find_pending(self, doctor_id: str, patient_id: str) -> Optional[InMemoryAccessRequest]:
        grant = self._find_pending(doctor_id, patient_id)
        return replace(grant) if grant else None

    async def add_pending(
        self,
        doctor_id: str,
        patient_id: str,
        message: Optional[str],
        requested_at: datetime,
    ) -> InMemoryAccessRequest:
        async with self._insert_lock:
            if self._find_pending(doctor_id, patient_id) is not None:
                raise ConflictError()
            grant = InMemoryAccessRequest(
                id=self._next_id,
                doctor_id=doctor_id,
                patient_id=patient_id,
                status=GrantStatus.pending.value,
                message=message,
                requested_at=requested_at,
            )
            self._grants[grant.id] = grant
            self._next_id += 1
            return replace(grant)

    async def get(self, grant_id: int) -> Optional[InMemoryAccessRequest]:
        grant = self._grants.get(grant_id)
        return replace(grant) if grant else None

    async def list_for_patient(
        self, patient_id: str, status: Optional[str]
    ) -> list[InMemoryAccessRequest]:
        grants = [g for g in self._grants.values() if g.patient_id == patient_id]
        if status:
            grants = [g for g in grants if g.status == status]
        return self._newest_first(grants)

    async def list_for_doctor(
        self, doctor_id: str, status: Optional[str]
    ) -> list[InMemoryAccessRequest]:
        grants = [g for g in self._grants.values() if g.doctor_id == doctor_id]
        if status:
            grants = [g for g in grants if g.status == status]
        return self._newest_first(grants)

    async def transition(
        self, grant_id: int, decision: GrantStatus, responded_at: datetime
    ) -> Optional[InMemoryAccessRequest]:
        async with self._transition_lock:
            grant = self._grants.get(grant_id)
            if grant is None or grant.status != GrantStatus.pending:
                return None
            grant.status = decision.value
            grant.responded_at = responded_at
            return replace(grant)

    async def has_approved(self, doctor_id: str, patient_id: str) -> bool:
        return any(
            g.doctor_id == doctor_id
            and g.patient_id == patient_id
            and g.status == GrantStatus.approved
            for g in self._grants.values()
        )

    async def approved_patient_ids(self, doctor_id: str) -> list[str]:
        return sorted(
            {
                g.patient_id
                for g in self._grants.values()
                if g.doctor_id == doctor_id and g.status == GrantStatus.approved
            }
        )

    def all(self) -> list[InMemoryAccessRequest]:
        return [replace(g) for g in self._grants.values()]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class AccessWorkflow:
    """Request/approve/reject state machine over an access grant store.

    ``pending`` moves to ``approved`` or ``rejected`` exactly once. Both
    are terminal: a doctor who needs access again files a new request.
    """

    def __init__(
        self,
        repo: AccessGrantRepository,
        directory: PatientDirectory,
        *,
        id_width: int = DEFAULT_WIDTH,
        message_max_length: int = 1000,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.repo = repo
        self.directory = directory
        self.id_width = id_width
        self.message_max_length = message_max_length
        self.clock = clock

    def normalize(self, raw_patient_id: str | None) -> str:
        return parse_patient_id(raw_patient_id, self.id_width)

    def _clean_message(self, message: Optional[str]) -> Optional[str]:
        if message is None:
            return None
        message = message.strip()
        if not message:
            return None
        if len(message) > self.message_max_length:
            raise AccessValidationError(
                f"Message must be at most {self.message_max_length} characters"
            )
        return message

    @staticmethod
    def _parse_decision(decision: str) -> GrantStatus:
        try:
            parsed = GrantStatus(decision)
        except ValueError:
            parsed = None
        if parsed not in TERMINAL_STATUSES:
            raise AccessValidationError(
                "Decision must be 'approved' or 'rejected'"
            )
        return parsed

    async def create_request(
        self,
        doctor_id: str,
        raw_patient_id: str | None,
        message: Optional[str] = None,
    ):
        """Open a pending request from ``doctor_id`` for a patient's record."""
        patient_id = self.normalize(raw_patient_id)
        message = self._clean_message(message)

        if not await self.directory.patient_exists(patient_id):
            raise NotFoundError("Patient not found")

        if await self.repo.find_pending(doctor_id, patient_id) is not None:
            logger.info(
                "Duplicate access request: doctor=%s patient=%s already pending",
                doctor_id,
                patient_id,
            )
            raise ConflictError()

        grant = await self.repo.add_pending(
            doctor_id, patient_id, message, self.clock()
        )
        logger.info(
            "Access request %s created: doctor=%s patient=%s",
            grant.id,
            doctor_id,
            patient_id,
        )
        return grant

    async def list_for_patient(self, patient_id: str, status: Optional[str] = None) -> list:
        return await self.repo.list_for_patient(patient_id, status)

    async def list_for_doctor(self, doctor_id: str, status: Optional[str] = None) -> list:
        return await self.repo.list_for_doctor(doctor_id, status)

    async def get_grant(self, grant_id: int):
        grant = await self.repo.get(grant_id)
        if grant is None:
            raise NotFoundError("Access request not found")
        return grant

    async def respond(self, grant_id: int, decision: str):
        """Approve or reject a pending grant.

        The store applies the change only while the grant is still pending,
        so of two concurrent responders exactly one succeeds and the other
        gets InvalidStateError.
        """
        parsed = self._parse_decision(decision)
        grant = await self.get_grant(grant_id)
        if grant.status != GrantStatus.pending:
            logger.info(
                "Access request %s already %s; ignoring %s", grant_id, grant.status, parsed
            )
            raise InvalidStateError()

        updated = await self.repo.transition(grant_id, parsed, self.clock())
        if updated is None:
            logger.info("Access request %s was answered concurrently", grant_id)
            raise InvalidStateError()

        logger.info(
            "Access request %s %s: doctor=%s patient=%s",
            grant_id,
            parsed,
            updated.doctor_id,
            updated.patient_id,
        )
        return updated

    async def is_authorized(self, doctor_id: str, patient_id: str) -> bool:
        """True iff the doctor holds at least one approved grant for the patient."""
        return await self.repo.has_approved(doctor_id, patient_id)

    async def authorized_patients(self, doctor_id: str) -> list[str]:
        return await self.repo.approved_patient_ids(doctor_id)

    async def access_status(self, doctor_id: str, patient_id: str) -> AccessLevel:
        if await self.repo.has_approved(doctor_id, patient_id):
            return "approved"
        if await self.repo.find_pending(doctor_id, patient_id) is not None:
            return "pending"
        return "none"
