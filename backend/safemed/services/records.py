"""Record store: a patient's own medical entries.

Every lookup is scoped to the owning patient. A record id that belongs to
someone else behaves exactly like a missing one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Protocol

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from safemed.models import Record
from safemed.schemas.records import RecordCreate


class RecordRepository(Protocol):
    async def list_records(
        self,
        patient_id: str,
        record_type: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list:
        ...

    async def create_record(self, patient_id: str, record: RecordCreate):
        ...

    async def get_record(self, patient_id: str, record_id: int):
        ...

    async def delete_record(self, patient_id: str, record_id: int) -> bool:
        ...


class SQLRecordRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    def _owned(self, patient_id: str):
        return select(Record).where(Record.patient_id == patient_id)

    async def list_records(
        self,
        patient_id: str,
        record_type: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[Record]:
        query = self._owned(patient_id)
        if record_type:
            query = query.where(Record.record_type == record_type)
        query = query.order_by(Record.created_at.desc(), Record.id.desc())
        result = await self.db.execute(query.offset(skip).limit(limit))
        return list(result.scalars().all())

    async def create_record(self, patient_id: str, record: RecordCreate) -> Record:
        new_record = Record(patient_id=patient_id, **record.model_dump())
        self.db.add(new_record)
        await self.db.flush()
        await self.db.refresh(new_record)
        return new_record

    async def get_record(self, patient_id: str, record_id: int) -> Optional[Record]:
        result = await self.db.execute(self._owned(patient_id).where(Record.id == record_id))
        return result.scalar_one_or_none()

    async def delete_record(self, patient_id: str, record_id: int) -> bool:
        result = await self.db.execute(
            delete(Record).where(Record.id == record_id, Record.patient_id == patient_id)
        )
        return result.rowcount > 0


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class InMemoryRecord:
    id: int
    patient_id: str
    title: str
    content: str
    record_type: str
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)


class InMemoryRecordRepository:
    """In-memory record store for tests and local demos. Newest entries first."""

    def __init__(self):
        self._records: dict[int, InMemoryRecord] = {}
        self._next_id = 1

    def _owned(self, patient_id: str) -> list[InMemoryRecord]:
        return [r for r in self._records.values() if r.patient_id == patient_id]

    async def list_records(
        self,
        patient_id: str,
        record_type: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[InMemoryRecord]:
        records = sorted(self._owned(patient_id), key=lambda r: r.id, reverse=True)
        if record_type:
            records = [r for r in records if r.record_type == record_type]
        return records[skip : skip + limit]

    async def create_record(self, patient_id: str, record: RecordCreate) -> InMemoryRecord:
        new_record = InMemoryRecord(id=self._next_id, patient_id=patient_id, **record.model_dump())
        self._records[new_record.id] = new_record
        self._next_id += 1
        return new_record

    async def get_record(self, patient_id: str, record_id: int) -> Optional[InMemoryRecord]:
        record = self._records.get(record_id)
        if record is None or record.patient_id != patient_id:
            return None
        return record

    async def delete_record(self, patient_id: str, record_id: int) -> bool:
        if await self.get_record(patient_id, record_id) is None:
            return False
        del self._records[record_id]
        return True
