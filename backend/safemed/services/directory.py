"""Identity store lookups consumed by the access workflow."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from safemed.models import Doctor, Patient


class PatientDirectory(Protocol):
    async def patient_exists(self, patient_id: str) -> bool:
        ...

    async def get_patient(self, patient_id: str):
        ...

    async def get_patients(self, patient_ids: Iterable[str]) -> dict:
        ...

    async def get_doctors(self, doctor_ids: Iterable[str]) -> dict:
        ...


class SQLPatientDirectory:
    """Directory backed by the patients/doctors tables."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def patient_exists(self, patient_id: str) -> bool:
        result = await self.db.execute(
            select(Patient.patient_id).where(Patient.patient_id == patient_id)
        )
        return result.scalar_one_or_none() is not None

    async def get_patient(self, patient_id: str) -> Optional[Patient]:
        result = await self.db.execute(
            select(Patient).where(Patient.patient_id == patient_id)
        )
        return result.scalar_one_or_none()

    async def get_patients(self, patient_ids: Iterable[str]) -> dict[str, Patient]:
        ids = set(patient_ids)
        if not ids:
            return {}
        result = await self.db.execute(
            select(Patient).where(Patient.patient_id.in_(ids))
        )
        return {p.patient_id: p for p in result.scalars().all()}

    async def get_doctors(self, doctor_ids: Iterable[str]) -> dict[str, Doctor]:
        ids = set(doctor_ids)
        if not ids:
            return {}
        result = await self.db.execute(select(Doctor).where(Doctor.doctor_id.in_(ids)))
        return {d.doctor_id: d for d in result.scalars().all()}


@dataclass
class InMemoryPatient:
    patient_id: str
    full_name: str
    date_of_birth: date | None = None
    gender: str | None = None
    blood_type: str | None = None
    email: str | None = None
    phone: str | None = None


@dataclass
class InMemoryDoctor:
    doctor_id: str
    name: str
    email: str | None = None
    specialization: str | None = None
    hospital: str | None = None


class InMemoryPatientDirectory:
    """In-memory directory for tests and local demos."""

    def __init__(self):
        self._patients: dict[str, InMemoryPatient] = {}
        self._doctors: dict[str, InMemoryDoctor] = {}

    def add_patient(self, patient_id: str, full_name: str, **fields) -> InMemoryPatient:
        patient = InMemoryPatient(patient_id=patient_id, full_name=full_name, **fields)
        self._patients[patient_id] = patient
        return patient

    def add_doctor(self, doctor_id: str, name: str, **fields) -> InMemoryDoctor:
        doctor = InMemoryDoctor(doctor_id=doctor_id, name=name, **fields)
        self._doctors[doctor_id] = doctor
        return doctor

    async def patient_exists(self, patient_id: str) -> bool:
        return patient_id in self._patients

    async def get_patient(self, patient_id: str) -> Optional[InMemoryPatient]:
        return self._patients.get(patient_id)

    async def get_patients(self, patient_ids: Iterable[str]) -> dict[str, InMemoryPatient]:
        return {pid: self._patients[pid] for pid in set(patient_ids) if pid in self._patients}

    async def get_doctors(self, doctor_ids: Iterable[str]) -> dict[str, InMemoryDoctor]:
        return {did: self._doctors[did] for did in set(doctor_ids) if did in self._doctors}
