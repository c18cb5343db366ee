"""Pydantic schemas for the access-request API."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from safemed.models.access_request import GrantStatus


class AccessRequestCreate(BaseModel):
    """Doctor requests access to a patient's record (creates a pending grant)."""

    patient_id: str = Field(
        ...,
        max_length=50,
        description="Patient identifier as typed, e.g. 'p9' or 'P0009'",
    )
    message: str | None = Field(None, description="Optional note for the patient")


class AccessGrantResponse(BaseModel):
    """Single access grant."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    doctor_id: str
    patient_id: str
    status: GrantStatus
    message: str | None = None
    requested_at: datetime
    responded_at: datetime | None = None


class AccessRequestItem(AccessGrantResponse):
    """Access grant in a request list.

    Patients see who is asking (doctor_*); doctors see whose record
    they asked for (patient_name).
    """

    doctor_name: str | None = None
    doctor_specialization: str | None = None
    doctor_hospital: str | None = None
    doctor_email: str | None = None
    patient_name: str | None = None


class PatientLookupResponse(BaseModel):
    """Result of a doctor looking up a patient identifier."""

    patient_id: str
    exists: bool
    access: Literal["approved", "pending", "none"]
