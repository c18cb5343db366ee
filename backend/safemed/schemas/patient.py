from datetime import date

from pydantic import BaseModel, ConfigDict


class PatientSummary(BaseModel):
    """Patient entry in a doctor's list of authorized patients."""

    model_config = ConfigDict(from_attributes=True)

    patient_id: str
    full_name: str


class PatientProfileResponse(PatientSummary):
    """Patient demographics returned to an authorized doctor."""

    date_of_birth: date | None = None
    gender: str | None = None
    blood_type: str | None = None
    email: str | None = None
    phone: str | None = None
