from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from safemed.models.record import RecordType


class RecordBase(BaseModel):
    """Base schema for medical records."""

    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    record_type: RecordType = Field(default=RecordType.general)


class RecordCreate(RecordBase):
    """Schema for creating a new medical record."""
    pass


class RecordResponse(RecordBase):
    """Schema for medical record response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
