from safemed.schemas.access import (
    AccessGrantResponse,
    AccessRequestCreate,
    AccessRequestItem,
    PatientLookupResponse,
)
from safemed.schemas.patient import PatientProfileResponse, PatientSummary
from safemed.schemas.records import RecordCreate, RecordResponse

__all__ = [
    "AccessRequestCreate",
    "AccessGrantResponse",
    "AccessRequestItem",
    "PatientLookupResponse",
    "PatientSummary",
    "PatientProfileResponse",
    "RecordCreate",
    "RecordResponse",
]
