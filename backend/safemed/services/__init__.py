"""Business logic services for SafeMed."""

from safemed.services.access import (
    AccessGrantRepository,
    AccessWorkflow,
    InMemoryAccessGrantRepository,
    SQLAccessGrantRepository,
)
from safemed.services.directory import (
    InMemoryPatientDirectory,
    PatientDirectory,
    SQLPatientDirectory,
)
from safemed.services.exceptions import (
    AccessError,
    AccessValidationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
)
from safemed.services.identifiers import normalize_patient_id, parse_patient_id
from safemed.services.records import (
    InMemoryRecordRepository,
    RecordRepository,
    SQLRecordRepository,
)

__all__ = [
    # Access workflow
    "AccessWorkflow",
    "AccessGrantRepository",
    "SQLAccessGrantRepository",
    "InMemoryAccessGrantRepository",
    # Identity store
    "PatientDirectory",
    "SQLPatientDirectory",
    "InMemoryPatientDirectory",
    # Record store
    "RecordRepository",
    "SQLRecordRepository",
    "InMemoryRecordRepository",
    # Errors
    "AccessError",
    "AccessValidationError",
    "NotFoundError",
    "ConflictError",
    "InvalidStateError",
    # Identifiers
    "normalize_patient_id",
    "parse_patient_id",
]
