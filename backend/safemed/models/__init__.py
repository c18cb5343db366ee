from safemed.models.access_request import (
    PENDING_PAIR_INDEX,
    TERMINAL_STATUSES,
    AccessRequest,
    GrantStatus,
)
from safemed.models.base import Base, TimestampMixin
from safemed.models.doctor import Doctor
from safemed.models.patient import Patient
from safemed.models.record import Record, RecordType

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    # Identity store
    "Patient",
    "Doctor",
    # Access workflow
    "AccessRequest",
    "GrantStatus",
    "TERMINAL_STATUSES",
    "PENDING_PAIR_INDEX",
    # Record store
    "Record",
    "RecordType",
]
