"""Access request: a doctor's request for, and the patient's decision on, record access."""

from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from safemed.models.base import Base

if TYPE_CHECKING:
    from safemed.models.patient import Patient


class GrantStatus(StrEnum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


TERMINAL_STATUSES = frozenset({GrantStatus.approved, GrantStatus.rejected})

PENDING_PAIR_INDEX = "uq_access_requests_pending_pair"


class AccessRequest(Base):
    """A single request-and-decision record linking one doctor to one patient.

    Rows are inserted as ``pending`` and updated exactly once, when the
    patient approves or rejects. They are never deleted.
    """

    __tablename__ = "access_requests"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    doctor_id: Mapped[str] = mapped_column(
        String(20),
        index=True,
        nullable=False,
        comment="Requesting doctor, as asserted by the identity provider",
    )
    patient_id: Mapped[str] = mapped_column(
        ForeignKey("patients.patient_id", ondelete="RESTRICT"),
        index=True,
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=GrantStatus.pending.value,
        server_default="pending",
    )
    message: Mapped[str | None] = mapped_column(Text, nullable=True)

    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    responded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    patient: Mapped["Patient"] = relationship(back_populates="access_requests")

    __table_args__ = (
        Index(
            PENDING_PAIR_INDEX,
            "doctor_id",
            "patient_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index("ix_access_requests_pair_status", "doctor_id", "patient_id", "status"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_access_requests_status",
        ),
        CheckConstraint(
            "(status = 'pending') = (responded_at IS NULL)",
            name="ck_access_requests_responded_at",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<AccessRequest(id={self.id}, doctor_id='{self.doctor_id}', "
            f"patient_id='{self.patient_id}', status={self.status})>"
        )
