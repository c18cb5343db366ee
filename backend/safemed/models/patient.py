from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import Date, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from safemed.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from safemed.models.access_request import AccessRequest
    from safemed.models.record import Record


class Patient(Base, TimestampMixin):
    """Patient account as held by the identity store."""

    __tablename__ = "patients"

    patient_id: Mapped[str] = mapped_column(
        String(20),
        primary_key=True,
        comment="Canonical patient identifier, e.g. P0009",
    )

    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    gender: Mapped[str | None] = mapped_column(String(20), nullable=True)
    blood_type: Mapped[str | None] = mapped_column(String(10), nullable=True)

    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    records: Mapped[list["Record"]] = relationship(
        back_populates="patient", cascade="all, delete-orphan"
    )
    access_requests: Mapped[list["AccessRequest"]] = relationship(
        back_populates="patient"
    )

    def __repr__(self) -> str:
        return f"<Patient(patient_id='{self.patient_id}', name='{self.full_name}')>"
