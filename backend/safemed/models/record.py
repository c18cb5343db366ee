from enum import StrEnum
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from safemed.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from safemed.models.patient import Patient


class RecordType(StrEnum):
    general = "general"
    medication = "medication"
    vaccination = "vaccination"
    allergy = "allergy"
    condition = "condition"
    document = "document"


class Record(Base, TimestampMixin):
    """Medical record entry owned by a patient.

    Medications, vaccinations, allergies, conditions and uploaded documents
    all share this table and are told apart by ``record_type``.
    """

    __tablename__ = "records"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    patient_id: Mapped[str] = mapped_column(
        ForeignKey("patients.patient_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    record_type: Mapped[str] = mapped_column(
        String(50), nullable=False, default=RecordType.general.value, index=True
    )

    patient: Mapped["Patient"] = relationship(back_populates="records")

    def __repr__(self) -> str:
        return f"<Record(id={self.id}, patient_id='{self.patient_id}', type='{self.record_type}')>"
