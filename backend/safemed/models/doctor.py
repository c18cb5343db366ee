from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from safemed.models.base import Base, TimestampMixin


class Doctor(Base, TimestampMixin):
    """Doctor account as held by the identity store."""

    __tablename__ = "doctors"

    doctor_id: Mapped[str] = mapped_column(String(20), primary_key=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    specialization: Mapped[str | None] = mapped_column(String(255), nullable=True)
    hospital: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<Doctor(doctor_id='{self.doctor_id}', name='{self.name}')>"
