"""Baseline: identity tables, records and access requests.

Revision ID: 20261019_00
Revises:
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "20261019_00"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "patients",
        sa.Column("patient_id", sa.String(20), primary_key=True),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("gender", sa.String(20), nullable=True),
        sa.Column("blood_type", sa.String(10), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "doctors",
        sa.Column("doctor_id", sa.String(20), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("specialization", sa.String(255), nullable=True),
        sa.Column("hospital", sa.String(255), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "records",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "patient_id",
            sa.String(20),
            sa.ForeignKey("patients.patient_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("record_type", sa.String(50), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_records_patient_id", "records", ["patient_id"])
    op.create_index("ix_records_record_type", "records", ["record_type"])

    op.create_table(
        "access_requests",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("doctor_id", sa.String(20), nullable=False),
        sa.Column(
            "patient_id",
            sa.String(20),
            sa.ForeignKey("patients.patient_id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "status", sa.String(20), nullable=False, server_default="pending"
        ),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_access_requests_status",
        ),
        sa.CheckConstraint(
            "(status = 'pending') = (responded_at IS NULL)",
            name="ck_access_requests_responded_at",
        ),
    )
    op.create_index("ix_access_requests_doctor_id", "access_requests", ["doctor_id"])
    op.create_index("ix_access_requests_patient_id", "access_requests", ["patient_id"])
    op.create_index(
        "ix_access_requests_pair_status",
        "access_requests",
        ["doctor_id", "patient_id", "status"],
    )
    op.create_index(
        "uq_access_requests_pending_pair",
        "access_requests",
        ["doctor_id", "patient_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )


def downgrade() -> None:
    op.drop_index("uq_access_requests_pending_pair", table_name="access_requests")
    op.drop_index("ix_access_requests_pair_status", table_name="access_requests")
    op.drop_index("ix_access_requests_patient_id", table_name="access_requests")
    op.drop_index("ix_access_requests_doctor_id", table_name="access_requests")
    op.drop_table("access_requests")
    op.drop_index("ix_records_record_type", table_name="records")
    op.drop_index("ix_records_patient_id", table_name="records")
    op.drop_table("records")
    op.drop_table("doctors")
    op.drop_table("patients")
