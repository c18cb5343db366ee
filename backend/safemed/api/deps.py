"""Shared API dependencies."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from safemed.config import settings
from safemed.database import get_db
from safemed.logging import actor_var
from safemed.security import InvalidTokenError, Principal, Role, decode_access_token
from safemed.services.access import (
    AccessGrantRepository,
    AccessWorkflow,
    SQLAccessGrantRepository,
)
from safemed.services.directory import PatientDirectory, SQLPatientDirectory
from safemed.services.exceptions import AccessValidationError
from safemed.services.records import RecordRepository, SQLRecordRepository

security = HTTPBearer()


async def get_principal(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> Principal:
    """Get the authenticated caller from a valid JWT access token."""
    try:
        principal = decode_access_token(credentials.credentials)
    except InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    actor_var.set(f"{principal.role}:{principal.subject}")
    return principal


async def require_doctor(
    principal: Annotated[Principal, Depends(get_principal)],
) -> str:
    """Require a doctor caller; returns the doctor_id."""
    if principal.role != Role.doctor:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Doctor access only.",
        )
    return principal.subject


async def require_patient(
    principal: Annotated[Principal, Depends(get_principal)],
) -> str:
    """Require a patient caller; returns the patient_id."""
    if principal.role != Role.patient:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Patient access only.",
        )
    return principal.subject


def get_access_repo(
    db: AsyncSession = Depends(get_db),
) -> AccessGrantRepository:
    return SQLAccessGrantRepository(db)


def get_directory(
    db: AsyncSession = Depends(get_db),
) -> PatientDirectory:
    return SQLPatientDirectory(db)


def get_record_repo(
    db: AsyncSession = Depends(get_db),
) -> RecordRepository:
    return SQLRecordRepository(db)


def get_access_workflow(
    repo: AccessGrantRepository = Depends(get_access_repo),
    directory: PatientDirectory = Depends(get_directory),
) -> AccessWorkflow:
    return AccessWorkflow(
        repo,
        directory,
        id_width=settings.patient_id_width,
        message_max_length=settings.access_message_max_length,
    )


async def require_patient_access(
    patient_id: str,
    doctor_id: Annotated[str, Depends(require_doctor)],
    workflow: Annotated[AccessWorkflow, Depends(get_access_workflow)],
) -> str:
    """Gate for doctor-side reads of patient data.

    Returns the canonical patient_id when the doctor holds an approved
    grant, otherwise 403. An id that cannot name a patient is refused the
    same way. Every doctor read of record data must depend on it.
    """
    try:
        canonical_id = workflow.normalize(patient_id)
    except AccessValidationError:
        canonical_id = None
    if canonical_id is None or not await workflow.is_authorized(doctor_id, canonical_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access not granted to this patient",
        )
    return canonical_id
