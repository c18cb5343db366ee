"""Doctor-side patient reads. Every route that returns record data is gated."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from safemed.api.deps import (
    get_access_workflow,
    get_record_repo,
    require_doctor,
    require_patient_access,
)
from safemed.models import RecordType
from safemed.schemas.access import PatientLookupResponse
from safemed.schemas.patient import PatientProfileResponse, PatientSummary
from safemed.schemas.records import RecordResponse
from safemed.services.access import AccessWorkflow
from safemed.services.records import RecordRepository

router = APIRouter(prefix="/doctor/patients", tags=["Doctor"])


@router.get("", response_model=list[PatientSummary])
async def list_my_patients(
    doctor_id: str = Depends(require_doctor),
    workflow: AccessWorkflow = Depends(get_access_workflow),
):
    """Patients whose records this doctor is currently approved to read."""
    patient_ids = await workflow.authorized_patients(doctor_id)
    patients = await workflow.directory.get_patients(patient_ids)
    return [
        PatientSummary.model_validate(patients[pid])
        for pid in patient_ids
        if pid in patients
    ]


@router.get("/lookup", response_model=PatientLookupResponse)
async def lookup_patient(
    patient_id: str = Query(..., description="Patient identifier as typed"),
    doctor_id: str = Depends(require_doctor),
    workflow: AccessWorkflow = Depends(get_access_workflow),
):
    """Resolve a typed patient ID and report this doctor's access to it.

    Returns no record data, so it is not gated.
    """
    canonical_id = workflow.normalize(patient_id)
    exists = await workflow.directory.patient_exists(canonical_id)
    access = await workflow.access_status(doctor_id, canonical_id) if exists else "none"
    return PatientLookupResponse(patient_id=canonical_id, exists=exists, access=access)


@router.get("/{patient_id}", response_model=PatientProfileResponse)
async def get_patient_profile(
    authorized_id: str = Depends(require_patient_access),
    workflow: AccessWorkflow = Depends(get_access_workflow),
):
    """Patient demographics for an authorized doctor."""
    patient = await workflow.directory.get_patient(authorized_id)
    if not patient:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found")
    return PatientProfileResponse.model_validate(patient)


@router.get("/{patient_id}/records", response_model=list[RecordResponse])
async def list_patient_records(
    authorized_id: str = Depends(require_patient_access),
    record_type: Optional[RecordType] = Query(None, description="Filter by record type"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    repo: RecordRepository = Depends(get_record_repo),
):
    """Medical records for an authorized doctor."""
    records = await repo.list_records(
        patient_id=authorized_id,
        record_type=record_type.value if record_type else None,
        skip=skip,
        limit=limit,
    )
    return [RecordResponse.model_validate(r) for r in records]
