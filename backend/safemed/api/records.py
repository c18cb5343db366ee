from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from safemed.api.deps import get_record_repo, require_patient
from safemed.models import RecordType
from safemed.schemas.records import RecordCreate, RecordResponse
from safemed.services.records import RecordRepository

router = APIRouter(prefix="/records", tags=["Medical Records"])


@router.get("", response_model=list[RecordResponse])
async def list_records(
    record_type: Optional[RecordType] = Query(None, description="Filter by record type"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    repo: RecordRepository = Depends(get_record_repo),
    patient_id: str = Depends(require_patient),
):
    """List the current patient's medical records."""
    records = await repo.list_records(
        patient_id=patient_id,
        record_type=record_type.value if record_type else None,
        skip=skip,
        limit=limit,
    )
    return [RecordResponse.model_validate(r) for r in records]


@router.post("", response_model=RecordResponse, status_code=201)
async def create_record(
    record: RecordCreate,
    repo: RecordRepository = Depends(get_record_repo),
    patient_id: str = Depends(require_patient),
):
    """Create a new medical record for the current patient."""
    new_record = await repo.create_record(patient_id=patient_id, record=record)
    return RecordResponse.model_validate(new_record)


@router.get("/{record_id}", response_model=RecordResponse)
async def get_record(
    record_id: int,
    repo: RecordRepository = Depends(get_record_repo),
    patient_id: str = Depends(require_patient),
):
    """Get one of the current patient's medical records."""
    record = await repo.get_record(patient_id, record_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Record not found")
    return RecordResponse.model_validate(record)


@router.delete("/{record_id}", status_code=204)
async def delete_record(
    record_id: int,
    repo: RecordRepository = Depends(get_record_repo),
    patient_id: str = Depends(require_patient),
):
    """Delete one of the current patient's medical records."""
    if not await repo.delete_record(patient_id, record_id):
        raise HTTPException(status_code=404, detail="Record not found")
