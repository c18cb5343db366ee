"""Access request API: doctors ask, patients approve or reject."""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from safemed.api.deps import (
    get_access_workflow,
    get_principal,
    require_doctor,
    require_patient,
)
from safemed.models import GrantStatus
from safemed.schemas.access import (
    AccessGrantResponse,
    AccessRequestCreate,
    AccessRequestItem,
)
from safemed.security import Principal, Role
from safemed.services.access import AccessWorkflow

router = APIRouter(prefix="/access-requests", tags=["Access Requests"])


@router.post("", response_model=AccessGrantResponse, status_code=status.HTTP_201_CREATED)
async def create_access_request(
    data: AccessRequestCreate,
    doctor_id: str = Depends(require_doctor),
    workflow: AccessWorkflow = Depends(get_access_workflow),
):
    """Doctor requests access to a patient's record.

    Returns 409 (type ``conflict``) while an earlier request for the same
    patient is still pending.
    """
    grant = await workflow.create_request(doctor_id, data.patient_id, data.message)
    return AccessGrantResponse.model_validate(grant)


@router.get("", response_model=list[AccessRequestItem])
async def list_access_requests(
    role: Role | None = Query(None, description="doctor or patient (default: caller's role)"),
    status_filter: GrantStatus | None = Query(
        None, alias="status", description="Filter: pending, approved, rejected"
    ),
    principal: Principal = Depends(get_principal),
    workflow: AccessWorkflow = Depends(get_access_workflow),
):
    """List the caller's access requests, newest first."""
    if role is not None and role != principal.role:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Cannot list requests as {role} with a {principal.role} token",
        )
    status_value = status_filter.value if status_filter else None

    if principal.role == Role.patient:
        grants = await workflow.list_for_patient(principal.subject, status_value)
        doctors = await workflow.directory.get_doctors(g.doctor_id for g in grants)
        items = []
        for grant in grants:
            item = AccessRequestItem.model_validate(grant)
            doctor = doctors.get(grant.doctor_id)
            item.doctor_name = doctor.name if doctor else "Unknown"
            if doctor:
                item.doctor_specialization = doctor.specialization
                item.doctor_hospital = doctor.hospital
                item.doctor_email = doctor.email
            items.append(item)
        return items

    grants = await workflow.list_for_doctor(principal.subject, status_value)
    patients = await workflow.directory.get_patients(g.patient_id for g in grants)
    items = []
    for grant in grants:
        item = AccessRequestItem.model_validate(grant)
        patient = patients.get(grant.patient_id)
        item.patient_name = patient.full_name if patient else None
        items.append(item)
    return items


async def _respond(
    grant_id: int, decision: GrantStatus, patient_id: str, workflow: AccessWorkflow
) -> AccessGrantResponse:
    grant = await workflow.get_grant(grant_id)
    if grant.patient_id != patient_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the patient can respond to this request",
        )
    updated = await workflow.respond(grant_id, decision)
    return AccessGrantResponse.model_validate(updated)


@router.put("/{grant_id}/approve", response_model=AccessGrantResponse)
async def approve_access_request(
    grant_id: int,
    patient_id: str = Depends(require_patient),
    workflow: AccessWorkflow = Depends(get_access_workflow),
):
    """Patient approves a pending request. Repeats return 409 ``invalid_state``."""
    return await _respond(grant_id, GrantStatus.approved, patient_id, workflow)


@router.put("/{grant_id}/reject", response_model=AccessGrantResponse)
async def reject_access_request(
    grant_id: int,
    patient_id: str = Depends(require_patient),
    workflow: AccessWorkflow = Depends(get_access_workflow),
):
    """Patient rejects a pending request."""
    return await _respond(grant_id, GrantStatus.rejected, patient_id, workflow)
