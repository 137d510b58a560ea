"""Staff directory and presence endpoints."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from leadflow.controllers.dependencies import get_identity, to_http_exception
from leadflow.models.enums import StaffRole
from leadflow.models.identity_models import Identity
from leadflow.repositories.records.dependencies import get_db
from leadflow.repositories.records.schemas.staff_schema import (
    PresenceUpdate,
    StaffCreate,
    StaffResponse,
    StaffUpdate,
)
from leadflow.services.errors import LeadWorkflowError
from leadflow.services.leads.lead_workflow import LeadWorkflow, get_lead_workflow
from leadflow.services.staff.presence_service import (
    PresenceService,
    get_presence_service,
)
from leadflow.services.staff.staff_service import StaffService, get_staff_service

staff_router = APIRouter(prefix="/staff", tags=["Staff"])


class HeartbeatResponse(BaseModel):
    accepted: bool


@staff_router.get("/", response_model=List[StaffResponse])
def list_staff(
    role: Optional[StaffRole] = None,
    db: Session = Depends(get_db),
    _identity: Identity = Depends(get_identity),
    service: StaffService = Depends(get_staff_service),
) -> List[StaffResponse]:
    return service.list_staff(db, role=role)


@staff_router.get("/eligible", response_model=List[StaffResponse])
def list_eligible(
    db: Session = Depends(get_db),
    _identity: Identity = Depends(get_identity),
    service: StaffService = Depends(get_staff_service),
) -> List[StaffResponse]:
    """Sales members currently online, i.e. who can receive a new lead."""
    return service.list_eligible(db)


@staff_router.post("/", response_model=StaffResponse, status_code=status.HTTP_201_CREATED)
def create_staff(
    staff_in: StaffCreate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
    service: StaffService = Depends(get_staff_service),
) -> StaffResponse:
    try:
        return service.create_staff(db, staff_in, identity)
    except LeadWorkflowError as exc:
        raise to_http_exception(exc)


@staff_router.patch("/{staff_id}", response_model=StaffResponse)
def update_staff(
    staff_id: str,
    staff_update: StaffUpdate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
    service: StaffService = Depends(get_staff_service),
) -> StaffResponse:
    try:
        return service.update_staff(db, staff_id, staff_update, identity)
    except LeadWorkflowError as exc:
        raise to_http_exception(exc)


@staff_router.delete("/{staff_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_staff(
    staff_id: str,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
    service: StaffService = Depends(get_staff_service),
    workflow: LeadWorkflow = Depends(get_lead_workflow),
) -> None:
    """Remove a staff member; their leads return to the unassigned pool."""
    try:
        service.delete_staff(db, staff_id, identity, workflow)
    except LeadWorkflowError as exc:
        raise to_http_exception(exc)


@staff_router.post("/me/heartbeat", response_model=HeartbeatResponse)
def heartbeat(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
    presence: PresenceService = Depends(get_presence_service),
) -> HeartbeatResponse:
    """Refresh the caller's presence. Failures are reported, not raised."""
    if not identity.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No staff id")
    return HeartbeatResponse(accepted=presence.heartbeat(db, identity.id))


@staff_router.put("/me/presence", response_model=StaffResponse)
def set_presence(
    update: PresenceUpdate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
    presence: PresenceService = Depends(get_presence_service),
) -> StaffResponse:
    """Explicit online/offline toggle; logging out sends `offline`."""
    if not identity.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No staff id")
    try:
        staff = presence.set_presence(db, identity.id, update.state)
    except LeadWorkflowError as exc:
        raise to_http_exception(exc)
    return StaffResponse.model_validate(staff).model_copy(
        update={"is_online": presence.is_online(staff)}
    )
