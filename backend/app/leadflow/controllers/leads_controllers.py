"""Lead endpoints: listing, editing, contact logging, sales and deletion."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from leadflow.controllers.dependencies import get_identity, to_http_exception
from leadflow.models.identity_models import Identity
from leadflow.repositories.records.dependencies import get_db
from leadflow.repositories.records.schemas.calendar_event_schema import (
    CalendarEventResponse,
)
from leadflow.repositories.records.schemas.lead_activity_schema import (
    LeadActivityResponse,
)
from leadflow.repositories.records.schemas.lead_schema import (
    ContactLogCreate,
    LeadCreate,
    LeadResponse,
    LeadUpdate,
    SaleConfirmation,
)
from leadflow.services.errors import LeadWorkflowError
from leadflow.services.leads.lead_activities_service import (
    LeadActivityService,
    get_lead_activity_service,
)
from leadflow.services.leads.lead_workflow import LeadWorkflow, get_lead_workflow

leads_router = APIRouter(prefix="/leads", tags=["Leads"])


class PendingCount(BaseModel):
    count: int


class SaleResponse(BaseModel):
    lead: LeadResponse
    follow_ups: List[CalendarEventResponse]


@leads_router.get("/", response_model=List[LeadResponse])
def list_leads(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
    workflow: LeadWorkflow = Depends(get_lead_workflow),
) -> List[LeadResponse]:
    """List the leads visible to the caller, newest first."""
    return [LeadResponse.model_validate(lead) for lead in workflow.list_leads(db, identity)]


@leads_router.get("/pending-count", response_model=PendingCount)
def pending_count(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
    workflow: LeadWorkflow = Depends(get_lead_workflow),
) -> PendingCount:
    return PendingCount(count=workflow.pending_count(db, identity))


@leads_router.post("/", response_model=LeadResponse, status_code=status.HTTP_201_CREATED)
def create_lead(
    draft: LeadCreate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
    workflow: LeadWorkflow = Depends(get_lead_workflow),
) -> LeadResponse:
    """
    Create a lead.

    An admin leaving `assigned_to` empty gets the least-loaded online sales
    member; with nobody online the request fails with 409.
    """
    try:
        lead = workflow.create_lead(db, draft, identity)
    except LeadWorkflowError as exc:
        raise to_http_exception(exc)
    return LeadResponse.model_validate(lead)


@leads_router.get("/{lead_id}", response_model=LeadResponse)
def get_lead(
    lead_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
    workflow: LeadWorkflow = Depends(get_lead_workflow),
) -> LeadResponse:
    try:
        return LeadResponse.model_validate(workflow.get_lead(db, lead_id, identity))
    except LeadWorkflowError as exc:
        raise to_http_exception(exc)


@leads_router.patch("/{lead_id}", response_model=LeadResponse)
def update_lead(
    lead_id: int,
    changes: LeadUpdate,
    note: Optional[str] = Query(default=None, max_length=2000),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
    workflow: LeadWorkflow = Depends(get_lead_workflow),
) -> LeadResponse:
    try:
        lead = workflow.update_lead(db, lead_id, changes, identity, note=note)
    except LeadWorkflowError as exc:
        raise to_http_exception(exc)
    return LeadResponse.model_validate(lead)


@leads_router.post("/{lead_id}/contact", response_model=LeadResponse)
def log_contact(
    lead_id: int,
    contact: ContactLogCreate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
    workflow: LeadWorkflow = Depends(get_lead_workflow),
) -> LeadResponse:
    """Record a call outcome: new status and an optional note."""
    try:
        lead = workflow.log_contact(db, lead_id, contact.status, contact.note, identity)
    except LeadWorkflowError as exc:
        raise to_http_exception(exc)
    return LeadResponse.model_validate(lead)


@leads_router.post("/{lead_id}/reassign", response_model=LeadResponse)
def reassign_lead(
    lead_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
    workflow: LeadWorkflow = Depends(get_lead_workflow),
) -> LeadResponse:
    try:
        lead = workflow.reassign_lead(db, lead_id, identity)
    except LeadWorkflowError as exc:
        raise to_http_exception(exc)
    return LeadResponse.model_validate(lead)


@leads_router.post("/{lead_id}/sale", response_model=SaleResponse)
def confirm_sale(
    lead_id: int,
    sale: SaleConfirmation,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
    workflow: LeadWorkflow = Depends(get_lead_workflow),
) -> SaleResponse:
    """Mark the lead won and book its five after-care follow-ups."""
    try:
        lead, events = workflow.confirm_sale(db, lead_id, sale.service_date, identity)
    except LeadWorkflowError as exc:
        raise to_http_exception(exc)
    return SaleResponse(
        lead=LeadResponse.model_validate(lead),
        follow_ups=[CalendarEventResponse.model_validate(event) for event in events],
    )


@leads_router.delete("/{lead_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_lead(
    lead_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
    workflow: LeadWorkflow = Depends(get_lead_workflow),
) -> None:
    try:
        workflow.delete_lead(db, lead_id, identity)
    except LeadWorkflowError as exc:
        raise to_http_exception(exc)


@leads_router.get("/{lead_id}/activities", response_model=List[LeadActivityResponse])
def list_activities(
    lead_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
    workflow: LeadWorkflow = Depends(get_lead_workflow),
    activities: LeadActivityService = Depends(get_lead_activity_service),
) -> List[LeadActivityResponse]:
    """Return the lead's activity trail, most recent first."""
    try:
        workflow.get_lead(db, lead_id, identity)
    except LeadWorkflowError as exc:
        raise to_http_exception(exc)
    return [
        LeadActivityResponse.model_validate(entry)
        for entry in activities.list_for_lead(db, lead_id)
    ]
