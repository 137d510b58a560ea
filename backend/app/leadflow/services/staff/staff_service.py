"""Staff directory operations used by the admin screens."""

from datetime import datetime
from typing import List, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from leadflow.logger_config import get_logger
from leadflow.models.enums import StaffRole
from leadflow.models.identity_models import Identity
from leadflow.repositories.records.crud.staff_crud import CRUDStaff
from leadflow.repositories.records.schemas.lead_schema import LeadUpdate
from leadflow.repositories.records.schemas.staff_schema import (
    StaffCreate,
    StaffResponse,
    StaffUpdate,
)
from leadflow.services.errors import (
    LeadValidationError,
    PermissionDeniedError,
    RecordNotFoundError,
)
from leadflow.services.leads.assignment_policy import eligible_assignees
from leadflow.services.leads.lead_workflow import LeadWorkflow
from leadflow.services.staff.presence_service import DEFAULT_STALE_AFTER, is_online

logger = get_logger(__name__)


class StaffService:
    def __init__(self, repository: CRUDStaff) -> None:
        self.repository = repository

    def list_staff(
        self,
        db: Session,
        role: Optional[StaffRole] = None,
        now: Optional[datetime] = None,
    ) -> List[StaffResponse]:
        """Return the staff directory with each member's derived online flag."""
        return [
            StaffResponse.model_validate(member).model_copy(
                update={"is_online": is_online(member, now=now)}
            )
            for member in self.repository.list(db, role=role)
        ]

    def list_eligible(
        self, db: Session, now: Optional[datetime] = None
    ) -> List[StaffResponse]:
        """Online sales members; what the lead form offers as assignees."""
        members = eligible_assignees(
            self.repository.list(db, role=StaffRole.SALES),
            now=now,
            stale_after=DEFAULT_STALE_AFTER,
        )
        return [
            StaffResponse.model_validate(member).model_copy(update={"is_online": True})
            for member in members
        ]

    def create_staff(
        self, db: Session, staff_in: StaffCreate, identity: Identity
    ) -> StaffResponse:
        if not identity.is_admin:
            raise PermissionDeniedError("Only admins can register staff members")
        staff = self.repository.create(db, staff_in)
        logger.info("Staff member %s (%s) registered.", staff.id, staff.role.value)
        return StaffResponse.model_validate(staff)

    def update_staff(
        self,
        db: Session,
        staff_id: str,
        staff_update: StaffUpdate,
        identity: Identity,
    ) -> StaffResponse:
        if not identity.is_admin:
            raise PermissionDeniedError("Only admins can edit staff members")
        staff = self.repository.get(db, staff_id)
        if staff is None:
            raise RecordNotFoundError(f"Staff member {staff_id} not found")
        staff = self.repository.update(db, staff, staff_update)
        return StaffResponse.model_validate(staff).model_copy(
            update={"is_online": is_online(staff)}
        )

    def delete_staff(
        self,
        db: Session,
        staff_id: str,
        identity: Identity,
        workflow: LeadWorkflow,
    ) -> int:
        """
        Remove a staff member after handing their leads back to the pool.

        Each lead is unassigned through the workflow, so it gets its own
        activity entry and notification. The member's appointments go with
        them.

        Returns:
            int: Number of leads that were unassigned.
        """
        if not identity.is_admin:
            raise PermissionDeniedError("Only admins can remove staff members")
        if staff_id == identity.id:
            raise LeadValidationError("Admins cannot remove their own account")
        staff = self.repository.get(db, staff_id)
        if staff is None:
            raise RecordNotFoundError(f"Staff member {staff_id} not found")

        leads = workflow.leads.list(db, assigned_to=staff_id)
        for lead in leads:
            workflow.update_lead(db, lead.id, LeadUpdate(assigned_to=None), identity)
        self.repository.delete(db, staff)
        logger.info("Staff member %s removed; %d leads unassigned.", staff_id, len(leads))
        return len(leads)


def get_staff_service(repository: CRUDStaff = Depends()) -> StaffService:
    return StaffService(repository)
