"""Lead lifecycle: create, update, reassign, close and delete leads.

Every status or assignment change appends exactly one activity entry that
describes the diff, then emits an `update_status` notification. Status
transitions are permissive so data-entry mistakes can be corrected; the
transition table below allows every pair.

Each operation is a sequence of independent writes (lead row, activity
entry, notification). They are not atomic: a crash between steps can leave
a lead updated without its activity entry.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple, Union

from fastapi import Depends
from sqlalchemy.orm import Session

from leadflow.logger_config import get_logger
from leadflow.models.enums import LeadStatus, NotificationKind, StaffRole
from leadflow.models.identity_models import Identity
from leadflow.repositories.records.crud.leads_crud import CRUDLead
from leadflow.repositories.records.crud.staff_crud import CRUDStaff
from leadflow.repositories.records.models.calendar_event_model import CalendarEvent
from leadflow.repositories.records.models.lead_model import Lead
from leadflow.repositories.records.schemas.lead_schema import LeadCreate, LeadUpdate
from leadflow.services.calendar.follow_up_scheduler import (
    FollowUpScheduler,
    get_follow_up_scheduler,
)
from leadflow.services.errors import (
    LeadValidationError,
    NoEligibleAssigneeError,
    PermissionDeniedError,
    RecordNotFoundError,
)
from leadflow.services.leads.assignment_policy import (
    pick_reassignment_target,
    validate_assignment,
)
from leadflow.services.leads.lead_activities_service import (
    LeadActivityService,
    get_lead_activity_service,
)
from leadflow.services.messaging.line.line_client import LineNotifier, get_line_notifier
from leadflow.services.staff.presence_service import DEFAULT_STALE_AFTER
from leadflow.services.time_utils import to_naive_utc, utcnow

logger = get_logger(__name__)

LEAD_CREATED = "Lead created"

USER_VISIBLE_FIELDS: Tuple[str, ...] = (
    "name",
    "phone",
    "source",
    "program",
    "status",
    "assigned_to",
    "value",
    "notes",
    "birthday",
    "address",
)
REQUIRED_FIELDS: Tuple[str, ...] = ("name", "phone", "status", "value")

TRANSITIONS: Dict[LeadStatus, FrozenSet[LeadStatus]] = {
    status: frozenset(LeadStatus) for status in LeadStatus
}


def can_transition(current: LeadStatus, target: LeadStatus) -> bool:
    return target in TRANSITIONS[current]


def snapshot(lead: Lead) -> Dict[str, Any]:
    """Return the user-visible fields of a lead."""
    return {field: getattr(lead, field) for field in USER_VISIBLE_FIELDS}


def describe_changes(
    old: Mapping[str, Any],
    new: Mapping[str, Any],
    assignee_name: Optional[str] = None,
) -> Optional[str]:
    """Describe the status/assignment difference between two snapshots.

    Only the fields that actually changed are mentioned; other edits are not
    part of the trail. Returns None when neither changed.
    """
    changes: List[str] = []
    if old.get("status") != new.get("status"):
        status = new.get("status")
        label = status.value if isinstance(status, LeadStatus) else status
        changes.append(f'Status changed to "{label}"')
    if old.get("assigned_to") != new.get("assigned_to"):
        if new.get("assigned_to"):
            changes.append(f'Assigned to "{assignee_name or "N/A"}"')
        else:
            changes.append("Unassigned")
    return ", ".join(changes) or None


class LeadWorkflow:
    """Drive leads through their lifecycle with logging and notifications."""

    def __init__(
        self,
        leads: CRUDLead,
        staff: CRUDStaff,
        activities: LeadActivityService,
        notifier: LineNotifier,
        follow_ups: FollowUpScheduler,
        stale_after: timedelta = DEFAULT_STALE_AFTER,
    ) -> None:
        self.leads = leads
        self.staff = staff
        self.activities = activities
        self.notifier = notifier
        self.follow_ups = follow_ups
        self.stale_after = stale_after

    # reads

    def list_leads(self, db: Session, identity: Identity) -> List[Lead]:
        """Return the leads visible to `identity`, newest first."""
        if identity.is_admin:
            return self.leads.list(db)
        return self.leads.list(
            db,
            assigned_to=identity.id,
            include_unassigned=identity.role == StaffRole.AFTER_CARE,
        )

    def get_lead(self, db: Session, lead_id: int, identity: Identity) -> Lead:
        lead = self.leads.get(db, lead_id)
        if lead is None:
            raise RecordNotFoundError(f"Lead {lead_id} not found")
        if not self._can_access(lead, identity):
            raise PermissionDeniedError(f"Lead {lead_id} is not assigned to you")
        return lead

    def pending_count(self, db: Session, identity: Identity) -> int:
        """Number of new/uncalled leads waiting for the caller."""
        if not identity.id:
            return 0
        return self.leads.count_pending(db, identity.id)

    # writes

    def create_lead(
        self,
        db: Session,
        draft: LeadCreate,
        identity: Identity,
        now: Optional[datetime] = None,
    ) -> Lead:
        """Validate the assignee, insert the lead, log it and announce it."""
        assignee = validate_assignment(
            draft.assigned_to,
            identity,
            self.staff.list(db),
            open_counts=self.leads.open_counts_by_assignee(db),
            now=now,
            stale_after=self.stale_after,
        )
        timestamp = to_naive_utc(now) or utcnow()
        data = draft.model_dump()
        data.update(
            assigned_to=assignee,
            received_date=to_naive_utc(draft.received_date) or timestamp,
            created_at=timestamp,
            last_update_date=timestamp,
        )
        lead = self.leads.create(db, data)
        logger.info("Lead %s created by %s, assigned to %s.", lead.id, identity.display_name, assignee)

        self.activities.append(db, lead.id, LEAD_CREATED, identity)
        self._notify(NotificationKind.NEW_LEAD, lead)
        return lead

    def update_lead(
        self,
        db: Session,
        lead_id: int,
        changes: LeadUpdate,
        identity: Identity,
        note: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Lead:
        """Apply a partial update.

        Args:
            db (Session): The database session.
            lead_id (int): Lead to change.
            changes (LeadUpdate): Fields explicitly set are applied; others are kept.
            identity (Identity): Acting user, recorded on the activity entry.
            note (str): Optional free text stored in the same activity entry.
            now (datetime): Override of the current time.

        Returns:
            Lead: The updated lead.
        """
        lead = self.get_lead(db, lead_id, identity)
        data = changes.model_dump(exclude_unset=True)
        for field in REQUIRED_FIELDS:
            if field in data and data[field] is None:
                data.pop(field)

        new_assignee = data.get("assigned_to")
        if new_assignee and self.staff.get(db, new_assignee) is None:
            raise LeadValidationError(f"Assignee {new_assignee} does not exist")

        before = snapshot(lead)
        if "status" in data and not can_transition(before["status"], data["status"]):
            raise LeadValidationError(
                f"Cannot move lead from {before['status'].value} to {data['status'].value}"
            )
        changed = {
            field: value for field, value in data.items() if before.get(field) != value
        }
        if changed:
            changed["last_update_date"] = to_naive_utc(now) or utcnow()
            lead = self.leads.update(db, lead, changed)

        description = describe_changes(before, snapshot(lead), lead.assignee_name)
        if note:
            description = f"{description}. Note: {note}" if description else f"Note: {note}"
        if description:
            self.activities.append(db, lead.id, description, identity)
            self._notify(NotificationKind.UPDATE_STATUS, lead)
        return lead

    def log_contact(
        self,
        db: Session,
        lead_id: int,
        status: LeadStatus,
        note: str,
        identity: Identity,
        now: Optional[datetime] = None,
    ) -> Lead:
        """Record the outcome of a call: new status and the caller's note, one entry."""
        return self.update_lead(
            db,
            lead_id,
            LeadUpdate(status=status),
            identity,
            note=note.strip() or None,
            now=now,
        )

    def reassign_lead(
        self,
        db: Session,
        lead_id: int,
        identity: Identity,
        now: Optional[datetime] = None,
    ) -> Lead:
        """Hand an idle lead to another online sales member chosen by the assignment policy."""
        if not identity.is_admin:
            raise PermissionDeniedError("Only admins can reassign leads")
        lead = self.get_lead(db, lead_id, identity)
        target = pick_reassignment_target(
            lead,
            self.staff.list(db),
            open_counts=self.leads.open_counts_by_assignee(db),
            now=now,
            stale_after=self.stale_after,
        )
        if target is None:
            raise NoEligibleAssigneeError(
                f"No other sales staff is online to take lead {lead_id}"
            )
        return self.update_lead(
            db, lead_id, LeadUpdate(assigned_to=target.id), identity, now=now
        )

    def confirm_sale(
        self,
        db: Session,
        lead_id: int,
        service_date: Union[date, datetime],
        identity: Identity,
        now: Optional[datetime] = None,
    ) -> Tuple[Lead, List[CalendarEvent]]:
        """Mark the lead won and schedule its after-care follow-ups."""
        lead = self.get_lead(db, lead_id, identity)
        if lead.status != LeadStatus.WON:
            lead = self.update_lead(
                db, lead_id, LeadUpdate(status=LeadStatus.WON), identity, now=now
            )
        staff_id = identity.id or lead.assigned_to
        if not staff_id:
            raise LeadValidationError(
                "Follow-ups need a responsible staff member; assign the lead first"
            )
        events = self.follow_ups.schedule_follow_ups(
            db, lead.id, staff_id, service_date, lead.name
        )
        return lead, events

    def delete_lead(self, db: Session, lead_id: int, identity: Identity) -> None:
        """Remove a lead for good.

        The `delete_lead` notification is built from the pre-deletion row and
        sent first; its outcome does not gate the delete, and a failing
        delete does not retract it.
        """
        if not identity.is_admin:
            raise PermissionDeniedError("Only admins can delete leads")
        lead = self.leads.get(db, lead_id)
        if lead is None:
            raise RecordNotFoundError(f"Lead {lead_id} not found")
        self._notify(NotificationKind.DELETE_LEAD, lead)
        self.leads.delete(db, lead)
        logger.info("Lead %s deleted by %s.", lead_id, identity.display_name)

    # helpers

    @staticmethod
    def _can_access(lead: Lead, identity: Identity) -> bool:
        if identity.is_admin:
            return True
        if lead.assigned_to is None:
            return identity.role == StaffRole.AFTER_CARE
        return lead.assigned_to == identity.id

    def _notify(self, kind: NotificationKind, lead: Lead) -> None:
        payload = {
            "lead_name": lead.name,
            "phone": lead.phone,
            "status": lead.status.value if lead.status else None,
            "assignee": lead.assignee_name or "-",
            "program": lead.program,
            "notes": lead.notes,
        }
        try:
            self.notifier.send(kind, payload)
        except Exception as exc:
            logger.error("Notification %s for lead %s failed: %s", kind.value, lead.id, exc)


def get_lead_workflow(
    leads: CRUDLead = Depends(),
    staff: CRUDStaff = Depends(),
    activities: LeadActivityService = Depends(get_lead_activity_service),
    follow_ups: FollowUpScheduler = Depends(get_follow_up_scheduler),
) -> LeadWorkflow:
    return LeadWorkflow(
        leads=leads,
        staff=staff,
        activities=activities,
        notifier=get_line_notifier(),
        follow_ups=follow_ups,
    )
