"""Decide which staff member may receive a lead.

Work is never silently queued to an absent agent: an admin saving a lead
without choosing an assignee is blocked when no sales member is online. An
explicit pick is honoured even when that member is offline.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, List, Mapping, Optional, Sequence

from leadflow.models.enums import StaffRole
from leadflow.models.identity_models import Identity
from leadflow.repositories.records.models.lead_model import Lead
from leadflow.repositories.records.models.staff_model import Staff
from leadflow.services.errors import LeadValidationError, NoEligibleAssigneeError
from leadflow.services.staff.presence_service import DEFAULT_STALE_AFTER, is_online


def eligible_assignees(
    staff: Iterable[Staff],
    role: StaffRole = StaffRole.SALES,
    now: Optional[datetime] = None,
    stale_after: timedelta = DEFAULT_STALE_AFTER,
) -> List[Staff]:
    """Return the members of `role` that are currently online."""
    return [
        member
        for member in staff
        if member.role == role and is_online(member, now=now, stale_after=stale_after)
    ]


def _rank(candidates: Sequence[Staff], open_counts: Mapping[str, int]) -> Optional[Staff]:
    """Pick the candidate with the fewest open leads, ties broken by name then id."""
    if not candidates:
        return None
    return min(
        candidates,
        key=lambda member: (
            open_counts.get(member.id, 0),
            (member.full_name or "").lower(),
            member.id,
        ),
    )


def validate_assignment(
    assigned_to: Optional[str],
    actor: Identity,
    staff: Sequence[Staff],
    open_counts: Optional[Mapping[str, int]] = None,
    now: Optional[datetime] = None,
    stale_after: timedelta = DEFAULT_STALE_AFTER,
) -> Optional[str]:
    """Return the staff id a new lead should be written with.

    Raises:
        LeadValidationError: The explicit assignee does not exist.
        NoEligibleAssigneeError: An admin left the assignee empty and no sales
            member is online.
    """
    if assigned_to:
        if not any(member.id == assigned_to for member in staff):
            raise LeadValidationError(f"Assignee {assigned_to} does not exist")
        return assigned_to

    if actor.role == StaffRole.ADMIN:
        candidates = eligible_assignees(staff, now=now, stale_after=stale_after)
        chosen = _rank(candidates, open_counts or {})
        if chosen is None:
            raise NoEligibleAssigneeError(
                "No sales staff is online to receive this lead. "
                "Wait for someone to come online or pick an assignee explicitly."
            )
        return str(chosen.id)

    if actor.role == StaffRole.SALES:
        return actor.id

    # after-care leads may stay pooled
    return None


def pick_reassignment_target(
    lead: Lead,
    staff: Sequence[Staff],
    open_counts: Optional[Mapping[str, int]] = None,
    now: Optional[datetime] = None,
    stale_after: timedelta = DEFAULT_STALE_AFTER,
) -> Optional[Staff]:
    """Suggest an online sales member other than the lead's current assignee."""
    candidates = [
        member
        for member in eligible_assignees(staff, now=now, stale_after=stale_after)
        if member.id != lead.assigned_to
    ]
    return _rank(candidates, open_counts or {})
