"""On-demand checks for leads nobody has called yet.

Both checks are read-only: they report and notify, they never reassign. A
lead that is still idle shows up again on the next run.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from configs import settings
from leadflow.logger_config import get_logger
from leadflow.models.enums import NotificationKind
from leadflow.models.trigger_models import IdleLeadItem, IdleLeadReport
from leadflow.repositories.records.crud.leads_crud import CRUDLead
from leadflow.repositories.records.crud.staff_crud import CRUDStaff
from leadflow.repositories.records.models.lead_model import Lead
from leadflow.services.leads.assignment_policy import pick_reassignment_target
from leadflow.services.messaging.line.line_client import LineNotifier, get_line_notifier
from leadflow.services.staff.presence_service import DEFAULT_STALE_AFTER
from leadflow.services.time_utils import to_naive_utc, utcnow

logger = get_logger(__name__)

NOTIFY_CHECK = "stale_notify"
REASSIGN_CHECK = "stale_reassign"


def _minutes_between(start: datetime, end: datetime) -> int:
    return int((end - to_naive_utc(start)).total_seconds() // 60)


def _summary_line(item: IdleLeadItem) -> str:
    line = f"- {item.name} ({item.phone}) {item.status}, idle {item.minutes_idle} min"
    if item.suggested_assignee:
        line += f" -> {item.suggested_assignee}"
    return line


class IdleLeadMonitor:
    """Find `new`/`uncalled` leads past the notify and reassign thresholds."""

    def __init__(
        self,
        leads: CRUDLead,
        staff: CRUDStaff,
        notifier: LineNotifier,
        notify_after: timedelta = timedelta(minutes=settings.IDLE_NOTIFY_MINUTES),
        reassign_after: timedelta = timedelta(hours=settings.IDLE_REASSIGN_HOURS),
        stale_after: timedelta = DEFAULT_STALE_AFTER,
    ) -> None:
        self.leads = leads
        self.staff = staff
        self.notifier = notifier
        self.notify_after = notify_after
        self.reassign_after = reassign_after
        self.stale_after = stale_after

    def check_stale_notify(
        self, db: Session, now: Optional[datetime] = None
    ) -> IdleLeadReport:
        """Report leads idle for longer than the notify threshold."""
        current = to_naive_utc(now) or utcnow()
        idle = self.leads.list_idle(db, created_before=current - self.notify_after)
        items = [self._item(lead, current) for lead in idle]
        return self._report(NOTIFY_CHECK, NotificationKind.IDLE_LEADS, items)

    def check_stale_reassign(
        self, db: Session, now: Optional[datetime] = None
    ) -> IdleLeadReport:
        """Report leads idle past the reassign threshold with a suggested new owner.

        The suggestion is advisory; applying it goes through
        `LeadWorkflow.reassign_lead`.
        """
        current = to_naive_utc(now) or utcnow()
        idle = self.leads.list_idle(db, created_before=current - self.reassign_after)
        if not idle:
            return IdleLeadReport(check=REASSIGN_CHECK, leads=[], notified=False)

        staff = self.staff.list(db)
        open_counts = self.leads.open_counts_by_assignee(db)
        items: List[IdleLeadItem] = []
        for lead in idle:
            target = pick_reassignment_target(
                lead, staff, open_counts=open_counts, now=current, stale_after=self.stale_after
            )
            items.append(
                self._item(lead, current, suggested=target.full_name if target else None)
            )
        return self._report(REASSIGN_CHECK, NotificationKind.REASSIGN_LEADS, items)

    def _item(
        self, lead: Lead, now: datetime, suggested: Optional[str] = None
    ) -> IdleLeadItem:
        return IdleLeadItem(
            lead_id=lead.id,
            name=lead.name,
            phone=lead.phone,
            status=lead.status.value,
            assigned_to=lead.assignee_name,
            minutes_idle=_minutes_between(lead.created_at, now),
            suggested_assignee=suggested,
        )

    def _report(
        self, check: str, kind: NotificationKind, items: List[IdleLeadItem]
    ) -> IdleLeadReport:
        if not items:
            logger.info("%s: no idle leads.", check)
            return IdleLeadReport(check=check, leads=[], notified=False)

        logger.info("%s: %s idle lead(s) found.", check, len(items))
        payload = {
            "count": len(items),
            "leads": "\n" + "\n".join(_summary_line(item) for item in items),
        }
        notified = self.notifier.send(kind, payload)
        return IdleLeadReport(check=check, leads=items, notified=notified)


def get_idle_lead_monitor(
    leads: CRUDLead = Depends(),
    staff: CRUDStaff = Depends(),
) -> IdleLeadMonitor:
    return IdleLeadMonitor(leads=leads, staff=staff, notifier=get_line_notifier())
