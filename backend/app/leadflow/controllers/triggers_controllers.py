"""Manually or periodically triggered workflow checks.

The trigger runner (`consumer.py`) calls these on a fixed interval; admins
can call them by hand as well.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from leadflow.controllers.dependencies import get_identity
from leadflow.models.enums import NotificationKind
from leadflow.models.identity_models import Identity
from leadflow.models.trigger_models import BirthdayReport, IdleLeadReport, TriggerResponse
from leadflow.repositories.records.dependencies import get_db
from leadflow.services.calendar.follow_up_scheduler import (
    FollowUpScheduler,
    get_follow_up_scheduler,
)
from leadflow.services.leads.birthday_report import (
    BirthdayReporter,
    get_birthday_reporter,
)
from leadflow.services.leads.idle_leads import IdleLeadMonitor, get_idle_lead_monitor
from leadflow.services.messaging.line.line_client import get_line_notifier

triggers_router = APIRouter(prefix="/triggers", tags=["Triggers"])


def require_admin(identity: Identity = Depends(get_identity)) -> Identity:
    if not identity.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Triggers are admin-only"
        )
    return identity


@triggers_router.post("/idle-leads", response_model=IdleLeadReport)
def idle_leads(
    db: Session = Depends(get_db),
    _admin: Identity = Depends(require_admin),
    monitor: IdleLeadMonitor = Depends(get_idle_lead_monitor),
) -> IdleLeadReport:
    """Notify about new/uncalled leads older than the notify threshold."""
    return monitor.check_stale_notify(db)


@triggers_router.post("/reassign-idle-leads", response_model=IdleLeadReport)
def reassign_idle_leads(
    db: Session = Depends(get_db),
    _admin: Identity = Depends(require_admin),
    monitor: IdleLeadMonitor = Depends(get_idle_lead_monitor),
) -> IdleLeadReport:
    """Report long-idle leads with a suggested new owner. Nothing is reassigned."""
    return monitor.check_stale_reassign(db)


@triggers_router.post("/birthdays", response_model=BirthdayReport)
def birthdays(
    day: Optional[date] = None,
    staff_id: Optional[str] = None,
    db: Session = Depends(get_db),
    _admin: Identity = Depends(require_admin),
    reporter: BirthdayReporter = Depends(get_birthday_reporter),
) -> BirthdayReport:
    return reporter.send(db, day=day, staff_id=staff_id)


@triggers_router.post("/follow-up-reminders", response_model=TriggerResponse)
def follow_up_reminders(
    day: Optional[date] = None,
    db: Session = Depends(get_db),
    _admin: Identity = Depends(require_admin),
    scheduler: FollowUpScheduler = Depends(get_follow_up_scheduler),
) -> TriggerResponse:
    count = scheduler.send_due_reminders(db, day=day)
    return TriggerResponse(status="success" if count else "skipped", count=count)


@triggers_router.post("/test-notification", response_model=TriggerResponse)
def test_notification(_admin: Identity = Depends(require_admin)) -> TriggerResponse:
    """Push a test message to check the LINE channel configuration."""
    notifier = get_line_notifier()
    if not notifier.configured:
        return TriggerResponse(status="skipped", detail="LINE notifications are not configured")
    accepted = notifier.send(
        NotificationKind.TEST, {"notes": "Notification channel is working."}
    )
    return TriggerResponse(status="success" if accepted else "failed", count=int(accepted))
