"""Customer birthday report sent to the notification channel."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

import pytz
from fastapi import Depends
from sqlalchemy.orm import Session

from configs import settings
from leadflow.logger_config import get_logger
from leadflow.models.enums import NotificationKind
from leadflow.models.trigger_models import BirthdayItem, BirthdayReport
from leadflow.repositories.records.crud.leads_crud import CRUDLead
from leadflow.services.messaging.line.line_client import LineNotifier, get_line_notifier

logger = get_logger(__name__)


def local_today(timezone: str = settings.TIMEZONE, now: Optional[datetime] = None) -> date:
    """Return the calendar date in the business time zone."""
    tz = pytz.timezone(timezone)
    if now is None:
        return datetime.now(tz).date()
    if now.tzinfo is None:
        now = pytz.utc.localize(now)
    return now.astimezone(tz).date()


class BirthdayReporter:
    def __init__(
        self,
        leads: CRUDLead,
        notifier: LineNotifier,
        timezone: str = settings.TIMEZONE,
    ) -> None:
        self.leads = leads
        self.notifier = notifier
        self.timezone = timezone

    def build(
        self, db: Session, day: Optional[date] = None, staff_id: Optional[str] = None
    ) -> BirthdayReport:
        """Split customers with a known birthday into today and the rest of the month."""
        day = day or local_today(self.timezone)
        report = BirthdayReport(day=day)
        for lead in self.leads.list_with_birthday(db, assigned_to=staff_id):
            if lead.birthday.month != day.month:
                continue
            item = BirthdayItem(
                lead_id=lead.id,
                name=lead.name,
                phone=lead.phone,
                birthday=lead.birthday,
                assigned_to=lead.assignee_name,
            )
            if lead.birthday.day == day.day:
                report.today.append(item)
            else:
                report.this_month.append(item)
        report.this_month.sort(key=lambda item: (item.birthday.day, item.name))
        return report

    def send(
        self, db: Session, day: Optional[date] = None, staff_id: Optional[str] = None
    ) -> BirthdayReport:
        """Build the report and push it; nothing is sent when the month has no birthdays."""
        report = self.build(db, day=day, staff_id=staff_id)
        if not report.today and not report.this_month:
            logger.info("No customer birthdays in %s.", report.day.strftime("%B"))
            return report

        payload = {
            "count": len(report.today) + len(report.this_month),
            "birthdays_today": ", ".join(f"{i.name} ({i.phone})" for i in report.today) or "-",
            "birthdays_month": ", ".join(
                f"{i.name} ({i.birthday.strftime('%d/%m')})" for i in report.this_month
            ) or "-",
        }
        report.notified = self.notifier.send(NotificationKind.BIRTHDAY_REPORT, payload)
        return report


def get_birthday_reporter(leads: CRUDLead = Depends()) -> BirthdayReporter:
    return BirthdayReporter(leads=leads, notifier=get_line_notifier())
