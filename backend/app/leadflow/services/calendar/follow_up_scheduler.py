"""Deterministic after-care follow-up appointments.

A won lead gets five appointments at fixed calendar offsets from its service
date. Offsets use calendar arithmetic: adding a month keeps the day of month
and clamps to the last day when the target month is shorter.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Tuple, Union

import pytz
from fastapi import Depends
from sqlalchemy.orm import Session

from configs import settings
from leadflow.logger_config import get_logger
from leadflow.models.enums import NotificationKind
from leadflow.models.identity_models import Identity
from leadflow.repositories.records.crud.calendar_events_crud import CRUDCalendarEvent
from leadflow.repositories.records.models.calendar_event_model import CalendarEvent
from leadflow.repositories.records.schemas.calendar_event_schema import (
    CalendarEventCreate,
)
from leadflow.services.integrations import (
    GoogleCalendarService,
    get_google_calendar_service,
)
from leadflow.services.messaging.line.line_client import LineNotifier, get_line_notifier
from leadflow.services.time_utils import to_naive_utc

logger = get_logger(__name__)

APPOINTMENT_DURATION = timedelta(hours=1)


@dataclass(frozen=True)
class FollowUpOffset:
    label: str
    months: int = 0
    days: int = 0


FOLLOW_UP_OFFSETS: Tuple[FollowUpOffset, ...] = (
    FollowUpOffset("1-day follow-up", days=1),
    FollowUpOffset("1-month follow-up", months=1),
    FollowUpOffset("3-month follow-up", months=3),
    FollowUpOffset("6-month follow-up", months=6),
    FollowUpOffset("1-year follow-up", months=12),
)


def add_months(value: datetime, months: int) -> datetime:
    """Shift `value` by whole calendar months, clamping the day to the month length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def _anchor(
    service_date: Union[date, datetime], tz: pytz.BaseTzInfo, start_hour: int
) -> datetime:
    """Return the service instant as a naive wall-clock time in `tz`."""
    if isinstance(service_date, datetime):
        if service_date.tzinfo is not None:
            return service_date.astimezone(tz).replace(tzinfo=None)
        return service_date
    return datetime.combine(service_date, time(hour=start_hour))


def generate_follow_ups(
    lead_id: Optional[int],
    staff_id: str,
    service_date: Union[date, datetime],
    lead_label: str,
    timezone: str = settings.TIMEZONE,
    start_hour: int = settings.FOLLOW_UP_START_HOUR,
) -> List[CalendarEventCreate]:
    """Build the five follow-up appointments for a lead.

    Args:
        lead_id: Owning lead.
        staff_id: Staff member responsible for the follow-ups.
        service_date: Date (starts at `start_hour`) or datetime of the service.
        lead_label: Display name of the lead, used in every title.
        timezone: Zone the offsets are computed in.
        start_hour: Start hour used when `service_date` carries no time.

    Returns:
        Appointments with aware start/end times, in offset order.
    """
    tz = pytz.timezone(timezone)
    anchor = _anchor(service_date, tz, start_hour)
    events: List[CalendarEventCreate] = []
    for offset in FOLLOW_UP_OFFSETS:
        local_start = add_months(anchor, offset.months) + timedelta(days=offset.days)
        start = tz.localize(local_start)
        end = tz.normalize(start + APPOINTMENT_DURATION)
        events.append(
            CalendarEventCreate(
                title=f"{offset.label} - {lead_label}",
                lead_id=lead_id,
                salesperson_id=staff_id,
                start_time=start,
                end_time=end,
            )
        )
    return events


class FollowUpScheduler:
    """Persist follow-up batches and report on upcoming appointments."""

    def __init__(
        self,
        repository: CRUDCalendarEvent,
        notifier: LineNotifier,
        calendar_mirror: Optional[GoogleCalendarService] = None,
        timezone: str = settings.TIMEZONE,
        start_hour: int = settings.FOLLOW_UP_START_HOUR,
    ) -> None:
        self.repository = repository
        self.notifier = notifier
        self.calendar_mirror = calendar_mirror
        self.timezone = timezone
        self.start_hour = start_hour

    def schedule_follow_ups(
        self,
        db: Session,
        lead_id: int,
        staff_id: str,
        service_date: Union[date, datetime],
        lead_label: str,
    ) -> List[CalendarEvent]:
        """Insert the five follow-ups as one batch, then mirror them when configured.

        The batch insert is all-or-nothing. The mirror runs after the commit
        and its failures are only logged, so a stored batch may be missing
        from the external calendar.
        """
        events_in = generate_follow_ups(
            lead_id,
            staff_id,
            service_date,
            lead_label,
            timezone=self.timezone,
            start_hour=self.start_hour,
        )
        events = self.repository.create_batch(db, events_in)
        logger.info(
            "Scheduled %d follow-ups for lead %s (staff %s).", len(events), lead_id, staff_id
        )

        if self.calendar_mirror is not None:
            try:
                self.calendar_mirror.mirror_events(events_in)
            except Exception as exc:
                logger.error("Could not mirror follow-ups of lead %s: %s", lead_id, exc)
        return events

    def list_events(self, db: Session, identity: Identity) -> List[CalendarEvent]:
        """Admins see every appointment; other roles only their own."""
        if identity.is_admin:
            return self.repository.list(db)
        return self.repository.list(db, salesperson_id=identity.id)

    def send_due_reminders(self, db: Session, day: Optional[date] = None) -> int:
        """Send one reminder listing the appointments starting on `day` (local time)."""
        tz = pytz.timezone(self.timezone)
        day = day or datetime.now(tz).date()
        start = tz.localize(datetime.combine(day, time.min))
        end = tz.localize(datetime.combine(day + timedelta(days=1), time.min))
        events = self.repository.list_between(db, to_naive_utc(start), to_naive_utc(end))
        if not events:
            logger.info("No follow-ups due on %s.", day.isoformat())
            return 0

        lines = [
            f"{pytz.utc.localize(event.start_time).astimezone(tz):%H:%M} {event.title}"
            for event in events
        ]
        self.notifier.send(
            NotificationKind.FOLLOWUP_REMINDER,
            {
                "date": day.isoformat(),
                "count": str(len(events)),
                "appointments": "; ".join(lines),
            },
        )
        return len(events)


def get_follow_up_scheduler(
    repository: CRUDCalendarEvent = Depends(),
) -> FollowUpScheduler:
    return FollowUpScheduler(
        repository,
        notifier=get_line_notifier(),
        calendar_mirror=get_google_calendar_service(),
    )
