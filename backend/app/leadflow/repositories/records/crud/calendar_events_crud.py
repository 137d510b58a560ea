"""CRUD helpers for calendar appointments."""

from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from leadflow.repositories.records.models.calendar_event_model import CalendarEvent
from leadflow.repositories.records.schemas.calendar_event_schema import (
    CalendarEventCreate,
)
from leadflow.services.time_utils import to_naive_utc


class CRUDCalendarEvent:
    """Database access for calendar appointments."""

    def create_batch(
        self, db: Session, events_in: Sequence[CalendarEventCreate]
    ) -> List[CalendarEvent]:
        """Insert all events in a single transaction; nothing is kept on failure."""
        events = [
            CalendarEvent(
                title=event_in.title,
                lead_id=event_in.lead_id,
                salesperson_id=event_in.salesperson_id,
                start_time=to_naive_utc(event_in.start_time),
                end_time=to_naive_utc(event_in.end_time),
            )
            for event_in in events_in
        ]
        try:
            db.add_all(events)
            db.commit()
        except Exception:
            db.rollback()
            raise
        for event in events:
            db.refresh(event)
        return events

    def list(
        self, db: Session, salesperson_id: Optional[str] = None
    ) -> List[CalendarEvent]:
        query = db.query(CalendarEvent)
        if salesperson_id is not None:
            query = query.filter(CalendarEvent.salesperson_id == salesperson_id)
        return query.order_by(CalendarEvent.start_time, CalendarEvent.id).all()

    def list_between(
        self, db: Session, start: datetime, end: datetime
    ) -> List[CalendarEvent]:
        """Return events whose start lies in [start, end)."""
        return (
            db.query(CalendarEvent)
            .filter(CalendarEvent.start_time >= start)
            .filter(CalendarEvent.start_time < end)
            .order_by(CalendarEvent.start_time, CalendarEvent.id)
            .all()
        )
