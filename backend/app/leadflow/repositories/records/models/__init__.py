"""ORM models of the lead workflow record store."""

from leadflow.repositories.records.models.staff_model import Staff
from leadflow.repositories.records.models.lead_model import Lead
from leadflow.repositories.records.models.lead_activity_model import LeadActivity
from leadflow.repositories.records.models.calendar_event_model import CalendarEvent

__all__ = ["Staff", "Lead", "LeadActivity", "CalendarEvent"]
