"""Service modules for third-party integrations."""

from .google_calendar_service import (
    GoogleCalendarError,
    GoogleCalendarService,
    get_google_calendar_service,
)

__all__ = [
    "GoogleCalendarError",
    "GoogleCalendarService",
    "get_google_calendar_service",
]
