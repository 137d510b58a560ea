"""Google Calendar mirror for after-care follow-up appointments."""

from __future__ import annotations

import json
import os
from datetime import datetime
from typing import Any, Dict, Optional, Sequence

import pytz
from google.oauth2.service_account import (
    Credentials as ServiceAccountCredentials,
)
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from configs import settings
from leadflow.logger_config import get_logger
from leadflow.repositories.records.schemas.calendar_event_schema import (
    CalendarEventCreate,
)

logger = get_logger(__name__)

__all__ = [
    "GoogleCalendarService",
    "GoogleCalendarError",
    "get_google_calendar_service",
]


SCOPES: Sequence[str] = ("https://www.googleapis.com/auth/calendar",)


class GoogleCalendarError(RuntimeError):
    """Raised when there is a problem communicating with Google Calendar."""


class GoogleCalendarService:
    """Thin wrapper around the Google Calendar API that copies appointments out."""

    def __init__(
        self,
        *,
        credentials: ServiceAccountCredentials,
        calendar_id: str,
        timezone: str,
    ) -> None:
        """Instantiate the service with the components required for API access."""
        self.calendar_id = calendar_id
        self.timezone = timezone
        scoped_credentials = credentials.with_scopes(SCOPES)
        self._service = build(
            "calendar", "v3", credentials=scoped_credentials, cache_discovery=False
        )

    @classmethod
    def from_settings(cls) -> "GoogleCalendarService":
        """Factory using application settings for credentials and defaults."""
        if not settings.GOOGLE_CALENDAR_ID:
            raise GoogleCalendarError("GOOGLE_CALENDAR_ID is not configured.")
        return cls(
            credentials=_load_service_account_credentials(),
            calendar_id=settings.GOOGLE_CALENDAR_ID,
            timezone=settings.TIMEZONE,
        )

    def mirror_events(self, events: Sequence[CalendarEventCreate]) -> int:
        """Insert every appointment into the calendar; return how many were created."""
        created = 0
        for event_in in events:
            self.insert_event(event_in)
            created += 1
        return created

    def insert_event(self, event_in: CalendarEventCreate) -> Dict[str, Any]:
        """Create one calendar event and return its essential fields."""
        body = self._build_event_body(event_in)
        try:
            event = (
                self._service.events()
                .insert(calendarId=self.calendar_id, body=body, sendUpdates="none")
                .execute()
            )
        except HttpError as exc:
            error = f"Failed to create Google Calendar event: {exc.error_details}"
            logger.error(error)
            raise GoogleCalendarError(error) from exc
        return {
            "event_id": event.get("id"),
            "html_link": event.get("htmlLink"),
            "start": event.get("start"),
            "end": event.get("end"),
        }

    def _build_event_body(self, event_in: CalendarEventCreate) -> Dict[str, Any]:
        """Construct the payload sent to Google Calendar when creating events."""
        body: Dict[str, Any] = {
            "summary": event_in.title,
            "start": {
                "dateTime": self._localize(event_in.start_time).isoformat(),
                "timeZone": self.timezone,
            },
            "end": {
                "dateTime": self._localize(event_in.end_time).isoformat(),
                "timeZone": self.timezone,
            },
        }
        private: Dict[str, str] = {"salesperson_id": event_in.salesperson_id}
        if event_in.lead_id is not None:
            private["lead_id"] = str(event_in.lead_id)
        body["extendedProperties"] = {"private": private}
        return body

    def _localize(self, value: datetime) -> datetime:
        """Naive values are UTC; render everything in the calendar time zone."""
        tz = pytz.timezone(self.timezone)
        if value.tzinfo is None:
            value = pytz.utc.localize(value)
        return value.astimezone(tz)


def _load_service_account_credentials() -> ServiceAccountCredentials:
    """Load service-account credentials from the supported settings sources."""
    json_raw = settings.GOOGLE_CALENDAR_CREDENTIALS
    if json_raw:
        try:
            info = json.loads(json_raw)
        except json.JSONDecodeError as exc:
            logger.error("Failed to load Google Calendar credentials: %s", exc)
            raise GoogleCalendarError(
                "Invalid JSON in GOOGLE_CALENDAR_CREDENTIALS."
            ) from exc
        return ServiceAccountCredentials.from_service_account_info(info, scopes=SCOPES)

    file_path = settings.GOOGLE_CALENDAR_CREDENTIALS_PATH
    if file_path:
        if not os.path.exists(file_path):
            raise GoogleCalendarError("Google Calendar credentials path not found.")
        return ServiceAccountCredentials.from_service_account_file(
            file_path, scopes=SCOPES
        )

    raise GoogleCalendarError(
        "Configure Google Calendar credentials via GOOGLE_CALENDAR_CREDENTIALS_*."
    )


_cached_service: Optional[GoogleCalendarService] = None


def get_google_calendar_service(
    force_refresh: bool = False,
) -> Optional[GoogleCalendarService]:
    """Return a cached service, or None when the mirror is not configured."""
    global _cached_service
    if not settings.GOOGLE_CALENDAR_ID:
        return None
    if force_refresh or _cached_service is None:
        try:
            _cached_service = GoogleCalendarService.from_settings()
        except GoogleCalendarError as exc:
            logger.error("Google Calendar mirror disabled: %s", exc)
            return None
    return _cached_service
