"""HTTP client for pushing workflow notifications to a LINE chat."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

import requests

from leadflow.models.enums import NotificationKind

HEADLINES: Dict[NotificationKind, str] = {
    NotificationKind.NEW_LEAD: "New lead received",
    NotificationKind.UPDATE_STATUS: "Lead updated",
    NotificationKind.DELETE_LEAD: "Lead deleted",
    NotificationKind.IDLE_LEADS: "Leads waiting for a first call",
    NotificationKind.REASSIGN_LEADS: "Idle leads to reassign",
    NotificationKind.FOLLOWUP_REMINDER: "Follow-ups due",
    NotificationKind.BIRTHDAY_REPORT: "Customer birthdays",
    NotificationKind.TEST: "Test notification",
}

FIELD_LABELS: Dict[str, str] = {
    "lead_name": "Name",
    "phone": "Phone",
    "status": "Status",
    "assignee": "Assigned to",
    "notes": "Notes",
    "count": "Count",
    "leads": "Leads",
    "appointments": "Appointments",
    "birthdays_today": "Today",
    "birthdays_month": "This month",
}


def format_message(kind: NotificationKind, payload: Mapping[str, Any]) -> str:
    """Render a notification as the plain-text body of a LINE message."""
    lines = [HEADLINES.get(kind, kind.value)]
    for key, value in payload.items():
        if value is None or value == "":
            continue
        label = FIELD_LABELS.get(key, key.replace("_", " ").capitalize())
        lines.append(f"{label}: {value}")
    return "\n".join(lines)


class LineNotifier:
    """Fire-and-forget wrapper around the LINE Messaging push endpoint.

    `send` never raises: HTTP and connection problems are logged and reported
    through the boolean result so the calling workflow step always completes.
    """

    def __init__(
        self,
        api_url: str,
        access_token: Optional[str],
        target_id: Optional[str],
        timeout: int = 15,
    ) -> None:
        self.api_url = api_url
        self.access_token = access_token
        self.target_id = target_id
        self.timeout = timeout
        self.logger = logging.getLogger("line.notifier")

    @property
    def configured(self) -> bool:
        return bool(self.access_token and self.target_id)

    def send(self, kind: NotificationKind | str, payload: Mapping[str, Any]) -> bool:
        """Push one notification; return True when LINE accepted it."""
        try:
            kind = NotificationKind(kind)
            text = format_message(kind, payload)
        except Exception as exc:
            self.logger.error("Could not build %s notification: %s", kind, exc)
            return False

        if not self.configured:
            self.logger.info("LINE is not configured, skipping %s notification.", kind.value)
            return False

        body = {"to": self.target_id, "messages": [{"type": "text", "text": text}]}
        headers = {"Authorization": f"Bearer {self.access_token}"}

        try:
            response = requests.post(
                self.api_url, headers=headers, json=body, timeout=self.timeout
            )
            response.raise_for_status()
            return True
        except requests.exceptions.HTTPError as http_err:
            self.logger.error("LINE returned an HTTP error for %s: %s", kind.value, http_err)
        except requests.exceptions.ConnectionError as conn_err:
            self.logger.error("Connection error talking to LINE: %s", conn_err)
        except requests.exceptions.Timeout as timeout_err:
            self.logger.error("Timeout sending %s notification: %s", kind.value, timeout_err)
        except requests.exceptions.RequestException as req_err:
            self.logger.error("Unexpected error sending %s notification: %s", kind.value, req_err)
        return False


def get_line_notifier() -> LineNotifier:
    """Build the notifier from application settings."""
    from configs import settings

    return LineNotifier(
        api_url=settings.LINE_API_URL,
        access_token=settings.LINE_ACCESS_TOKEN,
        target_id=settings.LINE_TARGET_ID,
    )
