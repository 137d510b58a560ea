"""Enumerations shared by the record store, services and API models."""

from enum import Enum


class LeadStatus(str, Enum):
    """Lifecycle states of a lead in the sales funnel."""

    NEW = "new"
    UNCALLED = "uncalled"
    CONTACTED = "contacted"
    FOLLOW_UP = "follow_up"
    WON = "won"
    LOST = "lost"

    @classmethod
    def idle_states(cls) -> tuple["LeadStatus", ...]:
        """States a lead is considered idle (not yet worked) in."""
        return (cls.NEW, cls.UNCALLED)


class StaffRole(str, Enum):
    ADMIN = "admin"
    SALES = "sales"
    AFTER_CARE = "after_care"


class PresenceState(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class NotificationKind(str, Enum):
    """Event kinds accepted by the external notification channel."""

    NEW_LEAD = "new_lead"
    UPDATE_STATUS = "update_status"
    DELETE_LEAD = "delete_lead"
    IDLE_LEADS = "idle_leads"
    REASSIGN_LEADS = "reassign_leads"
    FOLLOWUP_REMINDER = "followup_reminder"
    BIRTHDAY_REPORT = "birthday_report"
    TEST = "test"
