"""Response models for the on-demand workflow checks."""

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field


class IdleLeadItem(BaseModel):
    """A lead reported by an idle-lead check."""

    lead_id: int
    name: str
    phone: str
    status: str
    assigned_to: Optional[str] = None
    minutes_idle: int = Field(..., description="Minutes since the lead was created.")
    suggested_assignee: Optional[str] = Field(
        default=None, description="Advisory target for reassignment checks."
    )


class IdleLeadReport(BaseModel):
    """Result of one idle-lead check run."""

    check: str = Field(..., description="Which check produced the report.")
    leads: List[IdleLeadItem] = Field(default_factory=list)
    notified: bool = Field(..., description="Whether the batched notification was accepted.")


class TriggerResponse(BaseModel):
    """Generic response of a manually triggered job."""

    status: str = Field(..., description="Status of the trigger (success, skipped, failed).")
    detail: Optional[str] = None
    count: int = 0


class BirthdayItem(BaseModel):
    lead_id: int
    name: str
    phone: str
    birthday: date
    assigned_to: Optional[str] = None


class BirthdayReport(BaseModel):
    """Customers with a birthday today and later this month."""

    day: date
    today: List[BirthdayItem] = Field(default_factory=list)
    this_month: List[BirthdayItem] = Field(default_factory=list)
    notified: bool = False
