"""Pydantic schemas for calendar appointments."""

from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, StringConstraints


class CalendarEventCreate(BaseModel):
    """
    Represents the data required to create an appointment.

    Attributes:
        title (str): Display title, e.g. "1-month follow-up - Jane Doe".
        lead_id (int): Owning lead, if any.
        salesperson_id (str): Responsible staff member.
        start_time (datetime): Start instant; aware datetimes are stored as naive UTC.
        end_time (datetime): End instant.
    """

    title: Annotated[str, StringConstraints(min_length=1, max_length=200)]
    lead_id: Optional[int] = None
    salesperson_id: str
    start_time: datetime
    end_time: datetime


class CalendarEventResponse(CalendarEventCreate):
    """Response model for a stored appointment."""

    id: int
    created_at: Optional[datetime]

    model_config = {
        "from_attributes": True,
    }
