"""Pydantic schemas for leads."""

from datetime import date, datetime
from typing import Annotated, Any, Optional, Union

from pydantic import BaseModel, StringConstraints, field_validator

from leadflow.models.enums import LeadStatus

NameStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=120)]
PhoneStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=20)]


def coerce_value(raw: Any) -> float:
    """Coerce a monetary input to a float; absent or invalid input becomes 0."""
    if raw is None or isinstance(raw, bool):
        return 0.0
    if isinstance(raw, str):
        raw = raw.replace(",", "").strip()
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0.0
    if value != value or value in (float("inf"), float("-inf")):
        return 0.0
    return value


class LeadBase(BaseModel):
    """Shared attributes for leads."""

    name: NameStr
    phone: PhoneStr
    source: Optional[Annotated[str, StringConstraints(max_length=60)]] = None
    program: Optional[Annotated[str, StringConstraints(max_length=120)]] = None
    status: LeadStatus = LeadStatus.NEW
    assigned_to: Optional[str] = None
    value: float = 0.0
    notes: Optional[str] = None
    birthday: Optional[date] = None
    address: Optional[str] = None

    @field_validator("value", mode="before")
    @classmethod
    def _coerce_value(cls, raw: Any) -> float:
        return coerce_value(raw)


class LeadCreate(LeadBase):
    """Payload required to create a new lead."""

    received_date: Optional[datetime] = None


class LeadUpdate(BaseModel):
    """Fields allowed to change on an existing lead. Unset fields are left untouched."""

    name: Optional[NameStr] = None
    phone: Optional[PhoneStr] = None
    source: Optional[Annotated[str, StringConstraints(max_length=60)]] = None
    program: Optional[Annotated[str, StringConstraints(max_length=120)]] = None
    status: Optional[LeadStatus] = None
    assigned_to: Optional[str] = None
    value: Optional[float] = None
    notes: Optional[str] = None
    birthday: Optional[date] = None
    address: Optional[str] = None

    @field_validator("value", mode="before")
    @classmethod
    def _coerce_value(cls, raw: Any) -> float:
        return coerce_value(raw)


class LeadResponse(LeadBase):
    """Response model for a stored lead."""

    id: int
    assignee_name: Optional[str] = None
    received_date: Optional[datetime]
    created_at: Optional[datetime]
    last_update_date: Optional[datetime]

    model_config = {
        "from_attributes": True,
    }


class ContactLogCreate(BaseModel):
    """Outcome of a call logged from the sell panel."""

    status: LeadStatus
    note: Annotated[str, StringConstraints(strip_whitespace=True, max_length=2000)] = ""


class SaleConfirmation(BaseModel):
    """Service date used to anchor the after-care follow-ups of a won lead."""

    service_date: Union[date, datetime]
