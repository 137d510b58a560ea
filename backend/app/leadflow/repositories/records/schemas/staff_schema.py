"""Pydantic schemas for staff members and presence."""

from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, StringConstraints

from leadflow.models.enums import PresenceState, StaffRole


class StaffBase(BaseModel):
    """Shared attributes for staff members."""

    full_name: Optional[Annotated[str, StringConstraints(max_length=120)]] = None
    email: Optional[Annotated[str, StringConstraints(max_length=160)]] = None
    role: StaffRole = StaffRole.SALES


class StaffCreate(StaffBase):
    """Payload required to register a staff member."""

    id: Optional[str] = None


class StaffUpdate(BaseModel):
    """Fields an admin may change on a staff member."""

    full_name: Optional[Annotated[str, StringConstraints(max_length=120)]] = None
    email: Optional[Annotated[str, StringConstraints(max_length=160)]] = None
    role: Optional[StaffRole] = None


class StaffResponse(StaffBase):
    """Response model for a staff member, including the derived presence flag."""

    id: str
    status: PresenceState
    last_active: Optional[datetime]
    is_online: bool = False

    model_config = {
        "from_attributes": True,
    }


class PresenceUpdate(BaseModel):
    """Explicit online/offline toggle."""

    state: PresenceState
