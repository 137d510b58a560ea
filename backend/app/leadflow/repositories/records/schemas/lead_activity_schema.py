"""
Pydantic models for the lead activity trail.

Only create and response shapes exist: entries are never updated.
"""

from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, StringConstraints


class LeadActivityCreate(BaseModel):
    """Data required to append an entry to a lead's activity trail."""

    lead_id: int
    activity_description: Annotated[str, StringConstraints(min_length=1)]
    user_id: Optional[str] = None
    user_name: Optional[str] = None


class LeadActivityResponse(LeadActivityCreate):
    """Response model for a stored activity entry."""

    id: int
    created_at: Optional[datetime]

    model_config = {
        "from_attributes": True,
    }
