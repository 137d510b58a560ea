"""
CRUD operations for the lead activity trail.

The trail is append-only, so this repository exposes no update or delete.
"""

from typing import List

from sqlalchemy import desc
from sqlalchemy.orm import Session

from leadflow.repositories.records.models.lead_activity_model import LeadActivity
from leadflow.repositories.records.schemas.lead_activity_schema import (
    LeadActivityCreate,
)


class CRUDLeadActivity:
    """Repository for appending and reading lead activity entries."""

    def create(self, db: Session, activity_in: LeadActivityCreate) -> LeadActivity:
        activity = LeadActivity(**activity_in.model_dump())
        db.add(activity)
        db.commit()
        db.refresh(activity)
        return activity

    def list_by_lead(self, db: Session, lead_id: int) -> List[LeadActivity]:
        """Return the entries of a lead, most recent first."""
        return (
            db.query(LeadActivity)
            .filter(LeadActivity.lead_id == lead_id)
            .order_by(desc(LeadActivity.created_at), desc(LeadActivity.id))
            .all()
        )
