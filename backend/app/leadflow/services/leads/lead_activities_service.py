"""Service layer for the append-only lead activity trail."""

from typing import List, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from leadflow.models.identity_models import SYSTEM_ACTOR_NAME, Identity
from leadflow.repositories.records.crud.lead_activities_crud import CRUDLeadActivity
from leadflow.repositories.records.models.lead_activity_model import LeadActivity
from leadflow.repositories.records.schemas.lead_activity_schema import (
    LeadActivityCreate,
)


class LeadActivityService:
    """Append and read activity entries. Corrections are new entries, never edits."""

    def __init__(self, repository: CRUDLeadActivity) -> None:
        self.repository = repository

    def append(
        self,
        db: Session,
        lead_id: int,
        description: str,
        actor: Optional[Identity] = None,
    ) -> LeadActivity:
        """
        Append one entry to a lead's trail.

        Args:
            db (Session): The database session.
            lead_id (int): Owning lead.
            description (str): Human-readable description of what changed.
            actor (Identity): Who acted; None records the entry as "system".

        Returns:
            LeadActivity: The stored entry.
        """
        activity_in = LeadActivityCreate(
            lead_id=lead_id,
            activity_description=description,
            user_id=actor.id if actor else None,
            user_name=actor.display_name if actor else SYSTEM_ACTOR_NAME,
        )
        return self.repository.create(db, activity_in)

    def list_for_lead(self, db: Session, lead_id: int) -> List[LeadActivity]:
        """Return the trail of a lead, most recent first."""
        return self.repository.list_by_lead(db, lead_id)


def get_lead_activity_service(
    repository: CRUDLeadActivity = Depends(),
) -> LeadActivityService:
    return LeadActivityService(repository)
