"""Calendar endpoints for follow-up appointments."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from leadflow.controllers.dependencies import get_identity
from leadflow.models.identity_models import Identity
from leadflow.repositories.records.dependencies import get_db
from leadflow.repositories.records.schemas.calendar_event_schema import (
    CalendarEventResponse,
)
from leadflow.services.calendar.follow_up_scheduler import (
    FollowUpScheduler,
    get_follow_up_scheduler,
)

calendar_router = APIRouter(prefix="/calendar", tags=["Calendar"])


@calendar_router.get("/events", response_model=List[CalendarEventResponse])
def list_events(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
    scheduler: FollowUpScheduler = Depends(get_follow_up_scheduler),
) -> List[CalendarEventResponse]:
    return [
        CalendarEventResponse.model_validate(event)
        for event in scheduler.list_events(db, identity)
    ]
