"""Shared fixtures: an in-memory record store and factories for staff and leads."""

import os
from datetime import datetime
from typing import Callable, Optional
from unittest.mock import MagicMock

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from leadflow.models.enums import LeadStatus, PresenceState, StaffRole
from leadflow.repositories.records import change_feed  # noqa: F401
from leadflow.repositories.records.crud.calendar_events_crud import CRUDCalendarEvent
from leadflow.repositories.records.crud.lead_activities_crud import CRUDLeadActivity
from leadflow.repositories.records.crud.leads_crud import CRUDLead
from leadflow.repositories.records.crud.staff_crud import CRUDStaff
from leadflow.repositories.records.database import Base
from leadflow.repositories.records.models import Lead, Staff
from leadflow.services.calendar.follow_up_scheduler import FollowUpScheduler
from leadflow.services.leads.lead_activities_service import LeadActivityService
from leadflow.services.leads.lead_workflow import LeadWorkflow
from leadflow.services.messaging.line.line_client import LineNotifier
from leadflow.services.time_utils import utcnow


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory) -> Session:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def make_staff(db) -> Callable[..., Staff]:
    def _make(
        name: str,
        role: StaffRole = StaffRole.SALES,
        online: bool = False,
        last_active: Optional[datetime] = None,
    ) -> Staff:
        staff = Staff(
            full_name=name,
            email=f"{name.lower().replace(' ', '.')}@example.com",
            role=role,
            status=PresenceState.ONLINE if online else PresenceState.OFFLINE,
            last_active=last_active or (utcnow() if online else None),
        )
        db.add(staff)
        db.commit()
        db.refresh(staff)
        return staff

    return _make


@pytest.fixture()
def make_lead(db) -> Callable[..., Lead]:
    def _make(
        name: str = "Ploy Wongsa",
        phone: str = "0812345678",
        status: LeadStatus = LeadStatus.NEW,
        assigned_to: Optional[str] = None,
        created_at: Optional[datetime] = None,
        **extra,
    ) -> Lead:
        created = created_at or utcnow()
        lead = Lead(
            name=name,
            phone=phone,
            status=status,
            assigned_to=assigned_to,
            created_at=created,
            received_date=created,
            **extra,
        )
        db.add(lead)
        db.commit()
        db.refresh(lead)
        return lead

    return _make


@pytest.fixture()
def notifier() -> MagicMock:
    mock = MagicMock(spec=LineNotifier)
    mock.send.return_value = True
    mock.configured = True
    return mock


@pytest.fixture()
def activity_service() -> LeadActivityService:
    return LeadActivityService(CRUDLeadActivity())


@pytest.fixture()
def scheduler(notifier) -> FollowUpScheduler:
    return FollowUpScheduler(CRUDCalendarEvent(), notifier, timezone="Asia/Bangkok", start_hour=9)


@pytest.fixture()
def workflow(notifier, activity_service, scheduler) -> LeadWorkflow:
    return LeadWorkflow(
        leads=CRUDLead(),
        staff=CRUDStaff(),
        activities=activity_service,
        notifier=notifier,
        follow_ups=scheduler,
    )
