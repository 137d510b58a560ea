"""This module defines calendar appointments such as after-care follow-ups."""

from sqlalchemy import Column, ForeignKey, Integer, String, TIMESTAMP
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from leadflow.repositories.records.database import Base


class CalendarEvent(Base):  # type: ignore[misc]
    """A scheduled appointment owned by a lead and handled by a staff member."""

    __tablename__ = "calendar_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(200), nullable=False)
    lead_id = Column(Integer, ForeignKey("leads.id"), nullable=True, index=True)
    salesperson_id = Column(String(36), ForeignKey("staff.id"), nullable=False)
    start_time = Column(TIMESTAMP(timezone=False), nullable=False)
    end_time = Column(TIMESTAMP(timezone=False), nullable=False)
    created_at = Column(TIMESTAMP(timezone=False), server_default=func.now())

    lead = relationship("Lead", back_populates="calendar_events")
