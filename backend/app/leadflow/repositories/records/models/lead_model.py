"""SQLAlchemy model for sales leads."""

from typing import Optional

from sqlalchemy import Column, Date, Enum, Float, ForeignKey, Integer, String, Text, TIMESTAMP
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from leadflow.models.enums import LeadStatus
from leadflow.repositories.records.database import Base
from leadflow.repositories.records.models.staff_model import _enum_values


class Lead(Base):  # type: ignore[misc]
    """Represents a prospective customer moving through the sales funnel."""

    __tablename__ = "leads"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    phone = Column(String(20), nullable=False)
    source = Column(String(60), nullable=True)
    program = Column(String(120), nullable=True)
    status = Column(
        Enum(LeadStatus, native_enum=False, values_callable=_enum_values, length=16),
        nullable=False,
        default=LeadStatus.NEW,
    )
    assigned_to = Column(String(36), ForeignKey("staff.id"), nullable=True)
    value = Column(Float, nullable=False, default=0.0)
    notes = Column(Text, nullable=True)
    received_date = Column(TIMESTAMP(timezone=False), server_default=func.now())
    created_at = Column(TIMESTAMP(timezone=False), server_default=func.now())
    last_update_date = Column(TIMESTAMP(timezone=False), nullable=True)
    birthday = Column(Date, nullable=True)
    address = Column(Text, nullable=True)

    assignee = relationship("Staff", lazy="joined")
    activities = relationship(
        "LeadActivity", back_populates="lead", cascade="all, delete"
    )
    calendar_events = relationship(
        "CalendarEvent", back_populates="lead", cascade="all, delete"
    )

    __mapper_args__ = {"eager_defaults": True}

    @property
    def assignee_name(self) -> Optional[str]:
        return self.assignee.full_name if self.assignee is not None else None
