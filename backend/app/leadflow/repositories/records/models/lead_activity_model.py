"""This module defines the append-only activity trail of a lead."""

from sqlalchemy import Column, ForeignKey, Integer, String, Text, TIMESTAMP
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from leadflow.repositories.records.database import Base


class LeadActivity(Base):  # type: ignore[misc]
    """
    Represents one immutable audit entry for a lead.

    Attributes:
        id (int): Primary key; also breaks ties between entries written in the same second.
        lead_id (int): Owning lead.
        activity_description (str): Human-readable description of the change.
        user_id (str): Acting staff member, None for system actions.
        user_name (str): Display name of the actor at the time of writing.
        created_at (timestamp): When the entry was appended.
    """

    __tablename__ = "lead_activities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    lead_id = Column(Integer, ForeignKey("leads.id"), nullable=False, index=True)
    activity_description = Column(Text, nullable=False)
    user_id = Column(String(36), nullable=True)
    user_name = Column(String(120), nullable=True)
    created_at = Column(TIMESTAMP(timezone=False), server_default=func.now())

    lead = relationship("Lead", back_populates="activities")
