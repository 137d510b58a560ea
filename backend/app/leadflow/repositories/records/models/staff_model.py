"""SQLAlchemy model for staff members (admins, sales and after-care)."""

import uuid

from sqlalchemy import Column, Enum, String, TIMESTAMP
from sqlalchemy.sql import func

from leadflow.models.enums import PresenceState, StaffRole
from leadflow.repositories.records.database import Base


def _enum_values(enum_cls):  # type: ignore[no-untyped-def]
    return [member.value for member in enum_cls]


class Staff(Base):  # type: ignore[misc]
    """
    Represents a staff member able to receive leads.

    Attributes:
        id (str): UUID of the staff member, shared with the auth provider.
        full_name (str): Display name.
        email (str): Login e-mail.
        role (StaffRole): admin, sales or after_care.
        status (PresenceState): Last presence state written by the member's session.
        last_active (timestamp): Last heartbeat or explicit toggle (naive UTC).
    """

    __tablename__ = "staff"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    full_name = Column(String(120), nullable=True)
    email = Column(String(160), nullable=True, unique=True)
    role = Column(
        Enum(StaffRole, native_enum=False, values_callable=_enum_values, length=16),
        nullable=False,
        default=StaffRole.SALES,
    )
    status = Column(
        Enum(PresenceState, native_enum=False, values_callable=_enum_values, length=8),
        nullable=False,
        default=PresenceState.OFFLINE,
    )
    last_active = Column(TIMESTAMP(timezone=False), nullable=True)
    updated_at = Column(TIMESTAMP(timezone=False), nullable=True, onupdate=func.now())
