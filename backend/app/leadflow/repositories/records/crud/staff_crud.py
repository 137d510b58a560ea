"""CRUD helpers for staff members."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from leadflow.models.enums import PresenceState, StaffRole
from leadflow.repositories.records.models.calendar_event_model import CalendarEvent
from leadflow.repositories.records.models.staff_model import Staff
from leadflow.repositories.records.schemas.staff_schema import StaffCreate, StaffUpdate


class CRUDStaff:
    """Database access for staff members."""

    def get(self, db: Session, staff_id: str) -> Optional[Staff]:
        return db.query(Staff).filter(Staff.id == staff_id).first()

    def list(self, db: Session, role: Optional[StaffRole] = None) -> List[Staff]:
        query = db.query(Staff)
        if role is not None:
            query = query.filter(Staff.role == role)
        return query.order_by(Staff.full_name, Staff.id).all()

    def create(self, db: Session, staff_in: StaffCreate) -> Staff:
        staff = Staff(**staff_in.model_dump(exclude_none=True))
        db.add(staff)
        db.commit()
        db.refresh(staff)
        return staff

    def update(self, db: Session, staff: Staff, staff_update: StaffUpdate) -> Staff:
        for field, value in staff_update.model_dump(exclude_unset=True).items():
            setattr(staff, field, value)
        db.add(staff)
        db.commit()
        db.refresh(staff)
        return staff

    def set_presence(
        self,
        db: Session,
        staff: Staff,
        state: PresenceState,
        last_active: datetime,
    ) -> Staff:
        staff.status = state
        staff.last_active = last_active
        db.add(staff)
        db.commit()
        db.refresh(staff)
        return staff

    def delete(self, db: Session, staff: Staff) -> None:
        """Remove a staff member together with their appointments.

        Leads must already be unassigned from them; appointments cannot exist
        without an owner.
        """
        try:
            db.query(CalendarEvent).filter(
                CalendarEvent.salesperson_id == staff.id
            ).delete(synchronize_session=False)
            db.delete(staff)
            db.commit()
        except Exception:
            db.rollback()
            raise
