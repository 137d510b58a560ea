"""CRUD helpers for leads."""

from collections import Counter
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import desc, or_
from sqlalchemy.orm import Session

from leadflow.models.enums import LeadStatus
from leadflow.repositories.records.models.lead_model import Lead


class CRUDLead:
    """Database access for leads."""

    def get(self, db: Session, lead_id: int) -> Optional[Lead]:
        return db.query(Lead).filter(Lead.id == lead_id).first()

    def list(
        self,
        db: Session,
        *,
        assigned_to: Optional[str] = None,
        include_unassigned: bool = False,
        status: Optional[LeadStatus] = None,
    ) -> List[Lead]:
        """Return leads ordered by received date, newest first.

        Args:
            assigned_to: Restrict to leads owned by this staff member.
            include_unassigned: With `assigned_to`, also return pooled leads.
            status: Restrict to a single status.
        """
        query = db.query(Lead)
        if assigned_to is not None:
            if include_unassigned:
                query = query.filter(
                    or_(Lead.assigned_to == assigned_to, Lead.assigned_to.is_(None))
                )
            else:
                query = query.filter(Lead.assigned_to == assigned_to)
        if status is not None:
            query = query.filter(Lead.status == status)
        return query.order_by(desc(Lead.received_date), desc(Lead.id)).all()

    def list_idle(
        self,
        db: Session,
        created_before: datetime,
        statuses: Iterable[LeadStatus] = LeadStatus.idle_states(),
    ) -> List[Lead]:
        """Return leads still in one of `statuses` created before the cut-off, oldest first."""
        return (
            db.query(Lead)
            .filter(Lead.status.in_(list(statuses)))
            .filter(Lead.created_at < created_before)
            .order_by(Lead.created_at, Lead.id)
            .all()
        )

    def list_with_birthday(
        self, db: Session, assigned_to: Optional[str] = None
    ) -> List[Lead]:
        query = db.query(Lead).filter(Lead.birthday.isnot(None))
        if assigned_to is not None:
            query = query.filter(Lead.assigned_to == assigned_to)
        return query.order_by(Lead.name).all()

    def count_pending(self, db: Session, staff_id: str) -> int:
        """Count idle leads assigned to a staff member (the sales "unread" badge)."""
        return (
            db.query(Lead)
            .filter(Lead.assigned_to == staff_id)
            .filter(Lead.status.in_(list(LeadStatus.idle_states())))
            .count()
        )

    def open_counts_by_assignee(self, db: Session) -> Dict[str, int]:
        """Map staff id to the number of idle leads currently assigned to them."""
        rows = (
            db.query(Lead.assigned_to)
            .filter(Lead.assigned_to.isnot(None))
            .filter(Lead.status.in_(list(LeadStatus.idle_states())))
            .all()
        )
        return dict(Counter(row[0] for row in rows))

    def create(self, db: Session, data: Dict[str, Any]) -> Lead:
        lead = Lead(**data)
        db.add(lead)
        db.commit()
        db.refresh(lead)
        return lead

    def update(self, db: Session, lead: Lead, data: Dict[str, Any]) -> Lead:
        for field, value in data.items():
            setattr(lead, field, value)
        db.add(lead)
        db.commit()
        db.refresh(lead)
        return lead

    def delete(self, db: Session, lead: Lead) -> None:
        db.delete(lead)
        db.commit()
