"""Seed helper for local development."""

import logging
from sqlalchemy.orm import Session

from leadflow.models.enums import LeadStatus, StaffRole
from leadflow.repositories.records.database import SessionLocal
from leadflow.repositories.records.models import Lead, Staff

logger = logging.getLogger(__name__)


def create_mock_data() -> None:
    """Populate the database with a demo team and a few leads when empty."""
    db: Session = SessionLocal()
    try:
        existing = db.query(Staff).count()
        if existing:
            logger.info("Staff already present (%d records). Skipping.", existing)
            return

        logger.info("Creating demo staff and leads.")
        team = [
            Staff(full_name="Admin", email="admin@example.com", role=StaffRole.ADMIN),
            Staff(full_name="Somchai K.", email="somchai@example.com", role=StaffRole.SALES),
            Staff(full_name="Nok P.", email="nok@example.com", role=StaffRole.SALES),
            Staff(full_name="Care Desk", email="care@example.com", role=StaffRole.AFTER_CARE),
        ]
        db.add_all(team)
        db.flush()
        sample_leads = [
            {
                "name": "Ploy Wongsa",
                "phone": "0812345678",
                "source": "Facebook",
                "program": "Skin booster",
                "status": LeadStatus.NEW,
                "assigned_to": team[1].id,
                "value": 15000.0,
            },
            {
                "name": "Arthit Chai",
                "phone": "0898765432",
                "source": "Walk-in",
                "program": "Laser package",
                "status": LeadStatus.CONTACTED,
                "assigned_to": team[2].id,
                "notes": "Call back after 5pm.",
            },
        ]
        for lead in sample_leads:
            db.add(Lead(**lead))
        db.commit()
        logger.info("Demo staff and leads inserted with success.")
    except Exception as exc:
        logger.error("Failed to seed demo data: %s", exc)
        db.rollback()
    finally:
        db.close()


if __name__ == "__main__":  # pragma: no cover
    create_mock_data()
