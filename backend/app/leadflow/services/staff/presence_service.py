"""Presence tracking for staff members.

Presence is derived state: a member is online when the last written state is
`online` and the last heartbeat is recent enough. Any process computes the
same answer from the stored row, so no in-memory registry is kept.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Callable, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from configs import settings
from leadflow.logger_config import get_logger
from leadflow.models.enums import PresenceState
from leadflow.repositories.records.crud.staff_crud import CRUDStaff
from leadflow.repositories.records.models.staff_model import Staff
from leadflow.services.errors import LeadValidationError, RecordNotFoundError
from leadflow.services.time_utils import to_naive_utc, utcnow

logger = get_logger(__name__)

DEFAULT_STALE_AFTER = timedelta(seconds=settings.PRESENCE_STALE_SECONDS)


def is_online(
    staff: Staff,
    now: Optional[datetime] = None,
    stale_after: timedelta = DEFAULT_STALE_AFTER,
) -> bool:
    """Return True when `staff` wrote `online` and heartbeated within `stale_after`."""
    if staff.status != PresenceState.ONLINE or staff.last_active is None:
        return False
    current = to_naive_utc(now) if now is not None else utcnow()
    return current - to_naive_utc(staff.last_active) < stale_after


class PresenceService:
    """Record heartbeats and explicit presence toggles on the staff rows."""

    def __init__(
        self, repository: CRUDStaff, stale_after: timedelta = DEFAULT_STALE_AFTER
    ) -> None:
        self.repository = repository
        self.stale_after = stale_after

    def is_online(self, staff: Staff, now: Optional[datetime] = None) -> bool:
        return is_online(staff, now=now, stale_after=self.stale_after)

    def heartbeat(
        self, db: Session, staff_id: str, now: Optional[datetime] = None
    ) -> bool:
        """Mark the member online as of `now`.

        A failed write is logged and reported as False; the next heartbeat
        interval is the retry.
        """
        try:
            staff = self.repository.get(db, staff_id)
            if staff is None:
                logger.warning("Heartbeat for unknown staff member %s ignored.", staff_id)
                return False
            self.repository.set_presence(
                db, staff, PresenceState.ONLINE, to_naive_utc(now) or utcnow()
            )
            return True
        except Exception as exc:
            db.rollback()
            logger.error("Heartbeat write failed for %s: %s", staff_id, exc)
            return False

    def set_presence(
        self,
        db: Session,
        staff_id: str,
        state: PresenceState | str,
        now: Optional[datetime] = None,
    ) -> Staff:
        """Persist an explicit online/offline toggle; store errors propagate."""
        try:
            state = PresenceState(state)
        except ValueError as exc:
            raise LeadValidationError(f"Unknown presence state: {state!r}") from exc
        staff = self.repository.get(db, staff_id)
        if staff is None:
            raise RecordNotFoundError(f"Staff member {staff_id} not found")
        return self.repository.set_presence(
            db, staff, state, to_naive_utc(now) or utcnow()
        )


class PresenceSession:
    """Presence bookkeeping for one live staff session.

    Holds the locally displayed state, heartbeats once on `start` and then on
    a fixed interval while the local state is online, and reverts optimistic
    toggles whose write fails.
    """

    def __init__(
        self,
        service: PresenceService,
        session_factory: Callable[[], Session],
        staff_id: str,
        interval_seconds: float = settings.PRESENCE_HEARTBEAT_SECONDS,
    ) -> None:
        self.service = service
        self.session_factory = session_factory
        self.staff_id = staff_id
        self.interval_seconds = interval_seconds
        self.state = PresenceState.OFFLINE
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self.state = PresenceState.ONLINE
        self.beat()
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name=f"heartbeat-{self.staff_id}", daemon=True
        )
        self._thread.start()

    def beat(self) -> bool:
        with self.session_factory() as db:
            return self.service.heartbeat(db, self.staff_id)

    def toggle(self, state: PresenceState) -> bool:
        """Apply `state` locally, persist it, and roll the local state back on failure."""
        previous = self.state
        self.state = state
        try:
            with self.session_factory() as db:
                self.service.set_presence(db, self.staff_id, state)
        except Exception as exc:
            self.state = previous
            logger.error(
                "Presence toggle to %s failed for %s, keeping %s: %s",
                PresenceState(state).value,
                self.staff_id,
                previous.value,
                exc,
            )
            return False
        return True

    def close(self, mark_offline: bool = True) -> None:
        """Stop heartbeating; optionally record the member as offline."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
        if mark_offline:
            self.toggle(PresenceState.OFFLINE)

    def _run(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            if self.state == PresenceState.ONLINE:
                self.beat()


def get_presence_service(repository: CRUDStaff = Depends()) -> PresenceService:
    return PresenceService(repository)
