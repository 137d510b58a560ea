"""Decide which open sessions must refresh after a committed change.

Observers never patch their local copy; they re-fetch the affected view so
every session converges on the store's state.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional

from leadflow.logger_config import get_logger
from leadflow.models.enums import StaffRole
from leadflow.models.identity_models import Identity
from leadflow.repositories.records.change_feed import (
    ChangeEvent,
    ChangeFeed,
    Subscription,
    change_feed,
)

logger = get_logger(__name__)

VIEWS: Dict[str, str] = {"lead": "leads", "staff": "staff"}


def is_relevant(identity: Identity, event: ChangeEvent) -> bool:
    """Return True when `identity` should re-fetch after `event`.

    Staff changes (presence included) reach every session. Lead changes
    reach admins, and anyone who owned the lead before or after the change,
    so a reassigned lead disappears from the old owner's view too. After-care
    staff also see the unassigned pool, so any change touching a pooled lead
    reaches them.
    """
    if event.record_type == "staff":
        return True
    if event.record_type != "lead":
        return False
    if identity.is_admin:
        return True
    images = event.images()
    if identity.role == StaffRole.AFTER_CARE and any(
        image.get("assigned_to") is None for image in images
    ):
        return True
    if not identity.id:
        return False
    return any(image.get("assigned_to") == identity.id for image in images)


class SessionObserver:
    """Bridge between the change feed and one client session."""

    def __init__(
        self,
        identity: Identity,
        on_refresh: Callable[[str], None],
        feed: Optional[ChangeFeed] = None,
    ) -> None:
        self.identity = identity
        self.on_refresh = on_refresh
        self.feed = feed or change_feed
        self._subscriptions: List[Subscription] = [
            self.feed.subscribe(record_type, self._handle) for record_type in VIEWS
        ]

    def _handle(self, event: ChangeEvent) -> None:
        if is_relevant(self.identity, event):
            self.on_refresh(VIEWS[event.record_type])

    @property
    def active(self) -> bool:
        return any(subscription.active for subscription in self._subscriptions)

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.close()
        logger.info("Session observer for %s closed.", self.identity.display_name)
