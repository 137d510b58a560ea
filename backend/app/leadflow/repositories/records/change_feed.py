"""Per-row change notifications for the lead and staff tables.

Inserts, updates and deletes of `Lead` and `Staff` rows are captured during
flush together with their before/after images, held on the session, and
published to `change_feed` once the transaction commits. A rollback drops
them. Subscribers are called synchronously on the committing thread.
"""

from __future__ import annotations

import json
import threading
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session, object_session

from leadflow.logger_config import get_logger
from leadflow.repositories.records.models.lead_model import Lead
from leadflow.repositories.records.models.staff_model import Staff

logger = get_logger(__name__)

__all__ = [
    "ChangeEvent",
    "ChangeFeed",
    "ChangeKind",
    "Subscription",
    "change_feed",
    "PROCESS_ORIGIN",
]

PROCESS_ORIGIN = uuid.uuid4().hex
TRACKED_TABLES: Dict[type, str] = {Lead: "lead", Staff: "staff"}
_PENDING_KEY = "leadflow.pending_changes"


class ChangeKind(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class ChangeEvent:
    """One committed row change.

    `old` is None for inserts, `new` is None for deletes.
    """

    record_type: str
    kind: ChangeKind
    old: Optional[Dict[str, Any]] = None
    new: Optional[Dict[str, Any]] = None
    origin: str = PROCESS_ORIGIN

    def images(self) -> List[Mapping[str, Any]]:
        return [image for image in (self.old, self.new) if image is not None]

    def to_json(self) -> str:
        return json.dumps(
            {
                "record_type": self.record_type,
                "kind": self.kind.value,
                "old": self.old,
                "new": self.new,
                "origin": self.origin,
            },
            default=_json_default,
        )

    @classmethod
    def from_json(cls, raw: str | bytes) -> "ChangeEvent":
        data = json.loads(raw)
        return cls(
            record_type=data["record_type"],
            kind=ChangeKind(data["kind"]),
            old=data.get("old"),
            new=data.get("new"),
            origin=data.get("origin", ""),
        )


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


@dataclass(eq=False)
class Subscription:
    """A standing subscription to one record type, optionally filtered by equality."""

    feed: "ChangeFeed"
    record_type: str
    callback: Callable[[ChangeEvent], None]
    where: Dict[str, Any] = field(default_factory=dict)
    active: bool = True

    def matches(self, change: ChangeEvent) -> bool:
        if change.record_type != self.record_type:
            return False
        if not self.where:
            return True
        return any(
            all(image.get(key) == value for key, value in self.where.items())
            for image in change.images()
        )

    def close(self) -> None:
        """Tear the subscription down; further events are not delivered."""
        if self.active:
            self.active = False
            self.feed._remove(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *_exc: Any) -> None:
        self.close()


class ChangeFeed:
    """In-process fan-out of committed row changes."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: Dict[str, List[Subscription]] = defaultdict(list)

    def subscribe(
        self,
        record_type: str,
        callback: Callable[[ChangeEvent], None],
        where: Optional[Mapping[str, Any]] = None,
    ) -> Subscription:
        subscription = Subscription(
            feed=self,
            record_type=record_type,
            callback=callback,
            where=dict(where or {}),
        )
        with self._lock:
            self._subscriptions[record_type].append(subscription)
        return subscription

    def publish(self, change: ChangeEvent) -> int:
        """Deliver a change to every matching subscriber and return how many received it."""
        with self._lock:
            targets = list(self._subscriptions.get(change.record_type, []))
        delivered = 0
        for subscription in targets:
            if not subscription.active or not subscription.matches(change):
                continue
            try:
                subscription.callback(change)
                delivered += 1
            except Exception as exc:
                logger.error(
                    "Change subscriber failed for %s %s: %s",
                    change.record_type,
                    change.kind.value,
                    exc,
                )
        return delivered

    def subscriber_count(self, record_type: Optional[str] = None) -> int:
        with self._lock:
            if record_type is not None:
                return len(self._subscriptions.get(record_type, []))
            return sum(len(subs) for subs in self._subscriptions.values())

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            subs = self._subscriptions.get(subscription.record_type, [])
            if subscription in subs:
                subs.remove(subscription)


change_feed = ChangeFeed()


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _image(target: Any, before: bool = False) -> Dict[str, Any]:
    """Build a column snapshot of `target` without triggering lazy loads."""
    state = inspect(target)
    image: Dict[str, Any] = {}
    for attr in state.mapper.column_attrs:
        value = state.dict.get(attr.key)
        if before:
            history = state.attrs[attr.key].history
            if history.deleted:
                value = history.deleted[0]
            elif history.added:
                value = None
        image[attr.key] = _plain(value)
    return image


def _queue(target: Any, change: ChangeEvent) -> None:
    session = object_session(target)
    if session is None:
        return
    session.info.setdefault(_PENDING_KEY, []).append(change)


def _record_type(target: Any) -> str:
    return TRACKED_TABLES[type(target)]


def _after_insert(_mapper: Any, _connection: Any, target: Any) -> None:
    _queue(target, ChangeEvent(_record_type(target), ChangeKind.INSERT, new=_image(target)))


def _after_update(_mapper: Any, _connection: Any, target: Any) -> None:
    old = _image(target, before=True)
    new = _image(target)
    if old == new:
        return
    _queue(target, ChangeEvent(_record_type(target), ChangeKind.UPDATE, old=old, new=new))


def _after_delete(_mapper: Any, _connection: Any, target: Any) -> None:
    _queue(target, ChangeEvent(_record_type(target), ChangeKind.DELETE, old=_image(target)))


def _after_commit(session: Session) -> None:
    pending = session.info.pop(_PENDING_KEY, [])
    for change in pending:
        change_feed.publish(change)


def _after_rollback(session: Session) -> None:
    session.info.pop(_PENDING_KEY, None)


def _after_transaction_end(session: Session, transaction: Any) -> None:
    # closing a session without commit ends the outer transaction silently
    if transaction.parent is None:
        session.info.pop(_PENDING_KEY, None)


for _model in TRACKED_TABLES:
    event.listen(_model, "after_insert", _after_insert)
    event.listen(_model, "after_update", _after_update)
    event.listen(_model, "after_delete", _after_delete)

event.listen(Session, "after_commit", _after_commit)
event.listen(Session, "after_rollback", _after_rollback)
event.listen(Session, "after_transaction_end", _after_transaction_end)
