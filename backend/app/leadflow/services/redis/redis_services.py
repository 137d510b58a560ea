"""Cross-process fan-out of committed changes through Redis."""

import threading
from typing import List, Optional

import redis

from configs import settings
from leadflow.logger_config import get_logger
from leadflow.repositories.records.change_feed import (
    PROCESS_ORIGIN,
    TRACKED_TABLES,
    ChangeEvent,
    ChangeFeed,
    Subscription,
    change_feed,
)
from leadflow.repositories.redis.redis_crud import RedisChangeChannel

logger = get_logger(__name__)

RECONNECT_DELAY_SECONDS = 5.0


class RedisChangeRelay:
    """Mirror the local change feed to Redis and replay other processes' changes.

    Only changes committed in this process are forwarded, and changes that
    come back with this process's origin are ignored, so nothing loops.
    A dropped subscription is re-established until `stop` is called.
    """

    def __init__(
        self,
        channel: RedisChangeChannel,
        feed: Optional[ChangeFeed] = None,
        origin: str = PROCESS_ORIGIN,
        reconnect_delay: float = RECONNECT_DELAY_SECONDS,
    ) -> None:
        self.channel = channel
        self.feed = feed or change_feed
        self.origin = origin
        self.reconnect_delay = reconnect_delay
        self._stopped = threading.Event()
        self._subscriptions: List[Subscription] = []
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stopped.clear()
        self._subscriptions = [
            self.feed.subscribe(record_type, self.forward)
            for record_type in TRACKED_TABLES.values()
        ]
        self._thread = threading.Thread(
            target=self._listen, name="redis-change-relay", daemon=True
        )
        self._thread.start()

    def forward(self, event: ChangeEvent) -> None:
        """Publish a locally committed change for the other processes."""
        if event.origin != self.origin:
            return
        try:
            self.channel.publish(event.to_json())
        except (redis.RedisError, TypeError) as exc:
            logger.error("Could not relay %s %s change: %s", event.record_type, event.kind.value, exc)

    def receive(self, raw: bytes) -> bool:
        """Replay one remote change into the local feed; returns False when it was skipped."""
        try:
            event = ChangeEvent.from_json(raw)
        except (ValueError, KeyError) as exc:
            logger.warning("Discarding malformed change message: %s", exc)
            return False
        if event.origin == self.origin:
            return False
        self.feed.publish(event)
        return True

    def _listen(self) -> None:
        while not self._stopped.is_set():
            try:
                for raw in self.channel.listen():
                    self.receive(raw)
            except redis.RedisError as exc:
                if self._stopped.is_set():
                    break
                logger.error(
                    "Redis change relay lost its subscription, resubscribing in %.0f s: %s",
                    self.reconnect_delay,
                    exc,
                )
                self.channel.close()
            self._stopped.wait(self.reconnect_delay)

    def stop(self) -> None:
        self._stopped.set()
        for subscription in self._subscriptions:
            subscription.close()
        self._subscriptions = []
        self.channel.close()
        self._thread = None


def create_redis_relay() -> Optional[RedisChangeRelay]:
    """Build the relay from settings, or None when Redis is not configured."""
    if not settings.REDIS_HOST:
        logger.info("REDIS_HOST not set; change propagation stays in-process.")
        return None
    channel = RedisChangeChannel(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        password=settings.REDIS_PASSWORD,
        ssl=settings.REDIS_SSL,
        channel=settings.REDIS_CHANGES_CHANNEL,
    )
    return RedisChangeRelay(channel)
