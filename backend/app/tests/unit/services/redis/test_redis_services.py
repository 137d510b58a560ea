"""Test Redis change relay."""

from unittest.mock import MagicMock, patch

import redis

from leadflow.repositories.records.change_feed import ChangeEvent, ChangeFeed, ChangeKind
from leadflow.repositories.redis.redis_crud import RedisChangeChannel
from leadflow.services.redis.redis_services import RedisChangeRelay, create_redis_relay


class TestRedisChangeRelay:
    """Test cases for RedisChangeRelay class."""

    def setup_method(self) -> None:
        """Set up test fixtures before each test method."""
        self.channel = MagicMock(spec=RedisChangeChannel)
        self.channel.listen.return_value = iter([])
        self.feed = ChangeFeed()
        self.relay = RedisChangeRelay(self.channel, feed=self.feed, origin="here")

    def test_local_changes_are_published(self) -> None:
        self.relay.start()
        event = ChangeEvent("lead", ChangeKind.INSERT, new={"id": 1}, origin="here")

        # Act
        self.feed.publish(event)
        self.relay.stop()

        # Assert
        self.channel.publish.assert_called_once_with(event.to_json())
        assert self.feed.subscriber_count() == 0

    def test_remote_changes_are_not_sent_back(self) -> None:
        self.relay.forward(ChangeEvent("lead", ChangeKind.INSERT, new={"id": 1}, origin="there"))

        self.channel.publish.assert_not_called()

    def test_remote_messages_are_replayed_locally(self) -> None:
        received = []
        self.feed.subscribe("lead", received.append)
        remote = ChangeEvent("lead", ChangeKind.UPDATE, old={"id": 1}, new={"id": 1}, origin="there")

        assert self.relay.receive(remote.to_json().encode()) is True
        assert received == [remote]

    def test_own_messages_are_ignored(self) -> None:
        received = []
        self.feed.subscribe("lead", received.append)
        own = ChangeEvent("lead", ChangeKind.DELETE, old={"id": 1}, origin="here")

        assert self.relay.receive(own.to_json()) is False
        assert received == []

    def test_malformed_message_is_dropped(self) -> None:
        assert self.relay.receive(b"not json") is False

    def test_publish_failure_is_logged(self) -> None:
        self.channel.publish.side_effect = redis.ConnectionError("down")

        # Act / Assert: does not raise
        self.relay.forward(ChangeEvent("staff", ChangeKind.INSERT, new={"id": "x"}, origin="here"))

    def test_listener_resubscribes_after_connection_loss(self) -> None:
        relay = RedisChangeRelay(self.channel, feed=self.feed, origin="here", reconnect_delay=0)
        remote = ChangeEvent("lead", ChangeKind.INSERT, new={"id": 1}, origin="there")
        received = []
        self.feed.subscribe("lead", received.append)
        attempts = []

        def listen():
            attempts.append(1)
            if len(attempts) == 1:
                raise redis.ConnectionError("reset by peer")
            if len(attempts) == 2:
                return iter([remote.to_json().encode()])
            relay.stop()
            return iter([])

        self.channel.listen.side_effect = listen

        # Act
        with patch("leadflow.services.redis.redis_services.logger") as mock_logger:
            relay._listen()

        # Assert
        assert len(attempts) == 3
        assert received == [remote]
        mock_logger.error.assert_called_once()


def test_create_redis_relay_requires_host() -> None:
    with patch("leadflow.services.redis.redis_services.settings") as mock_settings:
        mock_settings.REDIS_HOST = None
        assert create_redis_relay() is None

    with patch("leadflow.services.redis.redis_services.settings") as mock_settings, patch(
        "redis.Redis"
    ):
        mock_settings.REDIS_HOST = "cache"
        mock_settings.REDIS_PORT = 6379
        mock_settings.REDIS_PASSWORD = None
        mock_settings.REDIS_SSL = False
        mock_settings.REDIS_CHANGES_CHANNEL = "leadflow:changes"
        relay = create_redis_relay()
        assert isinstance(relay, RedisChangeRelay)
        assert relay.channel.channel == "leadflow:changes"
