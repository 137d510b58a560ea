"""Module for exchanging change events with other processes over Redis pub/sub."""

from typing import Iterator, Optional, Union

import redis

from leadflow.logger_config import get_logger

logger = get_logger(__name__)


def str_to_bool(value: str) -> bool:
    """Convert REDIS_SSL env variable to boolean."""
    return value.lower() in ("true", "1", "yes")


class RedisChangeChannel:
    """Publishes serialized change events to a channel and listens for them."""

    def __init__(
        self,
        host: str,
        port: int,
        password: Optional[str],
        ssl: Union[str, bool],
        channel: str,
    ) -> None:
        """
        Initialize a connection to the Redis server.

        Args:
            host (str): The hostname or IP address of the Redis server.
            port (int): The port number of the Redis server.
            password (str): Password, if the server requires one.
            ssl (Union[str, bool]): Whether to connect over TLS.
            channel (str): Pub/sub channel shared by every process.
        """
        ssl = str_to_bool(ssl) if isinstance(ssl, str) else ssl
        self.channel = channel
        self.handler = redis.Redis(
            host=host,
            port=port,
            password=password,
            ssl=ssl,
            db=0,
            ssl_cert_reqs=None,
        )
        self._pubsub: Optional[redis.client.PubSub] = None

    def publish(self, payload: str) -> int:
        """Publish one message; returns the number of receiving clients."""
        return int(self.handler.publish(self.channel, payload))

    def listen(self) -> Iterator[bytes]:
        """Yield raw message payloads until `close` is called."""
        self._pubsub = self.handler.pubsub(ignore_subscribe_messages=True)
        self._pubsub.subscribe(self.channel)
        logger.info("Listening on Redis channel %s.", self.channel)
        for message in self._pubsub.listen():
            if message and message.get("type") == "message":
                yield message["data"]

    def close(self) -> None:
        if self._pubsub is not None:
            self._pubsub.close()
            self._pubsub = None
