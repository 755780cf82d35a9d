import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional

import pika
from pika import exceptions as pika_exceptions

from ...exceptions import BrokerConnectionError, ChannelError, CourierException
from .models import RabbitmqClient

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """An open connection and the one channel created on it."""

    connection: Any
    channel: Any


class ConnectionManager:
    """
    Opens one broker connection per operation and always closes it afterwards.

    Connections are never pooled and never handed to another thread.
    """

    def __init__(
        self,
        client: Optional[RabbitmqClient] = None,
        connection_factory: Optional[Callable[[pika.ConnectionParameters], Any]] = None,
    ) -> None:
        self.client = client or RabbitmqClient.from_env()
        self.connection_factory = connection_factory or pika.BlockingConnection

    def parameters(self) -> pika.ConnectionParameters:
        return pika.ConnectionParameters(
            host=self.client.host,
            port=self.client.port,
            virtual_host=self.client.virtual_host,
            credentials=pika.PlainCredentials(self.client.username, self.client.password),
            connection_attempts=self.client.connection_attempts,
            socket_timeout=self.client.socket_timeout,
            heartbeat=self.client.heartbeat,
            blocked_connection_timeout=self.client.blocked_connection_timeout,
        )

    def _connect(self):
        try:
            connection = self.connection_factory(self.parameters())
        except pika_exceptions.AMQPConnectionError as e:
            raise BrokerConnectionError(
                f"Could not connect to RabbitMQ at {self.client.host}:{self.client.port}: {e!r}"
            ) from e

        try:
            channel = connection.channel()
        except pika_exceptions.AMQPError as e:
            self._close(connection)
            raise BrokerConnectionError(f"Could not open a channel: {e!r}") from e

        return Session(connection=connection, channel=channel)

    @staticmethod
    def _close(connection) -> None:
        try:
            if connection.is_open:
                connection.close()
        except pika_exceptions.AMQPError as e:
            logger.warning(f"Failed to close RabbitMQ connection cleanly: {e!r}")

    @contextmanager
    def open(self) -> Iterator[Session]:
        """
        Yield a fresh session, translating pika errors raised inside the block.
        The connection is closed on every exit path.
        """
        session = self._connect()
        logger.debug(f"Opened connection to {self.client.host}:{self.client.port}")
        try:
            yield session
        except CourierException:
            raise
        except pika_exceptions.AMQPConnectionError as e:
            raise BrokerConnectionError(f"Connection to RabbitMQ lost: {e!r}") from e
        except pika_exceptions.ChannelClosedByBroker as e:
            raise ChannelError(f"Channel closed by broker: {e.reply_text}", reply_code=e.reply_code) from e
        except pika_exceptions.AMQPChannelError as e:
            raise ChannelError(f"Channel error: {e!r}") from e
        finally:
            self._close(session.connection)
            logger.debug("Closed connection")
