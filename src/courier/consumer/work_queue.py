import logging
import threading
from typing import Any, Optional

from ..connector.rabbitmq.connection import ConnectionManager
from ..connector.rabbitmq.helper import build_properties
from ..connector.rabbitmq.models import Message, Queue
from ..routing.binding import declare_queue
from ..telemetry import metrics, tracing
from .handler import HandlerLike
from .loop import DeliveryLoop

logger = logging.getLogger(__name__)
tracer = tracing.get_tracer(__name__)


class WorkQueue:
    """
    One durable queue, one or more producers, competing consumers.

    Messages go through the default exchange straight to the queue. Each
    consumer channel holds at most ``prefetch_count`` unacknowledged deliveries
    (1 by default), so a busy worker is not handed more work until it settles
    the current message.
    """

    def __init__(self, connections: ConnectionManager, prefetch_count: Optional[int] = None) -> None:
        self.connections = connections
        self.prefetch_count = prefetch_count if prefetch_count is not None else connections.client.prefetch_count

    def enqueue(self, queue_name: str, message: Any) -> Message:
        if not queue_name:
            raise ValueError("A queue name is required.")
        if not isinstance(message, Message):
            message = Message(body=message)

        queue = Queue.work(queue_name)
        with tracing.messaging_span(
            tracer,
            "courier.publish",
            queue_name,
            {
                "messaging.rabbitmq.exchange_type": "queue",
                "messaging.message.body.size": len(message.body),
            },
        ):
            with self.connections.open() as session:
                declare_queue(session.channel, queue)
                session.channel.basic_publish(
                    exchange="",
                    routing_key=queue.name,
                    body=message.body,
                    properties=build_properties(persistent=True),
                )

        metrics.messages_published().add(1, {"topology": "queue"})
        logger.info(f"Enqueued work to queue '{queue_name}': {message.body!r}")
        return Message(body=message.body, routing_key=queue.name, persistent=True)

    def declare(self, queue_name: str) -> Queue:
        queue = Queue.work(queue_name)
        with self.connections.open() as session:
            declare_queue(session.channel, queue)
        return queue

    def consumer(self, handler: HandlerLike = None, name: str = "worker") -> DeliveryLoop:
        return DeliveryLoop(self.connections, handler=handler, prefetch_count=self.prefetch_count, name=name)

    def consume(
        self,
        queue_name: str,
        handler: HandlerLike = None,
        stop_event: Optional[threading.Event] = None,
        name: str = "worker",
    ) -> None:
        """Declare the queue and process its messages until stopped."""
        queue = self.declare(queue_name)
        logger.info(f"Processing work from queue '{queue_name}' as '{name}' (prefetch {self.prefetch_count})")
        self.consumer(handler, name).consume(queue, stop_event=stop_event)
