import logging
import threading
import time
from typing import Optional

from ..connector.rabbitmq.connection import ConnectionManager
from ..connector.rabbitmq.models import Delivery, Queue
from ..exceptions import HandlerFailure
from ..telemetry import metrics, tracing
from .handler import HandlerLike, MessageHandler, Outcome, as_handler

logger = logging.getLogger(__name__)
tracer = tracing.get_tracer(__name__)


class DeliveryLoop:
    """
    Pulls deliveries from one queue and acknowledges or requeues each of them.

    A successful handler run acknowledges the delivery. A handler exception or an
    ``Outcome.RETRY`` rejects it with requeue. There is no retry cap and no
    dead-lettering: a message that always fails is redelivered forever.

    ``consume`` blocks until ``stop()`` is called (from any thread), the stop
    event passed in is set, or the process is interrupted. Losing the connection
    ends the loop with BrokerConnectionError.
    """

    def __init__(
        self,
        connections: ConnectionManager,
        handler: HandlerLike = None,
        prefetch_count: Optional[int] = None,
        poll_interval: Optional[float] = None,
        name: str = "consumer",
    ) -> None:
        self.connections = connections
        self.name = name
        self.handler: MessageHandler = as_handler(handler, name)
        self.prefetch_count = prefetch_count
        self.poll_interval = poll_interval or connections.client.poll_interval
        self._stop = threading.Event()

    # =====================================================================
    # CONTROL
    # =====================================================================
    def stop(self) -> None:
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    # =====================================================================
    # CONSUME
    # =====================================================================
    def consume(self, queue: Queue, stop_event: Optional[threading.Event] = None) -> None:
        if stop_event is not None:
            if self._stop.is_set():
                stop_event.set()
            self._stop = stop_event

        with tracing.messaging_span(tracer, "courier.consume", queue.name, {"messaging.consumer.id": self.name}):
            with self.connections.open() as session:
                if self.prefetch_count:
                    session.channel.basic_qos(prefetch_count=self.prefetch_count)

                consumer_tag = session.channel.basic_consume(
                    queue=queue.name,
                    on_message_callback=self._on_message,
                    auto_ack=False,
                )
                logger.info(f"Subscriber '{self.name}' consuming from queue '{queue.name}'")

                try:
                    while not self._stop.is_set():
                        session.connection.process_data_events(time_limit=self.poll_interval)
                except KeyboardInterrupt:
                    logger.info(f"Subscriber '{self.name}' interrupted")
                finally:
                    self._stop.set()
                    if session.channel.is_open:
                        session.channel.basic_cancel(consumer_tag)
                    logger.info(f"Subscriber '{self.name}' shutting down...")

    # =====================================================================
    # PER DELIVERY
    # =====================================================================
    def _on_message(self, channel, method, properties, body) -> None:
        delivery = Delivery(
            body=body,
            delivery_tag=method.delivery_tag,
            routing_key=method.routing_key or None,
            attributes=dict(getattr(properties, "headers", None) or {}),
            exchange=method.exchange or "",
            redelivered=bool(method.redelivered),
        )
        logger.info(
            f"Subscriber '{self.name}' received delivery {delivery.delivery_tag}"
            f"{' (redelivered)' if delivery.redelivered else ''} with routing key '{delivery.routing_key}': "
            f"{delivery.body!r}"
        )

        outcome = self._dispatch(delivery)

        if self._stop.is_set() or not channel.is_open:
            # Never settle after cancellation; the broker redelivers it to someone else.
            logger.warning(f"Subscriber '{self.name}' cancelled, leaving delivery {delivery.delivery_tag} unsettled")
            return

        if outcome is Outcome.OK:
            channel.basic_ack(delivery_tag=delivery.delivery_tag)
            metrics.deliveries_acked().add(1, {"queue.consumer": self.name})
        else:
            channel.basic_reject(delivery_tag=delivery.delivery_tag, requeue=True)
            metrics.deliveries_requeued().add(1, {"queue.consumer": self.name})
            logger.info(f"Requeued delivery {delivery.delivery_tag}")

    def _dispatch(self, delivery: Delivery) -> Outcome:
        """Run the handler. Errors are logged and turned into a retry, never raised."""
        start = time.perf_counter()
        with tracing.messaging_span(
            tracer,
            "courier.deliver",
            delivery.exchange,
            {
                "messaging.rabbitmq.message.delivery_tag": delivery.delivery_tag,
                "messaging.rabbitmq.destination.routing_key": delivery.routing_key,
                "messaging.consumer.id": self.name,
            },
        ) as span:
            try:
                outcome = self.handler.handle(delivery.body, delivery.routing_key, delivery.attributes)
            except Exception as e:
                failure = HandlerFailure(
                    f"Handler of '{self.name}' failed: {e!r}", delivery_tag=delivery.delivery_tag, cause=e
                )
                span.record_exception(e)
                logger.error(str(failure), exc_info=True)
                outcome = Outcome.RETRY
            finally:
                metrics.handler_duration().record(time.perf_counter() - start, {"queue.consumer": self.name})

            outcome = Outcome.RETRY if outcome is Outcome.RETRY else Outcome.OK
            span.set_attribute("courier.outcome", outcome.value)

        return outcome
