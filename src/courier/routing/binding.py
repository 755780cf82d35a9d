import logging
from typing import Any, Optional

from ..connector.rabbitmq.connection import ConnectionManager
from ..connector.rabbitmq.models import Queue, RoutingDefaults, Topology
from ..telemetry import tracing
from .exchange import declare_exchange
from .matching import HeadersCriterion, MatchCriterion, criterion_for

logger = logging.getLogger(__name__)
tracer = tracing.get_tracer(__name__)


def declare_queue(channel, queue: Queue) -> Queue:
    channel.queue_declare(
        queue=queue.name,
        durable=queue.durable,
        exclusive=queue.exclusive,
        auto_delete=queue.auto_delete,
    )
    return queue


class BindingResolver:
    """
    Attaches a consumer's private queue to an exchange.

    The queue is named ``{exchange}.{consumer_id}`` and is auto-delete, so the
    broker reclaims it once its last consumer goes away.
    """

    def __init__(self, connections: ConnectionManager, defaults: Optional[RoutingDefaults] = None) -> None:
        self.connections = connections
        self.defaults = defaults or RoutingDefaults()

    def bind(
        self,
        exchange: str,
        topology: Topology,
        consumer_id: str,
        criterion: Any = None,
    ) -> Queue:
        topology = Topology(topology)
        if not topology.is_exchange:
            raise ValueError("Work queues are consumed directly, there is no exchange to bind to.")
        if not consumer_id:
            raise ValueError("A consumer id is required to name the consumer queue.")

        criterion: MatchCriterion = criterion_for(topology, criterion, self.defaults)
        if isinstance(criterion, HeadersCriterion) and criterion.matches_everything:
            logger.warning(
                f"Headers binding for '{consumer_id}' on '{exchange}' has no attributes and x-match=all: "
                f"it matches every message"
            )

        queue = Queue.for_consumer(exchange, consumer_id)
        routing_key, arguments = criterion.binding_arguments()

        with tracing.messaging_span(
            tracer,
            "courier.bind",
            exchange,
            {
                "messaging.rabbitmq.exchange_type": topology.value,
                "messaging.consumer.id": consumer_id,
            },
        ):
            with self.connections.open() as session:
                declare_exchange(session.channel, exchange, topology)
                declare_queue(session.channel, queue)
                session.channel.queue_bind(
                    queue=queue.name,
                    exchange=exchange,
                    routing_key=routing_key,
                    arguments=arguments,
                )

        logger.info(
            f"{topology.value.capitalize()} subscriber '{consumer_id}' bound queue '{queue.name}' "
            f"to exchange '{exchange}' with {criterion.describe()}"
        )
        return queue
