import logging
from typing import Any, Optional

from ..connector.rabbitmq.connection import ConnectionManager
from ..connector.rabbitmq.helper import build_properties, parse_attributes
from ..connector.rabbitmq.models import Message, RoutingDefaults, Topology
from ..exceptions import MissingRoutingKey
from ..telemetry import metrics, tracing
from .exchange import declare_exchange

logger = logging.getLogger(__name__)
tracer = tracing.get_tracer(__name__)


class ExchangePublisher:
    """
    Publishes messages into fanout, direct, topic and headers exchanges.

    Every publish declares the exchange, sends one persistent message and
    releases its connection, whether or not the publish succeeded.
    """

    def __init__(self, connections: ConnectionManager, defaults: Optional[RoutingDefaults] = None) -> None:
        self.connections = connections
        self.defaults = defaults or RoutingDefaults()

    def resolve_routing_key(
        self,
        topology: Topology,
        routing_key: Optional[str] = None,
        default_routing_key: Optional[str] = None,
    ) -> str:
        """
        fanout/headers: always "" (the broker ignores it).
        direct/topic: the given key, then the caller default, then the configured default.
        Only a missing (None) key falls back; an empty key is rejected.
        """
        if not topology.requires_routing_key:
            return ""

        key = routing_key
        if key is None:
            key = default_routing_key
        if key is None:
            key = self.defaults.routing_key_for(topology)
        if not key:
            raise MissingRoutingKey(f"A routing key is required to publish to a {topology.value} exchange.")
        return key

    def publish(
        self,
        exchange: str,
        topology: Topology,
        message: Any,
        routing_key: Optional[str] = None,
        attributes: Any = None,
        default_routing_key: Optional[str] = None,
    ) -> Message:
        """
        Publish ``message`` to ``exchange`` and return what was sent.

        ``message`` may be a Message, bytes or str. Routing key and attributes
        given here take precedence over those carried by a Message.
        """
        topology = Topology(topology)
        if not topology.is_exchange:
            raise ValueError("Work queue messages are published with WorkQueue.enqueue().")

        if not isinstance(message, Message):
            message = Message(body=message)

        key = self.resolve_routing_key(
            topology, routing_key if routing_key is not None else message.routing_key, default_routing_key
        )
        headers = {}
        if topology is Topology.HEADERS:
            headers = parse_attributes(attributes) if attributes is not None else dict(message.attributes)

        outgoing = Message(body=message.body, routing_key=key or None, attributes=headers, persistent=True)

        with tracing.messaging_span(
            tracer,
            "courier.publish",
            exchange,
            {
                "messaging.rabbitmq.exchange_type": topology.value,
                "messaging.rabbitmq.destination.routing_key": key,
                "messaging.message.body.size": len(outgoing.body),
            },
        ):
            with self.connections.open() as session:
                declare_exchange(session.channel, exchange, topology)
                session.channel.basic_publish(
                    exchange=exchange,
                    routing_key=key,
                    body=outgoing.body,
                    properties=build_properties(persistent=outgoing.persistent, headers=headers),
                )

        metrics.messages_published().add(1, {"topology": topology.value})

        if topology is Topology.HEADERS:
            logger.info(f"Published message to headers exchange '{exchange}' with headers {headers}: {outgoing.body!r}")
        elif topology is Topology.FANOUT:
            logger.info(f"Broadcasted message to exchange '{exchange}': {outgoing.body!r}")
        else:
            logger.info(
                f"Published message to {topology.value} exchange '{exchange}' with routing key '{key}': "
                f"{outgoing.body!r}"
            )

        return outgoing
