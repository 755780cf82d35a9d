import logging

from pika import exceptions as pika_exceptions

from ..connector.rabbitmq.models import Exchange, Topology
from ..exceptions import TopologyConflict

logger = logging.getLogger(__name__)

PRECONDITION_FAILED = 406


def declare_exchange(channel, name: str, topology: Topology) -> Exchange:
    """
    Declare a durable exchange of the given type. Idempotent.

    Raises TopologyConflict when the exchange exists with another type; the broker
    closes the channel in that case, so the operation cannot continue on it.
    """
    topology = Topology(topology)
    exchange = Exchange(name=name, topology=topology)

    try:
        channel.exchange_declare(
            exchange=exchange.name,
            exchange_type=topology.exchange_type,
            durable=exchange.durable,
        )
    except pika_exceptions.ChannelClosedByBroker as e:
        if e.reply_code == PRECONDITION_FAILED:
            logger.error(f"Exchange '{name}' conflicts with requested type '{topology.value}': {e.reply_text}")
            raise TopologyConflict(name, topology.value) from e
        raise

    logger.debug(f"Declared {topology.value} exchange '{name}'")
    return exchange
