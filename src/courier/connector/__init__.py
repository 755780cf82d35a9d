from .rabbitmq import (
    ConnectionManager,
    Delivery,
    Exchange,
    Message,
    PublishResult,
    Queue,
    RabbitmqClient,
    RoutingDefaults,
    Topology,
)

__all__ = [
    "ConnectionManager",
    "RabbitmqClient",
    "RoutingDefaults",
    "Topology",
    "Exchange",
    "Queue",
    "Message",
    "Delivery",
    "PublishResult",
]
