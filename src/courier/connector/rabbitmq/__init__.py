"""
RabbitMQ connectivity for courier.
Provides per-operation connections, broker settings and the message models
shared by publishers and consumers.
"""

from .connection import ConnectionManager, Session
from .helper import build_properties, parse_attributes
from .models import (
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
    "Session",
    "RabbitmqClient",
    "RoutingDefaults",
    "Topology",
    "Exchange",
    "Queue",
    "Message",
    "Delivery",
    "PublishResult",
    "build_properties",
    "parse_attributes",
]
