from . import exceptions, telemetry
from .connector import (
    ConnectionManager,
    Delivery,
    Message,
    PublishResult,
    Queue,
    RabbitmqClient,
    RoutingDefaults,
    Topology,
)
from .consumer import DeliveryLoop, FunctionHandler, LoggingHandler, MessageHandler, Outcome, WorkQueue
from .manager import ConsumerHandle, ConsumerManager
from .routing import (
    BindingResolver,
    DirectCriterion,
    ExchangePublisher,
    FanoutCriterion,
    HeadersCriterion,
    TopicCriterion,
    criterion_for,
)
from .telemetry import LoggingConfig, MetricsConfig, TracingConfig

__all__ = [
    "ConnectionManager",
    "RabbitmqClient",
    "RoutingDefaults",
    "Topology",
    "Queue",
    "Message",
    "Delivery",
    "PublishResult",
    "ExchangePublisher",
    "BindingResolver",
    "FanoutCriterion",
    "DirectCriterion",
    "TopicCriterion",
    "HeadersCriterion",
    "criterion_for",
    "DeliveryLoop",
    "WorkQueue",
    "MessageHandler",
    "FunctionHandler",
    "LoggingHandler",
    "Outcome",
    "ConsumerManager",
    "ConsumerHandle",
    "LoggingConfig",
    "MetricsConfig",
    "TracingConfig",
    "exceptions",
    "telemetry",
]

__version__ = "0.1.0"
