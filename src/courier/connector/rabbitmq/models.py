import os
from enum import Enum
from typing import Any, Dict, Optional

from pika.exchange_type import ExchangeType
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...utils.env import load_env


def _normalize_optional(v):
    """
    Normalize optional env-driven values.

    Accepts None, "", "none" / "null" and numeric strings.
    Lets Pydantic handle final coercion.
    """
    if v is None:
        return None

    if isinstance(v, str):
        v = v.strip()
        if v == "" or v.lower() in {"none", "null"}:
            return None

    return v


class Topology(str, Enum):
    FANOUT = "fanout"
    DIRECT = "direct"
    TOPIC = "topic"
    HEADERS = "headers"
    # Work queue: no exchange, published through the default exchange.
    QUEUE = "queue"

    @property
    def is_exchange(self) -> bool:
        return self is not Topology.QUEUE

    @property
    def exchange_type(self) -> ExchangeType:
        if not self.is_exchange:
            raise ValueError("A work queue has no exchange type.")
        return ExchangeType(self.value)

    @property
    def requires_routing_key(self) -> bool:
        return self in (Topology.DIRECT, Topology.TOPIC)


class RabbitmqClient(BaseModel):
    host: str = Field(default="localhost", description="The RabbitMQ host")
    port: int = Field(default=5672, description="The RabbitMQ port")
    username: str = Field(default="guest", description="The RabbitMQ username")
    password: str = Field(default="guest", description="The RabbitMQ password")
    virtual_host: str = Field(default="/", description="The RabbitMQ vhost")
    connection_attempts: int = Field(default=3, ge=1, description="The RabbitMQ connection retry attempts")
    socket_timeout: Optional[float] = Field(default=10.0, description="Socket timeout in seconds")
    heartbeat: Optional[int] = Field(default=600, description="Heartbeat interval in seconds")
    blocked_connection_timeout: Optional[float] = Field(
        default=None, description="Timeout when connection is blocked by the broker"
    )
    prefetch_count: int = Field(default=1, ge=0, description="Unacknowledged deliveries per work queue consumer")
    poll_interval: float = Field(default=0.5, gt=0, description="Seconds a consumer blocks waiting for deliveries")

    @field_validator(
        "port",
        "connection_attempts",
        "socket_timeout",
        "heartbeat",
        "blocked_connection_timeout",
        "prefetch_count",
        "poll_interval",
        mode="before",
    )
    @classmethod
    def _normalize_numbers(cls, v):
        return _normalize_optional(v)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "RabbitmqClient":
        """
        Build the client settings from RABBITMQ_* environment variables.
        Unset or empty variables keep the field default.
        """
        load_env(env_file)

        mapping = {
            "host": "RABBITMQ_HOST",
            "port": "RABBITMQ_PORT",
            "username": "RABBITMQ_USER",
            "password": "RABBITMQ_PASSWORD",
            "virtual_host": "RABBITMQ_VHOST",
            "heartbeat": "RABBITMQ_HEARTBEAT",
            "prefetch_count": "RABBITMQ_PREFETCH",
            "poll_interval": "RABBITMQ_POLL_INTERVAL",
        }
        values = {}
        for field, var in mapping.items():
            raw = _normalize_optional(os.environ.get(var))
            if raw is not None:
                values[field] = raw
        return cls(**values)


class RoutingDefaults(BaseModel):
    """
    Fallbacks used when a caller leaves out a routing key, a binding or a consumer id.
    """

    direct_routing_key: str = "info"
    topic_routing_key: str = "general.info"
    direct_binding_key: str = "info"
    topic_binding_pattern: str = "#"
    consumer_prefixes: Dict[Topology, str] = Field(
        default_factory=lambda: {
            Topology.FANOUT: "subscriber_",
            Topology.DIRECT: "direct_subscriber_",
            Topology.TOPIC: "topic_subscriber_",
            Topology.HEADERS: "headers_subscriber_",
            Topology.QUEUE: "worker_",
        }
    )

    def routing_key_for(self, topology: Topology) -> Optional[str]:
        if topology is Topology.DIRECT:
            return self.direct_routing_key
        if topology is Topology.TOPIC:
            return self.topic_routing_key
        return None


class Exchange(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    topology: Topology
    durable: bool = True


class Queue(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    durable: bool = False
    exclusive: bool = False
    auto_delete: bool = False

    @classmethod
    def for_consumer(cls, exchange: str, consumer_id: str) -> "Queue":
        # Same id on the same exchange means the same queue: consumers then compete instead of each
        # receiving a copy.
        return cls(name=f"{exchange}.{consumer_id}", durable=False, exclusive=False, auto_delete=True)

    @classmethod
    def work(cls, name: str) -> "Queue":
        return cls(name=name, durable=True, exclusive=False, auto_delete=False)


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    body: bytes = Field(description="Opaque payload")
    routing_key: Optional[str] = Field(default=None, description="Used by direct and topic exchanges")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Used by headers exchanges")
    persistent: bool = Field(default=True, description="Survives a broker restart on durable queues")

    @field_validator("body", mode="before")
    @classmethod
    def _encode_body(cls, v):
        if isinstance(v, str):
            return v.encode("utf-8")
        if isinstance(v, (bytearray, memoryview)):
            return bytes(v)
        return v


class Delivery(BaseModel):
    model_config = ConfigDict(frozen=True)

    body: bytes
    delivery_tag: int
    routing_key: Optional[str] = None
    attributes: Dict[str, Any] = Field(default_factory=dict)
    exchange: str = ""
    redelivered: bool = False


class PublishResult(BaseModel):
    ok: bool
    topology: Topology
    target: str
    routing_key: Optional[str] = None
    attributes: Dict[str, Any] = Field(default_factory=dict)
    size: int = 0
    error: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
