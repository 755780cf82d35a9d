"""Tests for courier.connector.rabbitmq.models: settings, topology and message models."""

import pytest
from pika.exchange_type import ExchangeType
from pydantic import ValidationError

from courier.connector.rabbitmq.models import (
    Message,
    PublishResult,
    Queue,
    RabbitmqClient,
    RoutingDefaults,
    Topology,
)
from courier.utils import env


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in (
        "ENV_FILE",
        "RABBITMQ_HOST",
        "RABBITMQ_PORT",
        "RABBITMQ_USER",
        "RABBITMQ_PASSWORD",
        "RABBITMQ_VHOST",
        "RABBITMQ_HEARTBEAT",
        "RABBITMQ_PREFETCH",
        "RABBITMQ_POLL_INTERVAL",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(env, "ENV_LOADED", False)


class TestRabbitmqClient:
    def test_defaults(self):
        client = RabbitmqClient.from_env()
        assert client.host == "localhost"
        assert client.port == 5672
        assert client.virtual_host == "/"
        assert client.prefetch_count == 1

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("RABBITMQ_HOST", "rabbit.internal")
        monkeypatch.setenv("RABBITMQ_PORT", "5673")
        monkeypatch.setenv("RABBITMQ_PREFETCH", "4")
        client = RabbitmqClient.from_env()
        assert client.host == "rabbit.internal"
        assert client.port == 5673
        assert client.prefetch_count == 4

    def test_blank_values_keep_defaults(self, monkeypatch):
        monkeypatch.setenv("RABBITMQ_HOST", "  ")
        monkeypatch.setenv("RABBITMQ_HEARTBEAT", "none")
        client = RabbitmqClient.from_env()
        assert client.host == "localhost"
        assert client.heartbeat == 600

    def test_env_file(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env.test"
        env_file.write_text("RABBITMQ_HOST=from-file\nRABBITMQ_VHOST=demo\n", encoding="utf-8")
        monkeypatch.setenv("ENV_FILE", str(env_file))
        client = RabbitmqClient.from_env()
        assert client.host == "from-file"
        assert client.virtual_host == "demo"

    def test_process_environment_wins_over_env_file(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env.test"
        env_file.write_text("RABBITMQ_HOST=from-file\n", encoding="utf-8")
        monkeypatch.setenv("RABBITMQ_HOST", "from-process")
        client = RabbitmqClient.from_env(str(env_file))
        assert client.host == "from-process"

    def test_rejects_bad_port(self):
        with pytest.raises(ValidationError):
            RabbitmqClient(port="not-a-port")


class TestTopology:
    def test_exchange_types(self):
        assert Topology.FANOUT.exchange_type is ExchangeType.fanout
        assert Topology.HEADERS.exchange_type is ExchangeType.headers

    def test_queue_is_not_an_exchange(self):
        assert not Topology.QUEUE.is_exchange
        with pytest.raises(ValueError):
            Topology.QUEUE.exchange_type

    def test_routing_key_requirements(self):
        assert Topology.DIRECT.requires_routing_key
        assert Topology.TOPIC.requires_routing_key
        assert not Topology.FANOUT.requires_routing_key
        assert not Topology.HEADERS.requires_routing_key


class TestQueue:
    def test_consumer_queue(self):
        queue = Queue.for_consumer("demo_exchange", "subscriber_1")
        assert queue.name == "demo_exchange.subscriber_1"
        assert queue.auto_delete is True
        assert queue.exclusive is False
        assert queue.durable is False

    def test_same_consumer_id_same_queue(self):
        assert Queue.for_consumer("ex", "a") == Queue.for_consumer("ex", "a")

    def test_work_queue(self):
        queue = Queue.work("demo_queue")
        assert queue.durable is True
        assert queue.auto_delete is False


class TestMessage:
    def test_str_body_is_encoded(self):
        assert Message(body="héllo").body == "héllo".encode("utf-8")

    def test_bytes_body_untouched(self):
        payload = bytes(range(256))
        assert Message(body=payload).body == payload

    def test_always_persistent_by_default(self):
        assert Message(body=b"x").persistent is True


class TestRoutingDefaults:
    def test_routing_key_for(self):
        defaults = RoutingDefaults()
        assert defaults.routing_key_for(Topology.DIRECT) == "info"
        assert defaults.routing_key_for(Topology.TOPIC) == "general.info"
        assert defaults.routing_key_for(Topology.FANOUT) is None


def test_publish_result_to_dict():
    result = PublishResult(ok=True, topology=Topology.TOPIC, target="ex", routing_key="logs.error", size=3)
    assert result.to_dict() == {
        "ok": True,
        "topology": "topic",
        "target": "ex",
        "routing_key": "logs.error",
        "attributes": {},
        "size": 3,
        "error": None,
    }
