from unittest.mock import MagicMock

import pytest

from courier.connector.rabbitmq.connection import ConnectionManager
from courier.connector.rabbitmq.models import RabbitmqClient
from tests.mocks import FakeBroker


@pytest.fixture
def client():
    return RabbitmqClient(host="broker.test", poll_interval=0.05)


@pytest.fixture
def broker():
    return FakeBroker()


@pytest.fixture
def connections(client, broker):
    """ConnectionManager wired to the in-memory broker."""
    return ConnectionManager(client, connection_factory=broker.connect)


@pytest.fixture
def mock_connection():
    connection = MagicMock(name="BlockingConnection")
    connection.is_open = True
    connection.channel.return_value.is_open = True
    return connection


@pytest.fixture
def mock_channel(mock_connection):
    return mock_connection.channel.return_value


@pytest.fixture
def mock_connections(client, mock_connection):
    """ConnectionManager whose factory hands out a MagicMock connection."""
    factory = MagicMock(return_value=mock_connection)
    manager = ConnectionManager(client, connection_factory=factory)
    manager.factory_mock = factory
    return manager
