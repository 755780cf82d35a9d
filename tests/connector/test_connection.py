"""Tests for courier.connector.rabbitmq.connection: one connection per operation, always released."""

import pytest
from pika import exceptions as pika_exceptions

from courier.connector.rabbitmq.connection import ConnectionManager
from courier.exceptions import BrokerConnectionError, ChannelError, TopologyConflict


class TestOpen:
    def test_parameters_from_client(self, mock_connections):
        params = mock_connections.parameters()
        assert params.host == "broker.test"
        assert params.port == 5672
        assert params.virtual_host == "/"

    def test_connection_is_lazy(self, mock_connections):
        mock_connections.factory_mock.assert_not_called()
        with mock_connections.open():
            mock_connections.factory_mock.assert_called_once()

    def test_yields_connection_and_channel(self, mock_connections, mock_connection, mock_channel):
        with mock_connections.open() as session:
            assert session.connection is mock_connection
            assert session.channel is mock_channel

    def test_closes_on_success(self, mock_connections, mock_connection):
        with mock_connections.open():
            pass
        mock_connection.close.assert_called_once()

    def test_closes_on_error(self, mock_connections, mock_connection):
        with pytest.raises(RuntimeError):
            with mock_connections.open():
                raise RuntimeError("publish failed")
        mock_connection.close.assert_called_once()

    def test_does_not_close_twice(self, mock_connections, mock_connection):
        mock_connection.is_open = False
        with mock_connections.open():
            pass
        mock_connection.close.assert_not_called()

    def test_each_operation_gets_its_own_connection(self, connections, broker):
        with connections.open() as first:
            pass
        with connections.open() as second:
            pass
        assert first.connection is not second.connection
        assert len(broker.connections) == 2
        assert broker.open_connections() == 0


class TestErrorTranslation:
    def test_unreachable_broker(self, connections, broker):
        broker.refuse_connections = True
        with pytest.raises(BrokerConnectionError) as exc_info:
            with connections.open():
                pass
        assert "broker.test" in str(exc_info.value)
        assert isinstance(exc_info.value, ConnectionError)

    def test_connection_lost_inside_block(self, mock_connections, mock_connection):
        with pytest.raises(BrokerConnectionError):
            with mock_connections.open():
                raise pika_exceptions.StreamLostError("Transport indicated EOF")
        mock_connection.close.assert_called_once()

    def test_channel_closed_by_broker(self, mock_connections):
        with pytest.raises(ChannelError) as exc_info:
            with mock_connections.open():
                raise pika_exceptions.ChannelClosedByBroker(404, "NOT_FOUND - no queue 'missing'")
        assert exc_info.value.reply_code == 404

    def test_courier_errors_pass_through(self, mock_connections):
        with pytest.raises(TopologyConflict):
            with mock_connections.open():
                raise TopologyConflict("ex", "topic")

    def test_channel_open_failure_closes_connection(self, client, mock_connection):
        mock_connection.channel.side_effect = pika_exceptions.ConnectionClosedByBroker(320, "CONNECTION_FORCED")
        manager = ConnectionManager(client, connection_factory=lambda params: mock_connection)
        with pytest.raises(BrokerConnectionError):
            with manager.open():
                pass
        mock_connection.close.assert_called_once()

    def test_close_failure_does_not_mask_error(self, mock_connections, mock_connection):
        mock_connection.close.side_effect = pika_exceptions.ConnectionWrongStateError("already closed")
        with pytest.raises(RuntimeError):
            with mock_connections.open():
                raise RuntimeError("publish failed")
