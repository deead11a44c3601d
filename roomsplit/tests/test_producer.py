"""
Unit tests for the reminder queue producer.
"""
import json
import pytest
from unittest.mock import MagicMock

from roomsplit.core.config import settings
from roomsplit.rabbitmq.producer import RabbitMQProducer


@pytest.fixture
def connection():
    connection = MagicMock()
    connection.is_closed = False
    connection.channel.return_value.is_closed = False
    return connection


@pytest.mark.unit
class TestRabbitMQProducer:

    def test_connects_lazily_and_declares_exchange(self, connection):
        factory = MagicMock(return_value=connection)
        producer = RabbitMQProducer(factory)
        factory.assert_not_called()

        assert producer.publish_expense_reminder("e1", "u2") is True

        factory.assert_called_once()
        connection.channel.return_value.exchange_declare.assert_called_once_with(
            exchange=settings.RABBITMQ_REMINDER_EXCHANGE, exchange_type="topic", durable=True
        )

    def test_message_body(self, connection):
        producer = RabbitMQProducer(lambda: connection)

        producer.publish_expense_reminder("e1", "u2")

        kwargs = connection.channel.return_value.basic_publish.call_args[1]
        assert kwargs["routing_key"] == settings.RABBITMQ_REMINDER_ROUTING_KEY
        body = json.loads(kwargs["body"])
        assert body["type"] == "expense_reminder"
        assert body["expense_id"] == "e1"
        assert body["user_id"] == "u2"
        assert kwargs["properties"].delivery_mode == 2

    def test_reuses_open_connection(self, connection):
        factory = MagicMock(return_value=connection)
        producer = RabbitMQProducer(factory)

        producer.publish_expense_reminder("e1", "u1")
        producer.publish_expense_reminder("e1", "u2")

        factory.assert_called_once()

    def test_publish_failure_returns_false(self, connection):
        connection.channel.return_value.basic_publish.side_effect = RuntimeError("channel closed")
        producer = RabbitMQProducer(lambda: connection)

        assert producer.publish_expense_reminder("e1", "u2") is False

    def test_unreachable_broker_returns_false(self):
        def refuse():
            raise ConnectionError("broker down")

        assert RabbitMQProducer(refuse).publish_expense_reminder("e1", "u2") is False

    def test_disconnect(self, connection):
        producer = RabbitMQProducer(lambda: connection)
        producer.connect()

        producer.disconnect()

        connection.channel.return_value.close.assert_called_once()
        connection.close.assert_called_once()
