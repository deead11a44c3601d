import json
import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Optional
import pika
from roomsplit.core.config import settings

logger = logging.getLogger(__name__)


def create_connection() -> pika.BlockingConnection:
    credentials = pika.PlainCredentials(settings.RABBITMQ_USER, settings.RABBITMQ_PASSWORD)
    parameters = pika.ConnectionParameters(
        host=settings.RABBITMQ_HOST,
        port=settings.RABBITMQ_PORT,
        virtual_host=settings.RABBITMQ_VHOST,
        credentials=credentials,
    )
    return pika.BlockingConnection(parameters)


class RabbitMQProducer:
    """Publishes reminder messages for the notification service"""

    def __init__(self, connection_factory: Callable[[], pika.BlockingConnection] = create_connection):
        self.connection_factory = connection_factory
        self.connection: Optional[pika.BlockingConnection] = None
        self.channel = None
        # BlockingConnection is not thread-safe; reminders are sent from a pool
        self._lock = threading.Lock()

    def connect(self) -> None:
        """Establish connection to RabbitMQ"""
        try:
            self.connection = self.connection_factory()
            self.channel = self.connection.channel()
            self.channel.exchange_declare(
                exchange=settings.RABBITMQ_REMINDER_EXCHANGE,
                exchange_type="topic",
                durable=True,
            )
            logger.info("RabbitMQ producer connected successfully")
        except Exception as e:
            logger.error(f"Failed to connect RabbitMQ producer: {e}")
            raise

    def disconnect(self) -> None:
        """Close RabbitMQ connection"""
        if self.channel and not self.channel.is_closed:
            self.channel.close()
        if self.connection and not self.connection.is_closed:
            self.connection.close()
        logger.info("RabbitMQ producer disconnected")

    def publish_expense_reminder(self, expense_id: str, user_id: str) -> bool:
        """
        Publish a reminder that ``user_id`` still owes a share of ``expense_id``

        Returns:
            bool: True if message published successfully, False otherwise
        """
        message_data = {
            "type": "expense_reminder",
            "expense_id": expense_id,
            "user_id": user_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        try:
            with self._lock:
                if not self.connection or self.connection.is_closed:
                    self.connect()

                self.channel.basic_publish(
                    exchange=settings.RABBITMQ_REMINDER_EXCHANGE,
                    routing_key=settings.RABBITMQ_REMINDER_ROUTING_KEY,
                    body=json.dumps(message_data),
                    properties=pika.BasicProperties(
                        delivery_mode=2,  # Make message persistent
                        content_type='application/json',
                    ),
                )

            logger.info(f"Published reminder for expense {expense_id} to {user_id}")
            return True

        except Exception as e:
            logger.error(f"Failed to publish reminder for expense {expense_id}: {e}")
            return False


# Global producer instance
_rabbitmq_producer: Optional[RabbitMQProducer] = None


def get_rabbitmq_producer() -> RabbitMQProducer:
    """Get or create RabbitMQ producer instance"""
    global _rabbitmq_producer
    if _rabbitmq_producer is None:
        # Connects on first publish
        _rabbitmq_producer = RabbitMQProducer()
    return _rabbitmq_producer


def close_rabbitmq_producer() -> None:
    """Close RabbitMQ producer connection"""
    global _rabbitmq_producer
    if _rabbitmq_producer:
        _rabbitmq_producer.disconnect()
        _rabbitmq_producer = None
