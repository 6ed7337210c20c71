import json
import logging
from datetime import datetime, timezone
from typing import Dict, Any, Optional
import pika
from app.core.config import get_settings
from .setup import RabbitMQSetup

logger = logging.getLogger(__name__)


class RabbitMQProducer:
    """Handles publishing messages to RabbitMQ"""

    def __init__(self):
        self.connection: Optional[pika.BlockingConnection] = None
        self.channel = None
        self.setup = RabbitMQSetup()
        self.settings = get_settings()

    def connect(self) -> None:
        """Establish connection to RabbitMQ"""
        try:
            self.connection = self.setup.create_connection()
            self.channel = self.connection.channel()
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

    def publish_notification(self, user_id: str, title: str, body: str, data: Dict[str, Any]) -> bool:
        """
        Publish a push notification request for one user

        Args:
            user_id: Recipient
            title: Notification title
            body: Notification body
            data: Extra payload (transaction id, group id, amount, currency)

        Returns:
            bool: True if message published successfully, False otherwise
        """
        if not self.connection or self.connection.is_closed:
            self.connect()

        try:
            message_data = {
                "user_id": user_id,
                "title": title,
                "body": body,
                "data": data,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }

            self.channel.basic_publish(
                exchange=self.settings.notification_exchange,
                routing_key=self.settings.notification_routing_key,
                body=json.dumps(message_data, default=str),
                properties=pika.BasicProperties(
                    delivery_mode=2,  # Make message persistent
                    content_type='application/json',
                ),
            )

            logger.info(f"Published notification for user {user_id}: {title}")
            return True

        except Exception as e:
            logger.error(f"Failed to publish notification for user {user_id}: {e}")
            return False


# Global producer instance
_rabbitmq_producer: Optional[RabbitMQProducer] = None


def get_rabbitmq_producer() -> RabbitMQProducer:
    """Get or create RabbitMQ producer instance"""
    global _rabbitmq_producer
    if _rabbitmq_producer is None:
        _rabbitmq_producer = RabbitMQProducer()
        _rabbitmq_producer.connect()
    return _rabbitmq_producer


def close_rabbitmq_producer() -> None:
    """Close RabbitMQ producer connection"""
    global _rabbitmq_producer
    if _rabbitmq_producer:
        _rabbitmq_producer.disconnect()
        _rabbitmq_producer = None
