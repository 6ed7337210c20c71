import logging
import pika
from app.core.config import get_settings

logger = logging.getLogger(__name__)


class RabbitMQSetup:
    """Connection factory and topology declaration for the service's exchanges"""

    def __init__(self, settings=None):
        self.settings = settings or get_settings()

    def create_connection(self) -> pika.BlockingConnection:
        """Open a blocking connection with the configured credentials"""
        credentials = pika.PlainCredentials(self.settings.rabbitmq_user, self.settings.rabbitmq_password)
        parameters = pika.ConnectionParameters(
            host=self.settings.rabbitmq_host,
            port=self.settings.rabbitmq_port,
            virtual_host=self.settings.rabbitmq_vhost,
            credentials=credentials,
            heartbeat=600,
            blocked_connection_timeout=300,
        )
        return pika.BlockingConnection(parameters)

    def declare_topology(self, channel) -> None:
        """Declare the notification exchange and the user profile queue binding"""
        channel.exchange_declare(exchange=self.settings.notification_exchange, exchange_type="topic", durable=True)
        channel.exchange_declare(exchange=self.settings.user_profile_exchange, exchange_type="topic", durable=True)
        channel.queue_declare(queue=self.settings.user_profile_queue, durable=True)
        channel.queue_bind(
            queue=self.settings.user_profile_queue,
            exchange=self.settings.user_profile_exchange,
            routing_key=self.settings.user_profile_routing_key,
        )
        logger.info("RabbitMQ topology declared")


def init_rabbitmq() -> None:
    """Declare exchanges and queues once at startup"""
    setup = RabbitMQSetup()
    connection = setup.create_connection()
    try:
        setup.declare_topology(connection.channel())
    finally:
        connection.close()
