import json
import logging
from typing import Any, Callable, Dict, Optional
import pika
from .setup import RabbitMQSetup

logger = logging.getLogger(__name__)

MessageHandler = Callable[[Dict[str, Any]], bool]


class RabbitMQConsumer:
    """Blocking consumer for inbound messages"""

    def __init__(self):
        self.connection: Optional[pika.BlockingConnection] = None
        self.channel = None
        self.setup = RabbitMQSetup()

    def connect(self) -> None:
        if self.connection and not self.connection.is_closed:
            return
        self.connection = self.setup.create_connection()
        self.channel = self.connection.channel()
        self.channel.basic_qos(prefetch_count=1)
        logger.info("RabbitMQ consumer connected successfully")

    def setup_consumer(self, queue: str, callback) -> None:
        """Register a pika callback on the queue"""
        self.connect()
        self.channel.basic_consume(queue=queue, on_message_callback=callback)
        logger.info(f"Consumer registered on queue {queue}")

    def start_consuming(self) -> None:
        self.connect()
        self.channel.start_consuming()

    def stop_consuming(self) -> None:
        if self.channel and self.channel.is_open:
            self.connection.add_callback_threadsafe(self.channel.stop_consuming)

    def disconnect(self) -> None:
        if self.connection and not self.connection.is_closed:
            self.connection.close()
        logger.info("RabbitMQ consumer disconnected")


def create_json_callback(handler: MessageHandler):
    """
    Wrap a handler taking the decoded JSON body into a pika callback.

    Messages the handler accepts are acked; rejected or undecodable messages
    are nacked without requeue so a poison message cannot loop forever.
    """
    def callback(channel, method, properties, body):
        try:
            message_data = json.loads(body)
        except (TypeError, ValueError) as e:
            logger.error(f"Discarding undecodable message: {e}")
            channel.basic_nack(delivery_tag=method.delivery_tag, requeue=False)
            return

        try:
            accepted = handler(message_data)
        except Exception as e:
            logger.error(f"Handler failed for message {message_data}: {e}")
            accepted = False

        if accepted:
            channel.basic_ack(delivery_tag=method.delivery_tag)
        else:
            channel.basic_nack(delivery_tag=method.delivery_tag, requeue=False)

    return callback


# Global consumer instance
_rabbitmq_consumer: Optional[RabbitMQConsumer] = None


def get_rabbitmq_consumer() -> RabbitMQConsumer:
    """Get or create RabbitMQ consumer instance"""
    global _rabbitmq_consumer
    if _rabbitmq_consumer is None:
        _rabbitmq_consumer = RabbitMQConsumer()
    return _rabbitmq_consumer
