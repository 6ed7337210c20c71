import logging
import queue
import threading
from typing import Any, Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class NotificationDispatcher(Protocol):
    def notify(self, user_id: str, title: str, body: str, data: Dict[str, Any]) -> None: ...


class LoggingNotificationDispatcher:
    """Used when messaging is disabled: notifications are only logged"""

    def notify(self, user_id: str, title: str, body: str, data: Dict[str, Any]) -> None:
        logger.info(f"Notification for {user_id}: {title} - {body}")


class RabbitMQNotificationDispatcher:
    """
    Best-effort notification delivery through RabbitMQ.

    notify() only enqueues; a daemon worker thread publishes, so a slow or
    unavailable broker never delays a ledger write. Publishing failures are
    logged and dropped.
    """

    def __init__(self, producer_factory=None, max_queue_size: int = 1000):
        if producer_factory is None:
            from app.rabbitmq.producer import get_rabbitmq_producer
            producer_factory = get_rabbitmq_producer
        self._producer_factory = producer_factory
        self._queue: "queue.Queue[Optional[Dict[str, Any]]]" = queue.Queue(maxsize=max_queue_size)
        self._worker: Optional[threading.Thread] = None
        self.is_running = False

    def start(self):
        if self.is_running:
            logger.warning("Notification worker is already running")
            return
        self.is_running = True
        self._worker = threading.Thread(target=self._run, daemon=True, name="Notification-Publisher")
        self._worker.start()
        logger.info("Notification worker started")

    def stop(self):
        if not self.is_running:
            return
        self.is_running = False
        self._queue.put(None)
        if self._worker and self._worker.is_alive():
            self._worker.join(timeout=5)
            if self._worker.is_alive():
                logger.warning("Notification worker did not stop gracefully")
        logger.info("Notification worker stopped")

    def notify(self, user_id: str, title: str, body: str, data: Dict[str, Any]) -> None:
        try:
            self._queue.put_nowait({"user_id": user_id, "title": title, "body": body, "data": data})
        except queue.Full:
            logger.error(f"Notification queue full, dropping notification for {user_id}")

    def _run(self):
        while True:
            message = self._queue.get()
            if message is None:
                break
            try:
                producer = self._producer_factory()
                if not producer.publish_notification(**message):
                    logger.error(f"Notification for {message['user_id']} was not published")
            except Exception as e:
                logger.error(f"Error publishing notification for {message['user_id']}: {e}")
        logger.info("Notification worker finished")


# Global dispatcher instance
_notification_dispatcher = None


def get_notification_dispatcher():
    """Get or create the dispatcher matching the messaging settings"""
    global _notification_dispatcher
    if _notification_dispatcher is None:
        from app.core.config import get_settings
        if get_settings().rabbitmq_enabled:
            _notification_dispatcher = RabbitMQNotificationDispatcher()
        else:
            _notification_dispatcher = LoggingNotificationDispatcher()
    return _notification_dispatcher
