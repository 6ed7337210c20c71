import logging
import threading
import time
from typing import Any, Dict, Optional
from app.core.config import get_settings
from app.rabbitmq.consumer import get_rabbitmq_consumer, create_json_callback

logger = logging.getLogger(__name__)

RECONNECT_DELAY_SECONDS = 5


def _handle_user_profile_message(message_data: Dict[str, Any]) -> bool:
    """Store a profile event in its own session"""
    from app.db.database import SessionLocal
    from app.services.user_service import handle_user_profile_event

    db = SessionLocal()
    try:
        return handle_user_profile_event(db, message_data)
    finally:
        db.close()


class ProfileFeedConsumer:
    """
    Keeps the local user_profiles table in sync with the user service.

    Consumes profile events on a daemon thread and reconnects after broker
    failures until stopped.
    """

    def __init__(self, consumer=None):
        self.consumer = consumer or get_rabbitmq_consumer()
        self.thread: Optional[threading.Thread] = None
        self.is_running = False

    def start(self):
        if self.is_running:
            logger.warning("Profile feed consumer is already running")
            return

        self.is_running = True
        self.thread = threading.Thread(target=self._consume_forever, daemon=True, name="Profile-Feed-Consumer")
        self.thread.start()
        logger.info("Profile feed consumer started")

    def stop(self):
        if not self.is_running:
            return

        self.is_running = False
        self.consumer.stop_consuming()
        if self.thread and self.thread.is_alive():
            self.thread.join(timeout=5)
            if self.thread.is_alive():
                logger.warning("Profile feed thread did not stop gracefully")
        self.consumer.disconnect()
        logger.info("Profile feed consumer stopped")

    def _consume_forever(self):
        queue = get_settings().user_profile_queue
        try:
            while self.is_running:
                try:
                    self.consumer.setup_consumer(queue, create_json_callback(_handle_user_profile_message))
                    self.consumer.start_consuming()
                except Exception as e:
                    if not self.is_running:
                        break
                    logger.error(f"Profile feed interrupted, reconnecting in {RECONNECT_DELAY_SECONDS}s: {e}")
                    self.consumer.disconnect()
                    time.sleep(RECONNECT_DELAY_SECONDS)
        finally:
            self.is_running = False
            logger.info("Profile feed thread finished")


_profile_feed_consumer: Optional[ProfileFeedConsumer] = None


def get_profile_feed_consumer() -> ProfileFeedConsumer:
    global _profile_feed_consumer
    if _profile_feed_consumer is None:
        _profile_feed_consumer = ProfileFeedConsumer()
    return _profile_feed_consumer


def start_background_consumer():
    """Start consuming user profile events"""
    get_profile_feed_consumer().start()


def stop_background_consumer():
    get_profile_feed_consumer().stop()
