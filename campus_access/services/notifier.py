# =======================================================================================
# campus_access/services/notifier.py - Real-time Event Broadcast
# =======================================================================================
import asyncio
import logging
import threading
from typing import Any, Callable, Dict

from fastapi.encoders import jsonable_encoder

from ..models.schemas import Notification
from ..utils.clock import utcnow

logger = logging.getLogger(__name__)

Subscriber = Callable[[Dict[str, Any]], None]


class EventNotifier:
    """
    Process-wide broadcast channel for scan decisions and desk results.

    Publishing never raises: a failing subscriber is logged and skipped.
    """

    def __init__(self):
        self._subscribers: Dict[int, Subscriber] = {}
        self._lock = threading.Lock()
        self._next_token = 0

    def subscribe(self, callback: Subscriber) -> int:
        """Register a callback; returns the token used to unsubscribe."""
        with self._lock:
            self._next_token += 1
            token = self._next_token
            self._subscribers[token] = callback
        logger.debug("Subscriber %s attached (%s total)", token, len(self._subscribers))
        return token

    def unsubscribe(self, token: int) -> None:
        with self._lock:
            self._subscribers.pop(token, None)
        logger.debug("Subscriber %s detached", token)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event_type: str, payload: Any) -> Dict[str, Any]:
        """Build the {type, payload, timestamp} envelope and hand it to every subscriber."""
        message = Notification(
            type=str(getattr(event_type, "value", event_type)),
            payload=jsonable_encoder(payload),
            timestamp=utcnow(),
        ).model_dump(mode="json")
        with self._lock:
            subscribers = list(self._subscribers.items())

        for token, callback in subscribers:
            try:
                callback(message)
            except Exception:
                logger.exception("Subscriber %s failed on %s", token, message["type"])
        return message

    def queue_subscriber(
        self, loop: asyncio.AbstractEventLoop, queue: "asyncio.Queue[Dict[str, Any]]"
    ) -> int:
        """
        Subscribe an asyncio queue; events may be published from any thread.
        A bounded queue that is full drops the event instead of blocking.
        """

        def _offer(message: Dict[str, Any]) -> None:
            try:
                queue.put_nowait(message)
            except asyncio.QueueFull:
                logger.warning("Subscriber queue full, dropping %s", message["type"])

        def _push(message: Dict[str, Any]) -> None:
            loop.call_soon_threadsafe(_offer, message)

        return self.subscribe(_push)


# Global notifier instance
notifier = EventNotifier()
