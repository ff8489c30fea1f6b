"""
Outbound domain events
Core mutations only publish here; delivery happens later in the dispatcher, so a slow or
broken automation endpoint can never fail or delay a user-facing write.
"""
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional
from uuid import uuid4

logger = logging.getLogger(__name__)


def _utc_timestamp() -> str:
    return datetime.utcnow().isoformat() + "Z"


@dataclass
class OutboundEvent:
    event: str
    data: Dict[str, Any]
    user_id: Optional[str] = None
    user_email: Optional[str] = None
    timestamp: str = field(default_factory=_utc_timestamp)
    id: str = field(default_factory=lambda: str(uuid4()))
    # Target names still owed a delivery; None means "every target for this event"
    targets: Optional[List[str]] = None
    attempts: int = 0
    last_error: Optional[str] = None
    # Set when re-queued after a failure; drains leave the event alone until then
    not_before: Optional[datetime] = None

    def is_due(self, now: Optional[datetime] = None) -> bool:
        return self.not_before is None or self.not_before <= (now or datetime.utcnow())

    def payload(self) -> Dict[str, Any]:
        return {
            "event": self.event,
            "data": {
                **(self.data or {}),
                "user_id": self.user_id,
                "user_email": self.user_email,
            },
            "timestamp": self.timestamp,
            "source": "crystal_ai",
        }


class EventQueue:
    """Thread-safe FIFO shared by request handlers and the retry scheduler"""

    def __init__(self, max_size: int = 1000):
        self._items: Deque[OutboundEvent] = deque()
        self._lock = threading.Lock()
        self.max_size = max_size

    def put(self, event: OutboundEvent) -> None:
        with self._lock:
            if len(self._items) >= self.max_size:
                dropped = self._items.popleft()
                logger.warning(f"Event queue full, dropping oldest event {dropped.event} ({dropped.id})")
            self._items.append(event)

    def pop_batch(self, limit: int = 50) -> List[OutboundEvent]:
        with self._lock:
            batch = []
            while self._items and len(batch) < limit:
                batch.append(self._items.popleft())
            return batch

    def pending(self) -> int:
        with self._lock:
            return len(self._items)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()


event_queue = EventQueue()


def publish_event(
    event: str,
    data: Dict[str, Any],
    user_id: Optional[str] = None,
    user_email: Optional[str] = None,
) -> OutboundEvent:
    """Record a domain event for asynchronous fan-out"""
    outbound = OutboundEvent(event=event, data=data, user_id=user_id, user_email=user_email)
    event_queue.put(outbound)
    logger.debug(f"Published event {event} ({outbound.id})")
    return outbound
