"""
Per-user change feed for subscription rows.

Every write to a user's subscription calls `notify`; listeners on the SSE endpoint get a
`subscription_changed` notification and refetch the row themselves.
"""
import asyncio
import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import AsyncIterator, Dict, List

logger = logging.getLogger(__name__)

HEARTBEAT_SECONDS = 15


@dataclass(eq=False)
class Listener:
    # Writes may happen in a worker thread; events are handed back to the listener's loop
    loop: asyncio.AbstractEventLoop
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)


class SubscriptionFeed:
    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = {}
        self._lock = threading.Lock()

    def subscribe(self, user_id: str) -> Listener:
        listener = Listener(loop=asyncio.get_running_loop())
        with self._lock:
            self._listeners.setdefault(user_id, []).append(listener)
        return listener

    def unsubscribe(self, user_id: str, listener: Listener) -> None:
        with self._lock:
            listeners = self._listeners.get(user_id)
            if listeners is None:
                return
            if listener in listeners:
                listeners.remove(listener)
            if not listeners:
                del self._listeners[user_id]

    def listener_count(self, user_id: str) -> int:
        with self._lock:
            return len(self._listeners.get(user_id, ()))

    def notify(self, user_id: str, change: str) -> int:
        """Push a change notification to every listener of `user_id`; returns how many were notified"""
        event = {"type": "subscription_changed", "change": change, "timestamp": datetime.utcnow().isoformat() + "Z"}
        with self._lock:
            listeners = list(self._listeners.get(user_id, ()))

        try:
            current_loop = asyncio.get_running_loop()
        except RuntimeError:
            current_loop = None

        for listener in listeners:
            if listener.loop is current_loop:
                listener.queue.put_nowait(event)
            else:
                listener.loop.call_soon_threadsafe(listener.queue.put_nowait, event)

        if listeners:
            logger.info(f"Subscription change '{change}' pushed to {len(listeners)} listener(s) of {user_id}")
        return len(listeners)

    async def stream(self, user_id: str, heartbeat: float = HEARTBEAT_SECONDS) -> AsyncIterator[str]:
        """Server-Sent Events body for one listener"""
        listener = self.subscribe(user_id)
        try:
            yield "event: ready\ndata: {}\n\n"
            while True:
                try:
                    event = await asyncio.wait_for(listener.queue.get(), timeout=heartbeat)
                except asyncio.TimeoutError:
                    yield ": keep-alive\n\n"
                    continue
                yield f"event: {event['type']}\ndata: {json.dumps(event)}\n\n"
        finally:
            self.unsubscribe(user_id, listener)


subscription_feed = SubscriptionFeed()
