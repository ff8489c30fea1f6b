"""
Webhook dispatcher
Delivers queued OutboundEvents to every matching target concurrently and re-queues an event
for the targets that failed, until the attempt limit is reached.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import httpx

from shared_utils.http_client import OutboundClient
from .config import WebhookTarget, targets_for_event, get_timeout, get_max_attempts, get_retry_interval
from .events import EventQueue, OutboundEvent, event_queue

logger = logging.getLogger(__name__)

SOURCE_HEADER = "crystal-ai-webhook-handler"


class WebhookDispatcher:
    """Fan-out of domain events to the automation platform"""

    def __init__(self, queue: EventQueue, client: Optional[OutboundClient] = None):
        self.queue = queue
        self.client = client or OutboundClient(timeout=get_timeout())

    async def _deliver_one(self, target: WebhookTarget, event: OutboundEvent) -> Dict[str, Any]:
        headers = {
            "X-Crystal-Event": event.event,
            "X-Crystal-Source": SOURCE_HEADER,
        }
        try:
            response = await self.client.post(
                target.url, event.payload(), headers=headers, timeout=get_timeout()
            )
            return {
                "config": target.name,
                "success": response.is_success,
                "status": response.status_code,
                "url": target.url,
            }
        except httpx.HTTPError as e:
            return {
                "config": target.name,
                "success": False,
                "status": "error",
                "url": target.url,
                "error": str(e),
            }

    async def fan_out(self, event: OutboundEvent) -> List[Dict[str, Any]]:
        """
        Deliver one event to its targets

        Targets that fail are remembered on the event and the event goes back on the queue
        while attempts remain. An event with no configured target is simply consumed.

        Returns:
            one result dict per attempted target
        """
        targets = targets_for_event(event.event)
        if event.targets is not None:
            targets = [t for t in targets if t.name in event.targets]

        if not targets:
            logger.debug(f"No webhook target configured for {event.event}")
            return []

        event.attempts += 1
        results = await asyncio.gather(*(self._deliver_one(t, event) for t in targets))

        failed = [r for r in results if not r["success"]]
        if failed:
            event.targets = [r["config"] for r in failed]
            event.last_error = failed[0].get("error") or f"HTTP {failed[0]['status']}"
            if event.attempts < get_max_attempts():
                event.not_before = datetime.utcnow() + timedelta(seconds=get_retry_interval())
                logger.warning(
                    f"Webhook {event.event} ({event.id}) failed for {event.targets}, "
                    f"attempt {event.attempts}; re-queued until {event.not_before.isoformat()}"
                )
                self.queue.put(event)
            else:
                logger.error(
                    f"Webhook {event.event} ({event.id}) gave up after {event.attempts} attempts: "
                    f"{event.last_error}"
                )
        else:
            logger.info(f"Webhook {event.event} ({event.id}) delivered to {len(results)} target(s)")

        return list(results)

    async def drain(self, limit: int = 50) -> Dict[str, int]:
        """Process up to `limit` queued events; events still backing off go back on the queue"""
        now = datetime.utcnow()
        batch = []
        for event in self.queue.pop_batch(limit):
            if event.is_due(now):
                batch.append(event)
            else:
                self.queue.put(event)
        summary = {"events": len(batch), "deliveries": 0, "failed": 0}
        for event in batch:
            try:
                results = await self.fan_out(event)
            except Exception as e:
                logger.error(f"Unexpected error dispatching {event.event} ({event.id}): {str(e)}")
                continue
            summary["deliveries"] += len(results)
            summary["failed"] += len([r for r in results if not r["success"]])
        return summary

    def drain_sync(self, limit: int = 50) -> Dict[str, int]:
        """Entry point for worker threads that have no running event loop"""
        return asyncio.run(self.drain(limit))


dispatcher = WebhookDispatcher(event_queue)


def schedule_delivery(background_tasks) -> None:
    """Drain the queue once the current response has been sent"""
    background_tasks.add_task(dispatcher.drain)
