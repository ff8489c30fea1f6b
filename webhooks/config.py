"""
Webhook target table
Each category maps a set of event names to one automation-platform URL read from the
environment. URLs are read on every lookup so a restart is not needed after a .env change.
"""
import os
from dataclasses import dataclass, field
from typing import Dict, List

# category -> (env var holding the URL, events routed to it)
WEBHOOK_CATEGORIES: Dict[str, tuple] = {
    "crush_events": (
        "N8N_CRUSH_WEBHOOK_URL",
        ["crush_added", "crush_updated", "crush_deleted"],
    ),
    "conversation_events": (
        "N8N_CONVERSATION_WEBHOOK_URL",
        ["conversation_started", "conversation_ended", "message_sent"],
    ),
    "dashboard_events": (
        "N8N_DASHBOARD_WEBHOOK_URL",
        ["dashboard_viewed"],
    ),
    "analytics_events": (
        "N8N_ANALYTICS_WEBHOOK_URL",
        ["stage_changed", "insight_generated", "analytics_processed"],
    ),
    "payment_events": (
        "N8N_PAYMENT_WEBHOOK_URL",
        ["payment_processed"],
    ),
}


@dataclass
class WebhookTarget:
    name: str
    url: str
    events: List[str] = field(default_factory=list)
    active: bool = True

    def accepts(self, event: str) -> bool:
        return self.active and bool(self.url) and event in self.events


def load_webhook_targets() -> Dict[str, WebhookTarget]:
    return {
        name: WebhookTarget(name=name, url=os.getenv(env_var, ""), events=list(events))
        for name, (env_var, events) in WEBHOOK_CATEGORIES.items()
    }


def targets_for_event(event: str) -> List[WebhookTarget]:
    return [t for t in load_webhook_targets().values() if t.accepts(event)]


def get_timeout() -> float:
    return float(os.getenv("WEBHOOK_TIMEOUT_SECONDS", "10"))


def get_max_attempts() -> int:
    return int(os.getenv("WEBHOOK_MAX_ATTEMPTS", "3"))


def get_retry_interval() -> int:
    return int(os.getenv("WEBHOOK_RETRY_INTERVAL_SECONDS", "60"))
