"""
Tests for outbound event delivery and the webhook edge endpoints.
"""
import asyncio
import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock
from uuid import uuid4

import httpx

from webhooks.config import targets_for_event, load_webhook_targets
from webhooks.dispatcher import WebhookDispatcher, dispatcher
from webhooks.events import EventQueue, OutboundEvent
from webhooks.scheduler import WebhookRetryScheduler

CRUSH_URL = "https://n8n.example.com/webhook/crush"
ANALYTICS_URL = "https://n8n.example.com/webhook/analytics"


@pytest.fixture
def crush_target(monkeypatch):
    monkeypatch.setenv("N8N_CRUSH_WEBHOOK_URL", CRUSH_URL)


def make_due(queue):
    """Expire the backoff of every queued event"""
    for event in queue.pop_batch(queue.max_size):
        event.not_before = None
        queue.put(event)


@pytest.fixture
def mock_outbound():
    client = AsyncMock()
    client.post.return_value = httpx.Response(200, text="ok")
    return client


@pytest.mark.unit
class TestEventRouting:
    def test_no_url_no_target(self):
        assert targets_for_event("crush_added") == []

    def test_event_routed_to_its_category(self, crush_target, monkeypatch):
        monkeypatch.setenv("N8N_ANALYTICS_WEBHOOK_URL", ANALYTICS_URL)
        assert [t.name for t in targets_for_event("crush_added")] == ["crush_events"]
        assert [t.name for t in targets_for_event("stage_changed")] == ["analytics_events"]
        assert targets_for_event("something_else") == []

    def test_every_category_has_events(self):
        targets = load_webhook_targets()
        assert set(targets) == {
            "crush_events", "conversation_events", "dashboard_events", "analytics_events", "payment_events"
        }

    def test_payload_carries_user(self):
        event = OutboundEvent("crush_added", {"crush": {"name": "Ana"}}, "u1", "u1@example.com")
        payload = event.payload()
        assert payload["event"] == "crush_added"
        assert payload["source"] == "crystal_ai"
        assert payload["data"] == {"crush": {"name": "Ana"}, "user_id": "u1", "user_email": "u1@example.com"}

    def test_queue_drops_oldest_when_full(self):
        queue = EventQueue(max_size=2)
        for name in ("a", "b", "c"):
            queue.put(OutboundEvent(name, {}))
        assert [e.event for e in queue.pop_batch(10)] == ["b", "c"]


@pytest.mark.unit
class TestDispatcher:
    def test_successful_delivery(self, crush_target, mock_outbound):
        queue = EventQueue()
        sender = WebhookDispatcher(queue, client=mock_outbound)
        queue.put(OutboundEvent("crush_added", {"crush": {"name": "Ana"}}, "u1"))

        summary = asyncio.run(sender.drain())
        assert summary == {"events": 1, "deliveries": 1, "failed": 0}
        assert queue.pending() == 0

        url, body = mock_outbound.post.call_args.args
        assert url == CRUSH_URL
        assert body["event"] == "crush_added"
        assert mock_outbound.post.call_args.kwargs["headers"]["X-Crystal-Event"] == "crush_added"

    def test_event_without_target_is_consumed(self, mock_outbound):
        queue = EventQueue()
        sender = WebhookDispatcher(queue, client=mock_outbound)
        queue.put(OutboundEvent("crush_added", {}))

        assert asyncio.run(sender.drain()) == {"events": 1, "deliveries": 0, "failed": 0}
        mock_outbound.post.assert_not_called()

    def test_failed_target_is_requeued(self, monkeypatch, mock_outbound):
        monkeypatch.setenv("N8N_ANALYTICS_WEBHOOK_URL", ANALYTICS_URL)

        def reply(url, body, headers=None, timeout=None):
            return httpx.Response(500 if url == ANALYTICS_URL else 200)

        mock_outbound.post.side_effect = reply
        queue = EventQueue()
        sender = WebhookDispatcher(queue, client=mock_outbound)
        event = OutboundEvent("stage_changed", {"stage": "Encontro"})

        results = asyncio.run(sender.fan_out(event))
        assert [r["success"] for r in results] == [False]
        assert queue.pending() == 1
        retried = queue.pop_batch(1)[0]
        assert retried.targets == ["analytics_events"]
        assert retried.attempts == 1
        assert retried.last_error == "HTTP 500"

    def test_transport_error_counts_as_failure(self, crush_target, mock_outbound):
        mock_outbound.post.side_effect = httpx.ConnectError("refused")
        queue = EventQueue()
        sender = WebhookDispatcher(queue, client=mock_outbound)

        results = asyncio.run(sender.fan_out(OutboundEvent("crush_deleted", {"crush_id": "c1"})))
        assert results[0]["status"] == "error"
        assert queue.pending() == 1

    def test_gives_up_after_max_attempts(self, crush_target, monkeypatch, mock_outbound):
        monkeypatch.setenv("WEBHOOK_MAX_ATTEMPTS", "2")
        mock_outbound.post.return_value = httpx.Response(503)
        queue = EventQueue()
        sender = WebhookDispatcher(queue, client=mock_outbound)
        queue.put(OutboundEvent("crush_added", {}))

        asyncio.run(sender.drain())
        assert queue.pending() == 1
        make_due(queue)
        asyncio.run(sender.drain())
        assert queue.pending() == 0
        assert mock_outbound.post.call_count == 2

    def test_requeued_event_waits_for_retry_interval(self, crush_target, monkeypatch, mock_outbound):
        monkeypatch.setenv("WEBHOOK_RETRY_INTERVAL_SECONDS", "60")
        mock_outbound.post.return_value = httpx.Response(503)
        queue = EventQueue()
        sender = WebhookDispatcher(queue, client=mock_outbound)
        queue.put(OutboundEvent("crush_added", {}))

        asyncio.run(sender.drain())
        assert asyncio.run(sender.drain()) == {"events": 0, "deliveries": 0, "failed": 0}
        assert queue.pending() == 1
        assert mock_outbound.post.call_count == 1

        retried = queue.pop_batch(1)[0]
        assert retried.not_before >= datetime.utcnow() + timedelta(seconds=50)
        assert retried.is_due(retried.not_before)

    def test_retry_scheduler_drain(self, crush_target, mocker, mock_outbound):
        sender = WebhookDispatcher(EventQueue(), client=mock_outbound)
        sender.queue.put(OutboundEvent("crush_added", {}))
        mocker.patch("webhooks.scheduler.dispatcher", sender)

        summary = WebhookRetryScheduler().drain_queue()
        assert summary["events"] == 1
        assert summary["failed"] == 0
        assert sender.queue.pending() == 0

    def test_retry_scheduler_idle(self, mocker, mock_outbound):
        mocker.patch("webhooks.scheduler.dispatcher", WebhookDispatcher(EventQueue(), client=mock_outbound))
        assert WebhookRetryScheduler().drain_queue() == {"events": 0, "deliveries": 0, "failed": 0}


class TestWebhookHandler:
    def test_immediate_fan_out(self, client, auth_headers, crush_target, mocker, mock_outbound):
        mocker.patch.object(dispatcher, "client", mock_outbound)

        resp = client.post(
            "/n8n-webhook-handler",
            json={"event": "crush_added", "data": {"crush": {"name": "Ana"}}},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["webhooks_sent"] == 1
        assert body["webhooks_successful"] == 1
        assert body["results"] == [{"config": "crush_events", "success": True, "status": 200}]

        sent = mock_outbound.post.call_args.args[1]
        assert sent["data"]["user_id"] == "test_user_id"

    def test_missing_event(self, client, auth_headers):
        resp = client.post("/n8n-webhook-handler", json={"data": {}}, headers=auth_headers)
        assert resp.status_code == 400

    def test_requires_auth(self, client):
        resp = client.post("/n8n-webhook-handler", json={"event": "crush_added", "data": {}})
        assert resp.status_code == 401


class TestCustomWebhook:
    def test_delivered_with_secret(self, client, auth_headers, mocker):
        post = mocker.patch("webhooks.router.OutboundClient.post", new_callable=AsyncMock)
        post.return_value = httpx.Response(200, text="received")

        resp = client.post("/n8n-custom-webhook", json={
            "webhook_url": "https://hooks.example.com/x",
            "event_type": "crush_added",
            "data": {"name": "Ana"},
            "secret": "s3cr3t",
        }, headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json()["response_status"] == 200

        headers = post.call_args.kwargs["headers"]
        assert headers["X-Webhook-Secret"] == "s3cr3t"
        assert headers["Authorization"] == "Bearer s3cr3t"
        assert post.call_args.args[1]["source"] == "crystal_ai_custom"

    def test_target_error_is_500(self, client, auth_headers, mocker):
        post = mocker.patch("webhooks.router.OutboundClient.post", new_callable=AsyncMock)
        post.return_value = httpx.Response(404, text="not found")

        resp = client.post("/n8n-custom-webhook", json={
            "webhook_url": "https://hooks.example.com/x", "event_type": "x", "data": {},
        }, headers=auth_headers)
        assert resp.status_code == 500
        assert resp.json()["status"] == 404

    def test_unreachable_target_is_500(self, client, auth_headers, mocker):
        post = mocker.patch("webhooks.router.OutboundClient.post", new_callable=AsyncMock)
        post.side_effect = httpx.ConnectError("refused")

        resp = client.post("/webhooks/test", json={"webhook_url": "https://hooks.example.com/x"}, headers=auth_headers)
        assert resp.status_code == 500
        assert resp.json()["success"] is False

    def test_missing_fields(self, client, auth_headers):
        resp = client.post("/n8n-custom-webhook", json={"event_type": "x"}, headers=auth_headers)
        assert resp.status_code == 400

    def test_templates_and_status(self, client, auth_headers):
        templates = client.get("/webhooks/templates", headers=auth_headers).json()["templates"]
        assert "discord_notification" in templates
        status = client.get("/webhooks/status", headers=auth_headers).json()
        assert status["running"] is False


class TestCrystalAnalytics:
    def test_insights_for_caller(self, client, auth_headers, sample_crush, published_events):
        resp = client.post("/crystal-analytics", json={
            "event_type": "crush_added", "data": {"crush_id": sample_crush.id},
        }, headers=auth_headers)
        assert resp.status_code == 200
        body = resp.json()
        insights = body["insights"]
        assert insights["stats"] == {"total_crushes": 1, "total_conversations": 0, "success_rate": 0}
        assert insights["recommendations"][0] == "A Crystal pode te ajudar a melhorar suas abordagens"
        assert published_events.names() == ["analytics_processed"]

    def test_stage_recommendations(self, client, auth_headers):
        body = client.post("/crystal-analytics", json={
            "event_type": "stage_changed", "data": {"new_stage": "Encontro"},
        }, headers=auth_headers).json()
        assert "Escolha um local neutro e público" in body["insights"]["recommendations"]

    def test_missing_fields(self, client, auth_headers):
        resp = client.post("/crystal-analytics", json={"event_type": "crush_added"}, headers=auth_headers)
        assert resp.status_code == 400


class TestChatIntegration:
    def test_new_session_creates_conversation(self, client, db_session, sample_profile, mock_llm_complete, mocker):
        from crystal.llm import llm
        mocker.patch.object(llm, "is_configured", return_value=True)
        session_id = str(uuid4())

        resp = client.post("/n8n-chat-integration", json={
            "message": "Oi Crystal", "sessionId": session_id, "user_id": sample_profile.id,
        })
        assert resp.status_code == 200
        body = resp.json()
        assert body["response"] == "Resposta da Crystal"
        assert body["sessionId"] == session_id
        assert body["metadata"]["conversation_id"] == session_id
        assert body["metadata"]["personality_applied"] is False

        prompt = mock_llm_complete.call_args.args[0][0]["content"]
        assert "Nova mensagem do usuário: Oi Crystal" in prompt

    def test_greeting_without_model(self, client, sample_profile, mocker):
        from crystal.llm import llm
        from crystal.persona import INTEGRATION_GREETING
        mocker.patch.object(llm, "is_configured", return_value=False)

        resp = client.post("/n8n-chat-integration", json={
            "message": "Oi", "sessionId": str(uuid4()), "user_id": sample_profile.id,
        })
        assert resp.status_code == 200
        assert resp.json()["response"] == INTEGRATION_GREETING

    def test_secret_required_when_configured(self, client, sample_profile, monkeypatch):
        monkeypatch.setenv("N8N_WEBHOOK_SECRET", "shh")
        payload = {"message": "Oi", "sessionId": str(uuid4()), "user_id": sample_profile.id}

        assert client.post("/n8n-chat-integration", json=payload).status_code == 401

    def test_unknown_user(self, client, db_session):
        resp = client.post("/n8n-chat-integration", json={
            "message": "Oi", "sessionId": str(uuid4()), "user_id": "ghost",
        })
        assert resp.status_code == 404

    def test_new_session_needs_user(self, client, db_session):
        resp = client.post("/n8n-chat-integration", json={"message": "Oi", "sessionId": str(uuid4())})
        assert resp.status_code == 400

    def test_ended_session_conflicts(self, client, db_session, sample_conversation):
        from datetime import datetime
        sample_conversation.ended_at = datetime.utcnow()
        db_session.commit()

        resp = client.post("/n8n-chat-integration", json={"message": "Oi", "sessionId": sample_conversation.id})
        assert resp.status_code == 409
