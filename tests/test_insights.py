"""
Tests for insight generation and listing.
"""
import json
import pytest

from insights.models import ConversationInsight
from insights.service import build_rows, parse_insights, summarize_conversation, InsightsGenerationError
from crystal.llm import CrystalLLMError
from webhooks.events import event_queue


def model_reply(conversation_id=None, crush_id=None):
    return json.dumps([
        {"type": "improvement_tip", "title": "Perguntas abertas", "content": "Pergunte mais sobre os hobbies dela",
         "score": 85, "conversation_id": conversation_id, "crush_id": crush_id},
        {"type": "next_steps", "title": "Convite", "content": "Sugira um café", "score": 140,
         "conversation_id": None, "crush_id": None},
        {"type": "horoscope", "title": "Signos", "content": "Combinam", "score": "n/a"},
    ])


@pytest.fixture
def conversation_with_messages(client, auth_headers, sample_conversation):
    url = f"/conversations/{sample_conversation.id}/messages"
    client.post(url, json={"content": "Ela respondeu seco"}, headers=auth_headers)
    client.post(url, json={"content": "Tente algo leve", "sender": "crystal"}, headers=auth_headers)
    # Only events published by the code under test are of interest
    event_queue.clear()
    return sample_conversation


@pytest.mark.unit
class TestInsightHelpers:
    def test_parse_rejects_non_json(self):
        with pytest.raises(InsightsGenerationError):
            parse_insights("Aqui estão seus insights: ...")

    def test_parse_rejects_object(self):
        with pytest.raises(InsightsGenerationError):
            parse_insights('{"type": "next_steps"}')

    def test_summary_keeps_last_five_truncated(self):
        messages = [{"sender": "user", "content": f"m{i}" + "x" * 300} for i in range(8)]
        summary = summarize_conversation({"id": "c1", "messages": messages, "crushes": {"name": "Ana"}})
        assert summary["crushName"] == "Ana"
        assert summary["messageCount"] == 8
        assert summary["userMessageCount"] == 8
        assert len(summary["lastMessages"]) == 5
        assert summary["lastMessages"][0]["content"].startswith("m3")
        assert len(summary["lastMessages"][0]["content"]) == 200

    def test_summary_without_crush(self):
        assert summarize_conversation({"messages": []})["crushName"] == "Conversa Geral"

    def test_badly_shaped_items_are_sanitised(self):
        summaries = [{"conversationId": "c1", "crushId": "k1"}]
        items = json.loads(
            '[{"type": "next_steps", "title": "t", "content": "c", "score": Infinity,'
            '  "conversation_id": ["c1"], "crush_id": {"id": "k1"}},'
            ' {"type": "next_steps", "title": "u", "content": "d", "score": NaN,'
            '  "conversation_id": "c1", "crush_id": 7}]'
        )
        first, second = build_rows("u1", items, summaries)
        assert first.conversation_id is None
        assert first.crush_id is None
        assert first.score == 0
        assert second.conversation_id == "c1"
        assert second.crush_id is None
        assert second.score == 0

    def test_non_object_item_rejected(self):
        with pytest.raises(InsightsGenerationError):
            build_rows("u1", ["just text"], [])


class TestGenerateForCaller:
    def test_requires_premium(self, client, auth_headers, conversation_with_messages, mock_llm_complete):
        resp = client.post("/insights/generate", headers=auth_headers)
        assert resp.status_code == 403
        detail = resp.json()["detail"]
        assert detail["error"] == "subscription_required"
        assert detail["upgrade_prompt"]["required_plan"] == "Premium"
        mock_llm_complete.assert_not_called()

    def test_generates_and_stores(self, client, db_session, auth_headers, premium_subscription,
                                  conversation_with_messages, mock_llm_complete, published_events):
        conversation = conversation_with_messages
        mock_llm_complete.return_value = model_reply(conversation.id, conversation.crush_id)

        resp = client.post("/insights/generate", headers=auth_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["count"] == 3

        by_title = {i["title"]: i for i in body["insights"]}
        assert by_title["Perguntas abertas"]["conversation_id"] == conversation.id
        assert by_title["Perguntas abertas"]["crush_id"] == conversation.crush_id
        assert by_title["Convite"]["score"] == 100
        assert by_title["Signos"]["insight_type"] == "improvement_tip"
        assert by_title["Signos"]["score"] == 0
        assert published_events.names() == ["insight_generated"]

        prompt = mock_llm_complete.call_args.args[0][1]["content"]
        assert "Ela respondeu seco" in prompt

    def test_unparseable_reply_persists_nothing(self, client, db_session, auth_headers, premium_subscription,
                                                conversation_with_messages, mock_llm_complete):
        mock_llm_complete.return_value = "Desculpe, não consigo gerar JSON agora."

        resp = client.post("/insights/generate", headers=auth_headers)
        assert resp.status_code == 500
        assert resp.json()["success"] is False
        assert db_session.query(ConversationInsight).count() == 0

    def test_odd_ids_and_infinite_score_are_stored_safely(self, client, db_session, auth_headers, premium_subscription,
                                                        conversation_with_messages, mock_llm_complete):
        mock_llm_complete.return_value = (
            '[{"type": "next_steps", "title": "Convite", "content": "Sugira um cafe",'
            '  "score": Infinity, "conversation_id": ["a"], "crush_id": {"id": "b"}}]'
        )

        resp = client.post("/insights/generate", headers=auth_headers)
        assert resp.status_code == 200
        stored = db_session.query(ConversationInsight).one()
        assert stored.conversation_id is None
        assert stored.crush_id is None
        assert stored.score == 0

    def test_model_unavailable(self, client, auth_headers, premium_subscription, conversation_with_messages,
                               mock_llm_complete):
        mock_llm_complete.side_effect = CrystalLLMError("OPENAI_API_KEY is not set")
        resp = client.post("/insights/generate", headers=auth_headers)
        assert resp.status_code == 500

    def test_no_conversations(self, client, auth_headers, premium_subscription, mock_llm_complete):
        resp = client.post("/insights/generate", headers=auth_headers)
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Nenhuma conversa encontrada para gerar insights"


class TestGenerateInsightsFunction:
    def test_client_supplied_conversations(self, client, auth_headers, sample_conversation, mock_llm_complete):
        mock_llm_complete.return_value = model_reply(sample_conversation.id, "crush-of-someone-else")

        resp = client.post("/generate-insights", json={
            "userId": "test_user_id",
            "conversations": [{
                "id": sample_conversation.id,
                "crush_id": "crush-of-someone-else",
                "type": "crystal_chat",
                "messages": [{"sender": "user", "content": "Oi"}],
            }],
        }, headers=auth_headers)
        assert resp.status_code == 200
        first = next(i for i in resp.json()["insights"] if i["title"] == "Perguntas abertas")
        assert first["conversation_id"] == sample_conversation.id
        assert first["crush_id"] is None

    def test_other_user_forbidden(self, client, auth_headers, mock_llm_complete):
        resp = client.post("/generate-insights", json={
            "userId": "someone_else", "conversations": [{"id": "x", "messages": []}],
        }, headers=auth_headers)
        assert resp.status_code == 403
        mock_llm_complete.assert_not_called()

    def test_missing_fields(self, client, auth_headers):
        resp = client.post("/generate-insights", json={"userId": "test_user_id"}, headers=auth_headers)
        assert resp.status_code == 400

    @pytest.mark.parametrize("conversation", [
        {"id": "x", "messages": ["oi"]},
        {"id": "x", "crushes": "Ana", "messages": []},
        {"id": "x", "messages": [{"sender": "user", "content": 42}]},
        {"id": "x", "messages": [{"content": "sem remetente"}]},
    ])
    def test_malformed_conversation_rejected(self, client, auth_headers, mock_llm_complete, conversation):
        resp = client.post("/generate-insights", json={
            "userId": "test_user_id", "conversations": [conversation],
        }, headers=auth_headers)
        assert resp.status_code == 422
        mock_llm_complete.assert_not_called()


class TestListInsights:
    def test_list_with_stats(self, client, db_session, auth_headers, sample_profile):
        db_session.add_all([
            ConversationInsight(user_id=sample_profile.id, insight_type="improvement_tip", title="a", content="a", score=80),
            ConversationInsight(user_id=sample_profile.id, insight_type="next_steps", title="b", content="b", score=65),
        ])
        db_session.commit()

        resp = client.get("/insights", headers=auth_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert len(body["insights"]) == 2
        assert body["stats"] == {
            "total": 2, "improvement_tips": 1, "relationship_analysis": 0, "next_steps": 1, "avg_score": 73,
        }
