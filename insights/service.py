"""
Insight generation: summarise conversations, ask the model for a JSON array of insights,
persist them all or none.
"""
import json
import math
import logging
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from crystal.llm import llm, INSIGHTS_MODEL
from .models import ConversationInsight
from .schema import INSIGHT_TYPES

logger = logging.getLogger(__name__)

LAST_MESSAGES = 5
CONTENT_LIMIT = 200

SYSTEM_PROMPT = """Você é Crystal.ai, uma especialista em relacionamentos e conquistas amorosas. Analise as conversas do usuário e gere insights valiosos.

INSTRUÇÕES PARA ANÁLISE:
- Analise os padrões de comunicação do usuário
- Identifique pontos de melhoria específicos
- Sugira próximos passos práticos
- Forneça análises de relacionamento personalizadas
- Seja específica e prática nas suas recomendações

TIPOS DE INSIGHTS:
1. improvement_tip: Dicas específicas para melhorar comunicação ou abordagem
2. relationship_analysis: Análise do progresso/status com cada pessoa
3. next_steps: Próximas ações recomendadas

Para cada insight, forneça:
- Um título claro e específico
- Conteúdo detalhado e acionável
- Um score de relevância (0-100)
- O tipo apropriado

Responda APENAS com um array JSON de insights no formato:
[
  {
    "type": "improvement_tip",
    "title": "Título específico",
    "content": "Conteúdo detalhado e prático",
    "score": 85,
    "conversation_id": "uuid ou null",
    "crush_id": "uuid ou null"
  }
]

Gere entre 3-8 insights baseados nas conversas fornecidas."""


class InsightsGenerationError(Exception):
    """The model reply could not be turned into insights; nothing was stored"""


def conversation_to_dict(conversation) -> Dict[str, Any]:
    """Shape a stored conversation like the payload the client sends to /generate-insights"""
    return {
        "id": conversation.id,
        "type": conversation.type,
        "crush_id": conversation.crush_id,
        "crushes": {"name": conversation.crush.name} if conversation.crush else None,
        "messages": [
            {"sender": m.sender, "content": m.content, "timestamp": m.timestamp.isoformat() if m.timestamp else None}
            for m in conversation.messages
        ],
    }


def summarize_conversation(conversation: Dict[str, Any]) -> Dict[str, Any]:
    messages = conversation.get("messages") or []
    crush = conversation.get("crushes") or conversation.get("crush") or {}
    return {
        "crushName": crush.get("name") or "Conversa Geral",
        "type": conversation.get("type"),
        "messageCount": len(messages),
        "userMessageCount": len([m for m in messages if m.get("sender") == "user"]),
        "crystalMessageCount": len([m for m in messages if m.get("sender") == "crystal"]),
        "lastMessages": [
            {"sender": m.get("sender"), "content": (m.get("content") or "")[:CONTENT_LIMIT]}
            for m in messages[-LAST_MESSAGES:]
        ],
        "conversationId": conversation.get("id"),
        "crushId": conversation.get("crush_id"),
    }


def parse_insights(text: str) -> List[Dict[str, Any]]:
    """
    Raises:
        InsightsGenerationError: not JSON, or JSON that is not an array
    """
    try:
        parsed = json.loads(text)
    except (TypeError, ValueError) as e:
        logger.error(f"JSON parse error: {e}; raw response: {text!r}")
        raise InsightsGenerationError("Failed to parse insights from AI response")

    if not isinstance(parsed, list):
        raise InsightsGenerationError("AI response is not an array of insights")
    return parsed


def _clamp_score(value) -> int:
    try:
        score = int(value or 0)
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(0, min(100, score))


def _known_id(value, known: set):
    return value if isinstance(value, str) and value in known else None


def build_rows(user_id: str, items: List[Dict[str, Any]], summaries: List[Dict[str, Any]]) -> List[ConversationInsight]:
    # Only reference conversations/crushes that were actually analysed
    known_conversations = {s["conversationId"] for s in summaries if s.get("conversationId")}
    known_crushes = {s["crushId"] for s in summaries if s.get("crushId")}

    rows = []
    for item in items:
        if not isinstance(item, dict):
            raise InsightsGenerationError("AI response is not an array of insights")
        insight_type = item.get("type")
        if insight_type not in INSIGHT_TYPES:
            logger.warning(f"Unexpected insight type {insight_type!r}, stored as improvement_tip")
            insight_type = "improvement_tip"
        conversation_id = item.get("conversation_id")
        crush_id = item.get("crush_id")
        rows.append(ConversationInsight(
            user_id=user_id,
            conversation_id=_known_id(conversation_id, known_conversations),
            crush_id=_known_id(crush_id, known_crushes),
            insight_type=insight_type,
            title=str(item.get("title") or "Insight"),
            content=str(item.get("content") or ""),
            score=_clamp_score(item.get("score")),
        ))
    return rows


async def generate_insights(db: Session, user_id: str, conversations: List[Dict[str, Any]]) -> List[ConversationInsight]:
    """
    Generate and persist insights for a batch of conversations

    Raises:
        CrystalLLMError: model unavailable
        InsightsGenerationError: unusable model output (nothing persisted)
    """
    summaries = [summarize_conversation(c) for c in conversations]
    logger.info(f"Generating insights for user {user_id} from {len(summaries)} conversation(s)")

    text = await llm.complete(
        [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": f"Analise estas conversas e gere insights:\n\n{json.dumps(summaries, indent=2, ensure_ascii=False)}",
            },
        ],
        model=INSIGHTS_MODEL,
        max_tokens=2000,
        temperature=0.7,
    )

    rows = build_rows(user_id, parse_insights(text), summaries)
    try:
        db.add_all(rows)
        db.commit()
    except Exception:
        db.rollback()
        raise

    for row in rows:
        db.refresh(row)
    logger.info(f"Successfully inserted {len(rows)} insights for user {user_id}")
    return rows


def list_insights(db: Session, user_id: str) -> List[ConversationInsight]:
    return (
        db.query(ConversationInsight)
        .filter(ConversationInsight.user_id == user_id)
        .order_by(ConversationInsight.created_at.desc())
        .all()
    )


def insight_stats(insights: List[ConversationInsight]) -> Dict[str, int]:
    total = len(insights)
    avg = math.floor(sum(i.score or 0 for i in insights) / total + 0.5) if total else 0
    return {
        "total": total,
        "improvement_tips": len([i for i in insights if i.insight_type == "improvement_tip"]),
        "relationship_analysis": len([i for i in insights if i.insight_type == "relationship_analysis"]),
        "next_steps": len([i for i in insights if i.insight_type == "next_steps"]),
        "avg_score": int(avg),
    }
