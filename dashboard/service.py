from sqlalchemy.orm import Session
from datetime import datetime
from typing import Dict, List

from crushes.crud import list_crushes
from crushes.pipeline import compute_stats
from conversations.crud import list_conversations

RECENT_ACTIVITY_LIMIT = 5


def dashboard_stats(crushes: List, conversations: List) -> Dict[str, int]:
    return {
        "active_crushes": len(crushes),
        # Open conversations stand in for unanswered messages
        "pending_messages": len([c for c in conversations if c.ended_at is None]),
        "total_conversations": len(conversations),
        "success_rate": compute_stats(crushes)["success_rate"],
    }


def pick_suggestion(stats: Dict[str, int]) -> Dict[str, str]:
    """First matching suggestion for the dashboard banner"""
    if stats["active_crushes"] == 0:
        return {
            "type": "suggestion",
            "message": "Que tal adicionar sua primeira paquera ao pipeline?",
            "action": "Adicionar Paquera",
        }
    if stats["success_rate"] < 50:
        return {
            "type": "tip",
            "message": "Sua taxa de sucesso pode melhorar. Converse com Crystal para dicas!",
            "action": "Conversar com Crystal",
        }
    if stats["pending_messages"] > 0:
        return {
            "type": "reminder",
            "message": f"Você tem {stats['pending_messages']} conversas pendentes.",
            "action": "Ver Conversas",
        }
    if stats["active_crushes"] >= 5:
        return {
            "type": "achievement",
            "message": "Parabéns! Você está gerenciando várias paqueras com sucesso!",
            "action": "Ver Pipeline",
        }
    return {
        "type": "default",
        "message": "Tudo funcionando perfeitamente! Continue assim.",
        "action": "Ver Insights",
    }


def recent_activity(crushes: List, conversations: List, limit: int = RECENT_ACTIVITY_LIMIT) -> List[Dict]:
    """Latest crush additions and conversation starts, newest first"""
    activity = []
    for crush in crushes:
        activity.append({
            "id": f"crush-{crush.id}",
            "type": "crush_added",
            "title": "Nova paquera adicionada",
            "description": f"{crush.name} foi adicionada ao pipeline",
            "timestamp": crush.created_at,
            "metadata": {"crush_id": crush.id, "stage": crush.current_stage},
        })
    for conversation in conversations:
        description = (
            f"Conversa sobre {conversation.crush.name}" if conversation.crush
            else "Você começou uma nova sessão de aconselhamento"
        )
        activity.append({
            "id": f"conversation-{conversation.id}",
            "type": "conversation_started",
            "title": "Conversa com Crystal iniciada",
            "description": description,
            "timestamp": conversation.started_at,
            "metadata": {"conversation_id": conversation.id},
        })

    activity.sort(key=lambda a: a["timestamp"] or datetime.min, reverse=True)
    return activity[:limit]


def build_dashboard(db: Session, profile) -> Dict:
    crushes = list_crushes(db, profile.id)
    conversations = list_conversations(db, profile.id)
    stats = dashboard_stats(crushes, conversations)
    return {
        "profile": profile,
        "stats": stats,
        "suggestion": pick_suggestion(stats),
        "recent_activity": recent_activity(crushes, conversations),
    }
