"""
Canned coaching recommendations attached to analytics events.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from crushes.crud import list_crushes
from crushes.pipeline import compute_stats
from conversations.crud import list_conversations

RECOMMENDATIONS = {
    "crush_added": [
        "Comece com uma conversa leve e descontraída",
        "Mostre interesse genuíno nos hobbies dela",
        "Use humor apropriado para quebrar o gelo",
    ],
    "conversation_started": [
        "Seja autêntico e verdadeiro",
        "Faça perguntas abertas para conhecê-la melhor",
        "Compartilhe experiências interessantes",
    ],
    "message_sent": [
        "Dê tempo para ela responder",
        "Evite mensagens muito longas",
        "Seja interessante mas não invasivo",
    ],
}

STAGE_RECOMMENDATIONS = {
    "Encontro": [
        "Escolha um local neutro e público",
        "Seja pontual e apresentável",
        "Tenha tópicos de conversa preparados",
    ],
    "Relacionamento": [
        "Parabéns! Continue sendo você mesmo",
        "Comunicação é a chave do sucesso",
        "Compartilhem experiências juntos",
    ],
}

DEFAULT_RECOMMENDATIONS = [
    "Continue sendo autêntico",
    "A paciência é uma virtude na conquista",
    "Crystal está sempre aqui para ajudar",
]


def user_stats(db: Session, user_id: str) -> Dict[str, int]:
    crushes = list_crushes(db, user_id)
    return {
        "total_crushes": len(crushes),
        "total_conversations": len(list_conversations(db, user_id)),
        "success_rate": compute_stats(crushes)["success_rate"],
    }


def recommendations_for(event_type: str, data: Dict[str, Any], stats: Optional[Dict[str, int]] = None) -> list:
    if event_type == "stage_changed":
        stage = data.get("new_stage") or data.get("stage")
        recommendations = list(STAGE_RECOMMENDATIONS.get(stage, []))
    elif event_type == "dashboard_viewed":
        recommendations = []
        if stats is not None and stats["total_crushes"] == 0:
            recommendations = [
                "Que tal adicionar sua primeira paquera?",
                "Comece devagar e seja natural",
                "A Crystal está aqui para ajudar!",
            ]
        elif stats is not None and stats["total_crushes"] >= 5:
            recommendations = [
                "Você está gerenciando bem suas conquistas!",
                "Foque na qualidade das conversas",
                "Considere marcar encontros presenciais",
            ]
    else:
        recommendations = list(RECOMMENDATIONS.get(event_type, DEFAULT_RECOMMENDATIONS))

    if stats is not None:
        if stats["success_rate"] > 70:
            recommendations.insert(0, "Sua taxa de sucesso está excelente!")
        elif stats["success_rate"] < 30:
            recommendations.insert(0, "A Crystal pode te ajudar a melhorar suas abordagens")
    return recommendations


def build_insights(event_type: str, data: Dict[str, Any], stats: Optional[Dict[str, int]] = None) -> Dict[str, Any]:
    insights = {
        "event_type": event_type,
        "processed_at": datetime.utcnow().isoformat() + "Z",
        "recommendations": recommendations_for(event_type, data, stats),
    }
    if stats is not None:
        insights["stats"] = stats
    return insights
