from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy import orm
from sqlalchemy.orm import selectinload, joinedload
import logging
from typing import List

from config.database import get_db
from models import Profile
from profiles.deps import get_current_profile
from conversations.models import Conversation
from crushes.crud import list_crushes
from crystal.llm import CrystalLLMError
from subscriptions.access import require_plan
from webhooks.events import publish_event
from webhooks.dispatcher import schedule_delivery
from . import service
from .schema import (
    InsightListResponse, GenerateInsightsRequest, GenerateInsightsResponse, ConversationPayload,
)

router = APIRouter(tags=["Insights"])
logger = logging.getLogger(__name__)

RECENT_CONVERSATIONS = 10


def _owned_only(db: orm.Session, user_id: str, conversations: List[ConversationPayload]) -> list:
    """Plain dicts of the payload with conversation/crush references the caller does not own dropped"""
    owned_conversations = {
        row.id for row in db.query(Conversation.id).filter(Conversation.user_id == user_id).all()
    }
    owned_crushes = {c.id for c in list_crushes(db, user_id)}
    cleaned = []
    for conversation in conversations:
        conversation = conversation.model_dump()
        if conversation.get("id") not in owned_conversations:
            conversation["id"] = None
        if conversation.get("crush_id") not in owned_crushes:
            conversation["crush_id"] = None
        cleaned.append(conversation)
    return cleaned


def _generated(rows) -> dict:
    return {
        "success": True,
        "insights": rows,
        "count": len(rows),
    }


@router.get("/insights", response_model=InsightListResponse)
def read_insights(profile: Profile = Depends(get_current_profile), db: orm.Session = Depends(get_db)):
    insights = service.list_insights(db, profile.id)
    return {"insights": insights, "stats": service.insight_stats(insights)}


@router.post("/insights/generate", response_model=GenerateInsightsResponse)
async def generate_for_caller(
    background_tasks: BackgroundTasks,
    profile: Profile = Depends(require_plan("premium", "insights da Crystal")),
    db: orm.Session = Depends(get_db)
):
    """Analyse the caller's most recently active conversations (premium)"""
    conversations = (
        db.query(Conversation)
        .options(selectinload(Conversation.messages), joinedload(Conversation.crush))
        .filter(Conversation.user_id == profile.id)
        .order_by(Conversation.updated_at.desc())
        .limit(RECENT_CONVERSATIONS)
        .all()
    )
    if not conversations:
        raise HTTPException(status_code=400, detail="Nenhuma conversa encontrada para gerar insights")

    try:
        rows = await service.generate_insights(
            db, profile.id, [service.conversation_to_dict(c) for c in conversations]
        )
    except (CrystalLLMError, service.InsightsGenerationError) as e:
        logger.error(f"Error generating insights for {profile.id}: {str(e)}")
        return JSONResponse(status_code=500, content={"error": str(e), "success": False})

    publish_event("insight_generated", {"count": len(rows)}, profile.id, profile.email)
    schedule_delivery(background_tasks)
    return _generated(rows)


@router.post("/generate-insights", response_model=GenerateInsightsResponse)
async def generate_insights_function(
    payload: GenerateInsightsRequest,
    background_tasks: BackgroundTasks,
    profile: Profile = Depends(get_current_profile),
    db: orm.Session = Depends(get_db)
):
    """Function-style endpoint: the client supplies the conversations to analyse"""
    logger.info("Generate insights function called")

    if not payload.conversations or not payload.userId:
        return JSONResponse(
            status_code=400,
            content={"error": "Conversations and userId are required", "success": False}
        )
    if payload.userId != profile.id:
        return JSONResponse(status_code=403, content={"error": "Acesso negado", "success": False})

    try:
        rows = await service.generate_insights(
            db, profile.id, _owned_only(db, profile.id, payload.conversations)
        )
    except (CrystalLLMError, service.InsightsGenerationError) as e:
        logger.error(f"Error in generate-insights function: {str(e)}")
        return JSONResponse(status_code=500, content={"error": str(e), "success": False})

    publish_event("insight_generated", {"count": len(rows)}, profile.id, profile.email)
    schedule_delivery(background_tasks)
    return _generated(rows)
