from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy import orm
from typing import Any, Dict, Optional
from datetime import datetime
import os
import logging

import httpx

from config.database import get_db
from models import Profile
from profiles.crud import get_profile
from profiles.deps import get_current_profile
from conversations import crud as conversations_crud
from conversations.models import Conversation
from crystal.llm import llm, CrystalLLMError
from crystal.persona import INTEGRATION_GREETING, build_integration_prompt
from shared_utils.http_client import OutboundClient
from user_settings.crud import get_settings
from .analytics import build_insights, user_stats
from .config import get_timeout
from .dispatcher import dispatcher, schedule_delivery
from .events import OutboundEvent, publish_event
from .scheduler import webhook_retry_scheduler
from .templates import WEBHOOK_TEMPLATES

router = APIRouter(tags=["Webhooks"])
logger = logging.getLogger(__name__)

CUSTOM_SOURCE_HEADER = "crystal-ai-custom-webhook"


class WebhookHandlerPayload(BaseModel):
    event: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    timestamp: Optional[str] = None


class CustomWebhookPayload(BaseModel):
    webhook_url: Optional[str] = None
    event_type: Optional[str] = None
    data: Optional[Any] = None
    secret: Optional[str] = None


class WebhookTestPayload(BaseModel):
    webhook_url: str
    secret: Optional[str] = None


class AnalyticsPayload(BaseModel):
    event_type: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    user_id: Optional[str] = None
    timestamp: Optional[str] = None


class ChatIntegrationPayload(BaseModel):
    message: Optional[str] = None
    sessionId: Optional[str] = Field(None, max_length=36)
    user_id: Optional[str] = None
    source: str = "n8n"
    timestamp: Optional[str] = None


def _utc_now() -> str:
    return datetime.utcnow().isoformat() + "Z"


async def send_custom_webhook(webhook_url: str, event_type: str, data: Any, secret: Optional[str] = None):
    """Deliver one event to a user-supplied URL; returns a JSON response either way"""
    headers = {
        "X-Crystal-Event": event_type,
        "X-Crystal-Source": CUSTOM_SOURCE_HEADER,
    }
    if secret:
        headers["X-Webhook-Secret"] = secret
        headers["Authorization"] = f"Bearer {secret}"

    body = {"event": event_type, "timestamp": _utc_now(), "source": "crystal_ai_custom", "data": data}
    try:
        response = await OutboundClient(timeout=get_timeout()).post(webhook_url, body, headers=headers)
    except httpx.HTTPError as e:
        return JSONResponse(
            status_code=500,
            content={"error": "Webhook delivery failed", "message": str(e), "success": False}
        )

    logger.info(f"Custom webhook response: {response.status_code}")
    if not response.is_success:
        return JSONResponse(
            status_code=500,
            content={
                "error": "Webhook delivery failed",
                "status": response.status_code,
                "response": response.text,
                "success": False,
            }
        )

    return {
        "success": True,
        "message": "Webhook delivered successfully",
        "event": event_type,
        "webhook_url": webhook_url,
        "response_status": response.status_code,
        "response_data": response.text,
    }


@router.post("/n8n-webhook-handler")
async def webhook_handler(payload: WebhookHandlerPayload, profile: Profile = Depends(get_current_profile)):
    """Immediate fan-out of a client-reported event; failed targets are retried later"""
    if not payload.event or payload.data is None:
        return JSONResponse(status_code=400, content={"error": "Missing event or data", "success": False})

    logger.info(f"Processing webhook event: {payload.event}")
    event = OutboundEvent(
        event=payload.event,
        data=payload.data,
        user_id=profile.id,
        user_email=profile.email,
        timestamp=payload.timestamp or _utc_now(),
    )
    results = await dispatcher.fan_out(event)

    return {
        "success": True,
        "message": "Webhook processed successfully",
        "event": payload.event,
        "webhooks_sent": len(results),
        "webhooks_successful": len([r for r in results if r["success"]]),
        "results": [{"config": r["config"], "success": r["success"], "status": r["status"]} for r in results],
    }


@router.post("/n8n-custom-webhook")
async def custom_webhook(payload: CustomWebhookPayload, profile: Profile = Depends(get_current_profile)):
    if not payload.webhook_url or not payload.event_type or payload.data is None:
        return JSONResponse(
            status_code=400,
            content={"error": "Missing webhook_url, event_type, or data", "success": False}
        )

    logger.info(f"Sending custom webhook: {payload.event_type} to {payload.webhook_url}")
    return await send_custom_webhook(payload.webhook_url, payload.event_type, payload.data, payload.secret)


@router.post("/webhooks/test")
async def test_webhook(payload: WebhookTestPayload, profile: Profile = Depends(get_current_profile)):
    data = {"message": "Teste de conexão do Crystal.AI", "timestamp": _utc_now(), "test": True}
    return await send_custom_webhook(payload.webhook_url, "webhook_test", data, payload.secret)


@router.get("/webhooks/templates")
def webhook_templates(profile: Profile = Depends(get_current_profile)):
    return {"templates": WEBHOOK_TEMPLATES}


@router.get("/webhooks/status")
def webhook_status(profile: Profile = Depends(get_current_profile)):
    return webhook_retry_scheduler.get_status()


@router.post("/crystal-analytics")
def crystal_analytics(
    payload: AnalyticsPayload,
    background_tasks: BackgroundTasks,
    profile: Profile = Depends(get_current_profile),
    db: orm.Session = Depends(get_db)
):
    if not payload.event_type or payload.data is None:
        return JSONResponse(status_code=400, content={"error": "Missing event_type or data", "success": False})

    # Stats are only ever computed for the caller
    stats = user_stats(db, profile.id)
    insights = build_insights(payload.event_type, payload.data, stats)

    publish_event(
        "analytics_processed",
        {
            "event_type": payload.event_type,
            "data": payload.data,
            "insights": insights,
            "timestamp": payload.timestamp or _utc_now(),
        },
        profile.id, profile.email
    )
    schedule_delivery(background_tasks)

    return {
        "success": True,
        "event_type": payload.event_type,
        "insights": insights,
        "message": "Analytics processed successfully",
    }


@router.post("/n8n-chat-integration")
async def chat_integration(
    payload: ChatIntegrationPayload,
    request: Request,
    db: orm.Session = Depends(get_db)
):
    """Chat bridge for the automation platform; the session id doubles as the conversation id"""
    expected_secret = os.getenv("N8N_WEBHOOK_SECRET")
    if expected_secret and request.headers.get("x-webhook-secret") != expected_secret:
        logger.warning("Invalid webhook secret")
        return JSONResponse(status_code=401, content={"error": "Unauthorized", "success": False})

    if not payload.message or not payload.sessionId:
        return JSONResponse(
            status_code=400,
            content={"error": "Message and sessionId are required", "success": False}
        )

    conversation = db.query(Conversation).filter(Conversation.id == payload.sessionId).first()
    if conversation is None:
        if not payload.user_id:
            return JSONResponse(
                status_code=400,
                content={"error": "User ID required for new conversations", "success": False}
            )
        if get_profile(db, payload.user_id) is None:
            return JSONResponse(status_code=404, content={"error": "User not found", "success": False})
        conversation = conversations_crud.create_conversation(
            db, payload.user_id, conversation_id=payload.sessionId
        )

    try:
        conversations_crud.add_message(db, conversation, payload.message, "user")
    except conversations_crud.ConversationEndedError:
        return JSONResponse(status_code=409, content={"error": "Conversation ended", "success": False})

    settings = get_settings(db, conversation.user_id)
    recent = conversations_crud.get_recent_messages(db, conversation.id, 10)
    prompt = build_integration_prompt(settings, recent, payload.message)

    reply = INTEGRATION_GREETING
    if llm.is_configured():
        try:
            reply = await llm.complete(
                [{"role": "system", "content": prompt}, {"role": "user", "content": payload.message}],
                max_tokens=500,
                temperature=0.8,
            )
        except CrystalLLMError as e:
            logger.warning(f"AI API call failed, using fallback response: {str(e)}")

    conversations_crud.add_message(db, conversation, reply, "crystal")

    return {
        "response": reply,
        "sessionId": payload.sessionId,
        "timestamp": _utc_now(),
        "metadata": {
            "conversation_id": conversation.id,
            "user_id": conversation.user_id,
            "source": payload.source,
            "personality_applied": settings is not None,
        },
    }
