from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy import orm
from typing import List, Optional
import logging

from config.database import get_db
from models import Profile
from profiles.deps import get_current_profile
from crushes.crud import get_crush
from webhooks.events import publish_event
from webhooks.dispatcher import schedule_delivery
from . import crud
from .chat import run_chat_turn
from .schema import (
    ConversationCreate, ConversationResponse, ConversationWithMessages,
    ConversationListResponse, MessageCreate, MessageResponse,
    ChatTurnRequest, ChatTurnResponse,
)

router = APIRouter(tags=["Conversations"])
logger = logging.getLogger(__name__)


def _get_owned_conversation(db: orm.Session, profile: Profile, conversation_id: str):
    conversation = crud.get_conversation(db, profile.id, conversation_id)
    if not conversation:
        raise HTTPException(status_code=404, detail="Conversa não encontrada")
    return conversation


def _message_payload(message) -> dict:
    return MessageResponse.model_validate(message).model_dump(mode="json")


def _publish_message_sent(profile: Profile, message) -> None:
    publish_event(
        "message_sent",
        {"message": _message_payload(message), "conversation_id": message.conversation_id, "sender": message.sender},
        profile.id, profile.email
    )


@router.get("/conversations", response_model=ConversationListResponse)
def list_conversations(profile: Profile = Depends(get_current_profile), db: orm.Session = Depends(get_db)):
    try:
        conversations = crud.list_conversations(db, profile.id)
    except Exception as e:
        logger.error(f"Error fetching conversations for {profile.id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Erro ao carregar conversas")

    return {"conversations": conversations, "stats": crud.conversation_stats(conversations)}


@router.get("/conversations/active", response_model=Optional[ConversationWithMessages])
def active_conversation(profile: Profile = Depends(get_current_profile), db: orm.Session = Depends(get_db)):
    """Most recently active open conversation with its messages, or null"""
    return crud.get_active_conversation(db, profile.id)


@router.post("/conversations", response_model=ConversationResponse, status_code=201)
def start_conversation(
    data: ConversationCreate,
    background_tasks: BackgroundTasks,
    profile: Profile = Depends(get_current_profile),
    db: orm.Session = Depends(get_db)
):
    if data.crush_id and not get_crush(db, profile.id, data.crush_id):
        raise HTTPException(status_code=404, detail="Paquera não encontrada")

    try:
        conversation = crud.create_conversation(db, profile.id, data.crush_id, data.type)
    except Exception as e:
        db.rollback()
        logger.error(f"Error starting conversation for {profile.id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Erro ao iniciar conversa")

    logger.info(f"Conversation {conversation.id} started by {profile.id} (crush={data.crush_id})")
    publish_event(
        "conversation_started",
        {
            "conversation": ConversationResponse.model_validate(conversation).model_dump(mode="json"),
            "crush_id": data.crush_id,
        },
        profile.id, profile.email
    )
    schedule_delivery(background_tasks)
    return conversation


@router.get("/conversations/{conversation_id}/messages", response_model=List[MessageResponse])
def load_messages(
    conversation_id: str,
    profile: Profile = Depends(get_current_profile),
    db: orm.Session = Depends(get_db)
):
    conversation = _get_owned_conversation(db, profile, conversation_id)
    return crud.get_messages(db, conversation.id)


@router.post("/conversations/{conversation_id}/messages", response_model=MessageResponse, status_code=201)
def send_message(
    conversation_id: str,
    data: MessageCreate,
    background_tasks: BackgroundTasks,
    profile: Profile = Depends(get_current_profile),
    db: orm.Session = Depends(get_db)
):
    conversation = _get_owned_conversation(db, profile, conversation_id)
    try:
        message = crud.add_message(db, conversation, data.content, data.sender.value)
    except crud.ConversationEndedError:
        raise HTTPException(status_code=409, detail="Conversa encerrada")
    except Exception as e:
        db.rollback()
        logger.error(f"Error sending message to {conversation_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Erro ao enviar mensagem")

    _publish_message_sent(profile, message)
    schedule_delivery(background_tasks)
    return message


@router.post("/conversations/{conversation_id}/end", response_model=ConversationResponse)
def end_conversation(
    conversation_id: str,
    background_tasks: BackgroundTasks,
    profile: Profile = Depends(get_current_profile),
    db: orm.Session = Depends(get_db)
):
    conversation = _get_owned_conversation(db, profile, conversation_id)
    conversation, closed = crud.end_conversation(db, conversation)

    if closed:
        publish_event("conversation_ended", {"conversation_id": conversation.id}, profile.id, profile.email)
        schedule_delivery(background_tasks)
    return conversation


@router.post("/conversations/{conversation_id}/chat", response_model=ChatTurnResponse)
async def chat_turn(
    conversation_id: str,
    turn: ChatTurnRequest,
    background_tasks: BackgroundTasks,
    profile: Profile = Depends(get_current_profile),
    db: orm.Session = Depends(get_db)
):
    """Send a user message and get Crystal's reply in one round trip"""
    if not turn.content.strip() and not turn.image_url:
        raise HTTPException(status_code=400, detail="Mensagem vazia")

    conversation = _get_owned_conversation(db, profile, conversation_id)
    try:
        result = await run_chat_turn(db, conversation, turn)
    except crud.ConversationEndedError:
        raise HTTPException(status_code=409, detail="Conversa encerrada")
    except Exception as e:
        db.rollback()
        logger.error(f"Error in chat turn for {conversation_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Erro ao enviar mensagem")

    _publish_message_sent(profile, result["user_message"])
    if result["crystal_message"] is not None:
        _publish_message_sent(profile, result["crystal_message"])
    schedule_delivery(background_tasks)
    return result
