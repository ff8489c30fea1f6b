"""
One user turn in a Crystal conversation.

The user message is always stored. In a "crystal_chat" conversation exactly one
assistant message follows it: the model reply, or the fixed fallback when the model
cannot answer for any reason.
"""
import logging
from typing import Dict

from sqlalchemy.orm import Session

from crystal.persona import (
    FALLBACK_REPLY, FALLBACK_WARNING,
    build_context_info, to_history, with_image_reference,
)
from crystal.service import crystal_reply
from user_settings.crud import get_settings
from . import crud
from .models import Conversation
from .schema import CRYSTAL_CHAT, ChatTurnRequest, Sender

logger = logging.getLogger(__name__)

HISTORY_WINDOW = 10


async def run_chat_turn(db: Session, conversation: Conversation, turn: ChatTurnRequest) -> Dict:
    """
    Store the user's message and, for Crystal chats, the assistant reply

    Raises:
        ConversationEndedError: the conversation is closed
    """
    history = crud.get_recent_messages(db, conversation.id, HISTORY_WINDOW)

    user_message = crud.add_message(
        db, conversation, with_image_reference(turn.content, turn.image_url), Sender.USER.value
    )
    result = {"user_message": user_message, "crystal_message": None, "warning": None}

    if conversation.type != CRYSTAL_CHAT:
        return result

    crush_name = conversation.crush.name if conversation.crush else None
    context_info = build_context_info(crush_name, get_settings(db, conversation.user_id))

    try:
        reply = await crystal_reply(
            turn.content,
            to_history(history),
            context_info,
            crush_name,
            turn.image_base64,
        )
    except Exception as e:
        logger.error(f"Crystal AI error in conversation {conversation.id}: {str(e)}")
        reply = FALLBACK_REPLY
        result["warning"] = FALLBACK_WARNING

    result["crystal_message"] = crud.add_message(db, conversation, reply, Sender.CRYSTAL.value)
    return result
