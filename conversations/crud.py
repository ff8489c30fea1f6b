from sqlalchemy.orm import Session, joinedload
from datetime import datetime
from typing import List, Optional, Tuple

from .models import Conversation, Message
from .schema import CRYSTAL_CHAT


class ConversationEndedError(Exception):
    """Raised when appending to a conversation that has already been closed"""


def list_conversations(db: Session, user_id: str) -> List[Conversation]:
    """Caller's conversations, most recently active first, with the linked crush loaded"""
    return (
        db.query(Conversation)
        .options(joinedload(Conversation.crush))
        .filter(Conversation.user_id == user_id)
        .order_by(Conversation.updated_at.desc())
        .all()
    )


def conversation_stats(conversations: List[Conversation]) -> dict:
    return {
        "total": len(conversations),
        "active": len([c for c in conversations if c.is_active]),
        "with_crush": len([c for c in conversations if c.crush_id]),
        "crystal": len([c for c in conversations if c.type == CRYSTAL_CHAT]),
    }


def get_conversation(db: Session, user_id: str, conversation_id: str) -> Optional[Conversation]:
    return (
        db.query(Conversation)
        .filter(Conversation.id == conversation_id, Conversation.user_id == user_id)
        .first()
    )


def get_active_conversation(db: Session, user_id: str) -> Optional[Conversation]:
    return (
        db.query(Conversation)
        .filter(Conversation.user_id == user_id, Conversation.ended_at.is_(None))
        .order_by(Conversation.updated_at.desc())
        .first()
    )


def create_conversation(
    db: Session, user_id: str, crush_id: Optional[str] = None,
    type: str = CRYSTAL_CHAT, conversation_id: Optional[str] = None
) -> Conversation:
    conversation = Conversation(user_id=user_id, crush_id=crush_id, type=type)
    if conversation_id:
        conversation.id = conversation_id
    db.add(conversation)
    db.commit()
    db.refresh(conversation)
    return conversation


def get_messages(db: Session, conversation_id: str) -> List[Message]:
    return (
        db.query(Message)
        .filter(Message.conversation_id == conversation_id)
        .order_by(Message.timestamp.asc())
        .all()
    )


def get_recent_messages(db: Session, conversation_id: str, limit: int = 10) -> List[Message]:
    """Last `limit` messages in chronological order"""
    latest = (
        db.query(Message)
        .filter(Message.conversation_id == conversation_id)
        .order_by(Message.timestamp.desc())
        .limit(limit)
        .all()
    )
    return list(reversed(latest))


def add_message(db: Session, conversation: Conversation, content: str, sender: str) -> Message:
    """Append a message and bump the conversation's activity timestamp"""
    if not conversation.is_active:
        raise ConversationEndedError(conversation.id)

    now = datetime.utcnow()
    message = Message(conversation_id=conversation.id, content=content, sender=sender, timestamp=now)
    db.add(message)
    conversation.updated_at = now
    db.commit()
    db.refresh(message)
    return message


def end_conversation(db: Session, conversation: Conversation) -> Tuple[Conversation, bool]:
    """
    Close a conversation

    Returns:
        (conversation, whether this call closed it); closing twice keeps the first ended_at
    """
    if not conversation.is_active:
        return conversation, False

    now = datetime.utcnow()
    conversation.ended_at = now
    conversation.updated_at = now
    db.commit()
    db.refresh(conversation)
    return conversation, True
