from sqlalchemy import Column, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from config.database import Base
from datetime import datetime
from uuid import uuid4


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    crush_id = Column(String(36), ForeignKey("crushes.id", ondelete="SET NULL"), nullable=True)
    type = Column(String(50), default="crystal_chat", nullable=True)
    started_at = Column(DateTime, default=datetime.utcnow)
    # Null while the conversation is open
    ended_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner = relationship("Profile", back_populates="conversations")
    crush = relationship("Crush", back_populates="conversations")
    messages = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="Message.timestamp"
    )

    @property
    def is_active(self) -> bool:
        return self.ended_at is None


class Message(Base):
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    conversation_id = Column(String(36), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    sender = Column(String(20), nullable=False)  # "user" | "crystal"
    timestamp = Column(DateTime, default=datetime.utcnow, index=True)

    conversation = relationship("Conversation", back_populates="messages")
