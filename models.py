from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship
from config.database import Base
from datetime import datetime


class Profile(Base):
    __tablename__ = "profiles"

    # Same id as the auth provider's user identity
    id = Column(String(36), primary_key=True)
    email = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    crushes = relationship("Crush", back_populates="owner", cascade="all, delete-orphan")
    conversations = relationship("Conversation", back_populates="owner", cascade="all, delete-orphan")
    subscription = relationship("Subscription", back_populates="owner", uselist=False)
    purchases = relationship("Purchase", back_populates="owner")
    settings = relationship("UserSettings", back_populates="owner", uselist=False)
    insights = relationship("ConversationInsight", back_populates="owner")

    def __repr__(self):
        return f"<Profile(id={self.id}, email={self.email})>"


# Register the feature models so every relationship above resolves
from crushes.models import Crush
from conversations.models import Conversation, Message
from subscriptions.models import Subscription, Purchase
from user_settings.models import UserSettings
from insights.models import ConversationInsight
