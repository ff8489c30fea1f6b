from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from config.database import Base
from datetime import datetime
from uuid import uuid4


class ConversationInsight(Base):
    __tablename__ = "conversation_insights"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    conversation_id = Column(String(36), ForeignKey("conversations.id", ondelete="SET NULL"), nullable=True)
    crush_id = Column(String(36), ForeignKey("crushes.id", ondelete="SET NULL"), nullable=True)
    insight_type = Column(String(50), nullable=False)  # improvement_tip | relationship_analysis | next_steps
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    score = Column(Integer, default=0)  # 0-100
    created_at = Column(DateTime, default=datetime.utcnow)

    owner = relationship("Profile", back_populates="insights")
