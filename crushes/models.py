from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from config.database import Base
from datetime import datetime
from uuid import uuid4


class Crush(Base):
    __tablename__ = "crushes"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    age = Column(Integer, nullable=True)
    current_stage = Column(String(50), default="Primeiro Contato", nullable=True)
    interest_level = Column(Integer, default=50, nullable=True)  # 0-100
    # Rank inside the stage; kept contiguous from 0 by the reorder routine, not by a constraint
    position = Column(Integer, default=0, nullable=False)
    notes = Column(Text, nullable=True)
    photo_url = Column(String(500), nullable=True)
    photo_delete_hash = Column(String(255), nullable=True)
    last_interaction = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner = relationship("Profile", back_populates="crushes")
    conversations = relationship("Conversation", back_populates="crush")

    def __repr__(self):
        return f"<Crush(name={self.name}, stage={self.current_stage}, position={self.position})>"
