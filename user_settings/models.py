from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Boolean
from sqlalchemy.orm import relationship
from config.database import Base
from datetime import datetime


class UserSettings(Base):
    __tablename__ = "user_settings"

    user_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True)
    # Persona sliders, 0-100
    personality_safada = Column(Integer, default=50)
    personality_fofa = Column(Integer, default=50)
    personality_conscious = Column(Integer, default=50)
    personality_calma = Column(Integer, default=50)
    behavior_palavrao = Column(Boolean, default=False)
    behavior_humor = Column(Boolean, default=True)
    behavior_direta = Column(Boolean, default=False)
    behavior_romantica = Column(Boolean, default=True)
    custom_prompt = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner = relationship("Profile", back_populates="settings")
