from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class UserSettingsBase(BaseModel):
    personality_safada: int = Field(50, ge=0, le=100)
    personality_fofa: int = Field(50, ge=0, le=100)
    personality_conscious: int = Field(50, ge=0, le=100)
    personality_calma: int = Field(50, ge=0, le=100)
    behavior_palavrao: bool = False
    behavior_humor: bool = True
    behavior_direta: bool = False
    behavior_romantica: bool = True
    custom_prompt: Optional[str] = ""


class UserSettingsUpdate(UserSettingsBase):
    pass


class UserSettingsResponse(UserSettingsBase):
    user_id: str
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
