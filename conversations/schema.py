from enum import Enum
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

CRYSTAL_CHAT = "crystal_chat"


class Sender(str, Enum):
    USER = "user"
    CRYSTAL = "crystal"


class ConversationCreate(BaseModel):
    crush_id: Optional[str] = None
    type: str = CRYSTAL_CHAT


class MessageCreate(BaseModel):
    content: str = Field(..., min_length=1)
    sender: Sender = Sender.USER


class ChatTurnRequest(BaseModel):
    content: str = ""
    image_url: Optional[str] = None
    image_base64: Optional[str] = None


class MessageResponse(BaseModel):
    id: str
    conversation_id: str
    content: str
    sender: str
    timestamp: Optional[datetime] = None

    class Config:
        from_attributes = True


class CrushSummary(BaseModel):
    id: str
    name: str
    age: Optional[int] = None
    current_stage: Optional[str] = None

    class Config:
        from_attributes = True


class ConversationResponse(BaseModel):
    id: str
    user_id: str
    crush_id: Optional[str] = None
    type: Optional[str] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    is_active: bool = True
    updated_at: Optional[datetime] = None
    crush: Optional[CrushSummary] = None

    class Config:
        from_attributes = True


class ConversationWithMessages(ConversationResponse):
    messages: List[MessageResponse] = []


class ConversationStats(BaseModel):
    total: int
    active: int
    with_crush: int
    crystal: int


class ConversationListResponse(BaseModel):
    conversations: List[ConversationResponse]
    stats: ConversationStats


class ChatTurnResponse(BaseModel):
    user_message: MessageResponse
    crystal_message: Optional[MessageResponse] = None
    warning: Optional[str] = None
