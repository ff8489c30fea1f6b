from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime

INSIGHT_TYPES = ("improvement_tip", "relationship_analysis", "next_steps")


class InsightResponse(BaseModel):
    id: str
    user_id: str
    conversation_id: Optional[str] = None
    crush_id: Optional[str] = None
    insight_type: str
    title: str
    content: str
    score: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class InsightStats(BaseModel):
    total: int
    improvement_tips: int
    relationship_analysis: int
    next_steps: int
    avg_score: int


class InsightListResponse(BaseModel):
    insights: List[InsightResponse]
    stats: InsightStats


class CrushRef(BaseModel):
    name: Optional[str] = None


class ConversationMessage(BaseModel):
    sender: str
    content: Optional[str] = ""
    timestamp: Optional[str] = None


class ConversationPayload(BaseModel):
    """A conversation as the client sends it for analysis"""
    id: Optional[str] = None
    type: Optional[str] = None
    crush_id: Optional[str] = None
    crushes: Optional[CrushRef] = None
    messages: List[ConversationMessage] = []


class GenerateInsightsRequest(BaseModel):
    conversations: Optional[List[ConversationPayload]] = None
    userId: Optional[str] = None


class GenerateInsightsResponse(BaseModel):
    success: bool
    insights: List[InsightResponse]
    count: int
