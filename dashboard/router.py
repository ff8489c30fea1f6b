from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import orm
from typing import Any, Dict, List, Optional
from datetime import datetime
import logging

from config.database import get_db
from models import Profile
from profiles.deps import get_current_profile
from profiles.schema import ProfileResponse
from webhooks.events import publish_event
from webhooks.dispatcher import schedule_delivery
from .service import build_dashboard

router = APIRouter(tags=["Dashboard"])
logger = logging.getLogger(__name__)


class DashboardStats(BaseModel):
    active_crushes: int
    pending_messages: int
    total_conversations: int
    success_rate: int


class Activity(BaseModel):
    id: str
    type: str
    title: str
    description: str
    timestamp: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None


class DashboardResponse(BaseModel):
    profile: ProfileResponse
    stats: DashboardStats
    suggestion: Dict[str, str]
    recent_activity: List[Activity]


@router.get("/dashboard", response_model=DashboardResponse)
def get_dashboard(
    background_tasks: BackgroundTasks,
    profile: Profile = Depends(get_current_profile),
    db: orm.Session = Depends(get_db)
):
    try:
        dashboard = build_dashboard(db, profile)
    except Exception as e:
        logger.error(f"Error fetching dashboard stats for {profile.id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Erro ao carregar dashboard")

    publish_event("dashboard_viewed", {"stats": dashboard["stats"]}, profile.id, profile.email)
    schedule_delivery(background_tasks)
    return dashboard
