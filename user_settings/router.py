from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import orm
import logging

from config.database import get_db
from models import Profile
from profiles.deps import get_current_profile
from . import crud
from .schema import UserSettingsResponse, UserSettingsUpdate

router = APIRouter(tags=["Personalization"])
logger = logging.getLogger(__name__)


@router.get("/user-settings", response_model=UserSettingsResponse)
def read_settings(profile: Profile = Depends(get_current_profile), db: orm.Session = Depends(get_db)):
    return crud.get_settings_or_defaults(db, profile.id)


@router.put("/user-settings", response_model=UserSettingsResponse)
def save_settings(
    data: UserSettingsUpdate,
    profile: Profile = Depends(get_current_profile),
    db: orm.Session = Depends(get_db)
):
    try:
        settings = crud.upsert_settings(db, profile.id, data)
    except Exception as e:
        db.rollback()
        logger.error(f"Error saving settings for {profile.id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Erro ao salvar configurações")

    logger.info(f"Settings saved for {profile.id}")
    return settings
