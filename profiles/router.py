from fastapi import APIRouter, Depends
from sqlalchemy import orm
import logging

from config.database import get_db
from models import Profile
from shared_utils.auth import CurrentUser, get_current_user
from . import crud
from .deps import get_current_profile
from .schema import ProfileResponse, ProfileUpdate

router = APIRouter(prefix="/profile", tags=["Profile"])
logger = logging.getLogger(__name__)


@router.post("/sign-in", response_model=ProfileResponse)
def sign_in(user: CurrentUser = Depends(get_current_user), db: orm.Session = Depends(get_db)):
    """Called by the client right after sign-in/sign-up; creating twice is a no-op"""
    return crud.ensure_profile(db, user)


@router.get("", response_model=ProfileResponse)
def read_profile(profile: Profile = Depends(get_current_profile)):
    return profile


@router.patch("", response_model=ProfileResponse)
def patch_profile(
    update: ProfileUpdate,
    profile: Profile = Depends(get_current_profile),
    db: orm.Session = Depends(get_db)
):
    profile = crud.update_profile(db, profile, update)
    logger.info(f"Profile {profile.id} updated")
    return profile
