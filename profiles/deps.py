from fastapi import Depends
from sqlalchemy import orm

from config.database import get_db
from models import Profile
from shared_utils.auth import CurrentUser, get_current_user
from .crud import ensure_profile


def get_current_profile(
    user: CurrentUser = Depends(get_current_user),
    db: orm.Session = Depends(get_db)
) -> Profile:
    """Profile of the authenticated caller, created from the token claims when missing"""
    return ensure_profile(db, user)
