import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import Profile
from shared_utils.auth import CurrentUser
from .schema import ProfileUpdate, normalize_phone

logger = logging.getLogger(__name__)


def get_profile(db: Session, user_id: str) -> Optional[Profile]:
    return db.query(Profile).filter(Profile.id == user_id).first()


def get_profile_by_email(db: Session, email: str) -> Optional[Profile]:
    return db.query(Profile).filter(Profile.email == email).first()


def ensure_profile(db: Session, user: CurrentUser) -> Profile:
    """
    Create the profile for a token identity on first sight; an existing row is returned as is

    Name comes from the provider's full_name metadata, falling back to the email local part.
    """
    profile = get_profile(db, user.id)
    if profile:
        return profile

    metadata = user.user_metadata or {}
    email = user.email or metadata.get("email") or ""
    name = metadata.get("full_name") or metadata.get("name") or (email.split("@")[0] if email else None)

    profile = Profile(
        id=user.id,
        email=email,
        name=name,
        phone=normalize_phone(metadata.get("phone")),
    )
    db.add(profile)
    try:
        db.commit()
    except IntegrityError:
        # Another request created it first
        db.rollback()
        return get_profile(db, user.id)

    db.refresh(profile)
    logger.info(f"Profile created for user {user.id}")
    return profile


def update_profile(db: Session, profile: Profile, update: ProfileUpdate) -> Profile:
    for key, value in update.model_dump(exclude_unset=True).items():
        setattr(profile, key, value)
    db.commit()
    db.refresh(profile)
    return profile
