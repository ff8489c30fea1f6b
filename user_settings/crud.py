from sqlalchemy.orm import Session
from typing import Optional

from .models import UserSettings
from .schema import UserSettingsBase, UserSettingsUpdate


def get_settings(db: Session, user_id: str) -> Optional[UserSettings]:
    return db.query(UserSettings).filter(UserSettings.user_id == user_id).first()


def get_settings_or_defaults(db: Session, user_id: str) -> dict:
    """Stored settings, or the defaults when the user never saved any"""
    settings = get_settings(db, user_id)
    if settings is None:
        return {"user_id": user_id, "updated_at": None, **UserSettingsBase().model_dump()}
    return {
        "user_id": settings.user_id,
        "updated_at": settings.updated_at,
        **{key: getattr(settings, key) for key in UserSettingsBase.model_fields},
    }


def upsert_settings(db: Session, user_id: str, data: UserSettingsUpdate) -> UserSettings:
    settings = get_settings(db, user_id)
    if settings is None:
        settings = UserSettings(user_id=user_id)
        db.add(settings)

    for key, value in data.model_dump().items():
        setattr(settings, key, value)

    db.commit()
    db.refresh(settings)
    return settings
