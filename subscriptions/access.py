"""
Subscription access predicates and the server-side plan guard.
"""
import math
from datetime import datetime
from typing import Callable, Dict, Optional

from fastapi import Depends, HTTPException
from sqlalchemy import orm

from config.database import get_db
from models import Profile
from profiles.deps import get_current_profile
from .models import Subscription

PREMIUM_PLANS = ("premium", "vip")
PLAN_LABELS = {"premium": "Premium", "vip": "VIP"}
FREE_LABEL = "Gratuito"


def has_active_subscription(subscription: Optional[Subscription], now: Optional[datetime] = None) -> bool:
    """Active status and either no expiry or an expiry still in the future"""
    if subscription is None:
        return False
    now = now or datetime.utcnow()
    not_expired = subscription.expires_at is None or subscription.expires_at > now
    return subscription.status == "active" and not_expired


def has_premium_access(subscription: Optional[Subscription], now: Optional[datetime] = None) -> bool:
    return has_active_subscription(subscription, now) and subscription.plan_type in PREMIUM_PLANS


def has_plan_access(subscription: Optional[Subscription], required_plan: str, now: Optional[datetime] = None) -> bool:
    if required_plan == "premium":
        return has_premium_access(subscription, now)
    if required_plan == "vip":
        return has_active_subscription(subscription, now) and subscription.plan_type == "vip"
    return False


def subscription_info(subscription: Optional[Subscription], now: Optional[datetime] = None) -> Dict:
    if subscription is None:
        return {"status": "free", "plan": FREE_LABEL, "can_upgrade": True, "days_left": None, "expires_at": None}

    now = now or datetime.utcnow()
    days_left = None
    if subscription.expires_at is not None:
        days = math.ceil((subscription.expires_at - now).total_seconds() / 86400)
        days_left = days if days > 0 else None

    return {
        "status": subscription.status,
        "plan": PLAN_LABELS.get(subscription.plan_type, FREE_LABEL),
        "can_upgrade": not has_active_subscription(subscription, now),
        "days_left": days_left,
        "expires_at": subscription.expires_at,
    }


def upgrade_prompt(required_plan: str, feature: str = "este recurso") -> Dict:
    label = PLAN_LABELS.get(required_plan, "Premium")
    benefits = ["Recursos avançados da Crystal", "Analytics detalhados", "Suporte prioritário"]
    if required_plan == "vip":
        benefits.append("Funcionalidades exclusivas VIP")
    return {
        "title": f"{feature[:1].upper()}{feature[1:]} Premium",
        "message": f"Desbloqueie {feature} com uma assinatura {label}",
        "required_plan": label,
        "benefits": benefits,
    }


def get_subscription(db: orm.Session, user_id: str) -> Optional[Subscription]:
    return db.query(Subscription).filter(Subscription.user_id == user_id).first()


def require_plan(plan: str = "premium", feature: str = "este recurso") -> Callable:
    """FastAPI dependency factory: 403 with an upgrade prompt unless the caller holds `plan`"""

    def guard(profile: Profile = Depends(get_current_profile), db: orm.Session = Depends(get_db)) -> Profile:
        if not has_plan_access(get_subscription(db, profile.id), plan):
            raise HTTPException(
                status_code=403,
                detail={"error": "subscription_required", "upgrade_prompt": upgrade_prompt(plan, feature)}
            )
        return profile

    return guard
