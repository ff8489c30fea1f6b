from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy import orm
import logging

from config.database import get_db
from models import Profile
from profiles.crud import get_profile, get_profile_by_email
from profiles.deps import get_current_profile
from webhooks.events import publish_event
from webhooks.dispatcher import schedule_delivery
from . import crud
from .access import (
    get_subscription, has_active_subscription, has_premium_access,
    has_plan_access, subscription_info, upgrade_prompt,
)
from .feed import subscription_feed
from .schema import (
    SubscriptionStatus, AccessDecision, PurchaseListResponse,
    ActiveSubscriptionCheck, PaymentWebhookPayload,
)

router = APIRouter(tags=["Subscription"])
logger = logging.getLogger(__name__)


@router.get("/subscription", response_model=SubscriptionStatus)
def read_subscription(profile: Profile = Depends(get_current_profile), db: orm.Session = Depends(get_db)):
    try:
        subscription = get_subscription(db, profile.id)
    except Exception as e:
        logger.error(f"Error fetching subscription for {profile.id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Erro ao carregar assinatura")

    return {
        "subscription": subscription,
        "has_active_subscription": has_active_subscription(subscription),
        "has_premium_access": has_premium_access(subscription),
        "subscription_info": subscription_info(subscription),
    }


@router.get("/subscription/access", response_model=AccessDecision)
def check_access(
    plan: str = "premium",
    feature: str = "este recurso",
    profile: Profile = Depends(get_current_profile),
    db: orm.Session = Depends(get_db)
):
    if plan not in ("premium", "vip"):
        raise HTTPException(status_code=400, detail="Plano inválido")

    allowed = has_plan_access(get_subscription(db, profile.id), plan)
    return {
        "allowed": allowed,
        "required_plan": plan,
        "upgrade_prompt": None if allowed else upgrade_prompt(plan, feature),
    }


@router.get("/subscription/changes")
async def subscription_changes(profile: Profile = Depends(get_current_profile)):
    """Server-Sent Events: one `subscription_changed` notification per write to the caller's row"""
    return StreamingResponse(
        subscription_feed.stream(profile.id),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}
    )


@router.get("/subscription/purchases", response_model=PurchaseListResponse)
def read_purchases(profile: Profile = Depends(get_current_profile), db: orm.Session = Depends(get_db)):
    return {"purchases": crud.list_purchases(db, profile.id)}


@router.post("/rpc/user_has_active_subscription")
def rpc_user_has_active_subscription(
    payload: ActiveSubscriptionCheck,
    profile: Profile = Depends(get_current_profile),
    db: orm.Session = Depends(get_db)
) -> bool:
    if payload.check_user_id != profile.id:
        raise HTTPException(status_code=403, detail="Acesso negado")
    return crud.user_has_active_subscription(db, payload.check_user_id)


@router.post("/payment-webhook")
def payment_webhook(
    payload: PaymentWebhookPayload,
    background_tasks: BackgroundTasks,
    db: orm.Session = Depends(get_db)
):
    """Payment-provider callback; identifies the user by id or by profile email"""
    logger.info(f"Payment webhook received: {payload.event_type}")

    if payload.user_id:
        profile = get_profile(db, payload.user_id)
    elif payload.user_email:
        profile = get_profile_by_email(db, payload.user_email)
    else:
        return JSONResponse(status_code=400, content={"error": "User ID or email required", "success": False})

    if profile is None:
        logger.error(f"Payment webhook: user not found ({payload.user_id or payload.user_email})")
        return JSONResponse(status_code=404, content={"error": "User not found", "success": False})

    try:
        change = crud.apply_payment_event(db, profile.id, payload)
    except Exception as e:
        db.rollback()
        logger.error(f"Payment webhook error for {profile.id}: {str(e)}")
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to update subscription", "details": str(e), "success": False}
        )

    if change:
        subscription_feed.notify(profile.id, change)

    publish_event(
        "payment_processed",
        {**payload.model_dump(exclude_none=True), "plan_type": payload.plan_type, "status": payload.payment_status},
        profile.id, profile.email
    )
    schedule_delivery(background_tasks)

    return {
        "success": True,
        "message": "Payment processed successfully",
        "user_id": profile.id,
        "event_type": payload.event_type,
    }
