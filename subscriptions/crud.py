from sqlalchemy.orm import Session
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import uuid4
import logging

from .models import Subscription, Purchase
from .schema import PaymentEventType, PaymentWebhookPayload
from .access import get_subscription, has_active_subscription, PLAN_LABELS

logger = logging.getLogger(__name__)

SUBSCRIPTION_TERM = timedelta(days=365)


def list_purchases(db: Session, user_id: str) -> List[Purchase]:
    return (
        db.query(Purchase)
        .filter(Purchase.user_id == user_id)
        .order_by(Purchase.purchase_date.desc())
        .all()
    )


def _merged_payment_data(subscription: Subscription, incoming: Optional[dict], **markers) -> dict:
    return {**(subscription.payment_data or {}), **(incoming or {}), **markers}


def activate_subscription(db: Session, user_id: str, payload: PaymentWebhookPayload, now: datetime) -> Subscription:
    """Upsert an active one-year subscription for the user"""
    subscription = get_subscription(db, user_id)
    if subscription is None:
        subscription = Subscription(user_id=user_id)
        db.add(subscription)

    subscription.plan_type = payload.plan_type
    subscription.status = "active"
    subscription.started_at = now
    subscription.expires_at = now + SUBSCRIPTION_TERM
    subscription.external_id = payload.external_id or payload.transaction_id
    subscription.payment_data = payload.payment_data or {
        "transaction_id": payload.transaction_id,
        "payment_status": payload.payment_status,
        "processed_at": now.isoformat(),
    }
    return subscription


def record_purchase(db: Session, user_id: str, payload: PaymentWebhookPayload, now: datetime) -> Purchase:
    purchase = Purchase(
        user_id=user_id,
        product=payload.product or f"Crystal.AI {PLAN_LABELS.get(payload.plan_type, payload.plan_type)}",
        plan=payload.plan_type,
        value=payload.value or 0,
        payment_status=payload.payment_status or "completed",
        transaction_id=payload.transaction_id or payload.external_id or str(uuid4()),
        purchase_date=now,
    )
    db.add(purchase)
    return purchase


def apply_payment_event(db: Session, user_id: str, payload: PaymentWebhookPayload) -> Optional[str]:
    """
    Apply one payment-provider event to the user's subscription row

    Returns:
        the change applied, or None when the event type is unknown or there was no row to change
    """
    now = datetime.utcnow()
    event_type = payload.event_type

    if event_type in (PaymentEventType.PAYMENT_COMPLETED.value, PaymentEventType.SUBSCRIPTION_ACTIVATED.value):
        activate_subscription(db, user_id, payload, now)
        if event_type == PaymentEventType.PAYMENT_COMPLETED.value:
            record_purchase(db, user_id, payload, now)
        db.commit()
        logger.info(f"Subscription activated for user {user_id} ({payload.plan_type})")
        return "activated"

    if event_type in (PaymentEventType.PAYMENT_FAILED.value, PaymentEventType.SUBSCRIPTION_CANCELLED.value):
        subscription = get_subscription(db, user_id)
        if subscription is None:
            logger.warning(f"{event_type} for user {user_id} without a subscription row")
            return None
        subscription.status = "inactive" if event_type == PaymentEventType.PAYMENT_FAILED.value else "cancelled"
        subscription.payment_data = _merged_payment_data(
            subscription, payload.payment_data, cancelled_at=now.isoformat(), reason=event_type
        )
        db.commit()
        logger.info(f"Subscription deactivated for user {user_id} ({subscription.status})")
        return subscription.status

    if event_type == PaymentEventType.SUBSCRIPTION_RENEWED.value:
        subscription = get_subscription(db, user_id)
        if subscription is None:
            logger.warning(f"{event_type} for user {user_id} without a subscription row")
            return None
        subscription.expires_at = now + SUBSCRIPTION_TERM
        subscription.payment_data = _merged_payment_data(
            subscription, payload.payment_data, renewed_at=now.isoformat(), transaction_id=payload.transaction_id
        )
        db.commit()
        logger.info(f"Subscription renewed for user {user_id} until {subscription.expires_at}")
        return "renewed"

    logger.warning(f"Unknown event type: {event_type}")
    return None


def user_has_active_subscription(db: Session, user_id: str) -> bool:
    """Same predicate as the database function user_has_active_subscription(check_user_id)"""
    return has_active_subscription(get_subscription(db, user_id))
