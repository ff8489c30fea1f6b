from enum import Enum
from pydantic import BaseModel
from typing import Any, Dict, List, Optional
from datetime import datetime


class PaymentEventType(str, Enum):
    PAYMENT_COMPLETED = "payment_completed"
    SUBSCRIPTION_ACTIVATED = "subscription_activated"
    PAYMENT_FAILED = "payment_failed"
    SUBSCRIPTION_CANCELLED = "subscription_cancelled"
    SUBSCRIPTION_RENEWED = "subscription_renewed"


class SubscriptionResponse(BaseModel):
    id: str
    user_id: str
    plan_type: str
    status: str
    started_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    external_id: Optional[str] = None
    payment_data: Optional[Dict[str, Any]] = None

    class Config:
        from_attributes = True


class SubscriptionInfo(BaseModel):
    status: str
    plan: str
    can_upgrade: bool
    days_left: Optional[int] = None
    expires_at: Optional[datetime] = None


class SubscriptionStatus(BaseModel):
    subscription: Optional[SubscriptionResponse] = None
    has_active_subscription: bool
    has_premium_access: bool
    subscription_info: SubscriptionInfo


class AccessDecision(BaseModel):
    allowed: bool
    required_plan: str
    upgrade_prompt: Optional[Dict[str, Any]] = None


class PurchaseResponse(BaseModel):
    id: str
    product: str
    plan: str
    value: float
    payment_status: str
    transaction_id: str
    purchase_date: Optional[datetime] = None

    class Config:
        from_attributes = True


class PurchaseListResponse(BaseModel):
    purchases: List[PurchaseResponse]


class ActiveSubscriptionCheck(BaseModel):
    check_user_id: str


class PaymentWebhookPayload(BaseModel):
    event_type: str
    user_email: Optional[str] = None
    user_id: Optional[str] = None
    plan_type: str = "premium"
    payment_status: Optional[str] = None
    transaction_id: Optional[str] = None
    payment_data: Optional[Dict[str, Any]] = None
    external_id: Optional[str] = None
    product: Optional[str] = None
    value: Optional[float] = None
