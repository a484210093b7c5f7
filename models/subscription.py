"""
Subscription model for Renoir
"""
from pydantic import BaseModel
from typing import Optional

from config.plan_config import is_active_status


class Subscription(BaseModel):
    """A row of the ``subscriptions`` table (the quota ledger)."""
    id: Optional[str] = None
    user_id: Optional[str] = None
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    stripe_price_id: Optional[str] = None
    # Stored verbatim from Stripe
    status: Optional[str] = None
    current_period_start: Optional[str] = None
    current_period_end: Optional[str] = None
    quota_limit: Optional[int] = None
    quota_used: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return is_active_status(self.status)

    @property
    def remaining(self) -> int:
        if not self.is_active:
            return 0
        return max(0, (self.quota_limit or 0) - (self.quota_used or 0))


class SubscriptionResponse(BaseModel):
    status: Optional[str] = None
    stripe_price_id: Optional[str] = None
    plan: Optional[str] = None
    current_period_start: Optional[str] = None
    current_period_end: Optional[str] = None
    quota_limit: int = 0
    quota_used: int = 0
    remaining: int = 0
    is_active: bool = False


class CheckoutRequest(BaseModel):
    plan: Optional[str] = None
    priceId: Optional[str] = None


class SessionUrlResponse(BaseModel):
    url: str
