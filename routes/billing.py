"""
Billing routes for Renoir subscription management
"""
import os
import logging

import stripe
from fastapi import APIRouter, Depends, Request
from supabase import Client

from auth.dependencies import get_current_user
from config.plan_config import get_plan_for_price
from models.subscription import CheckoutRequest, SessionUrlResponse, Subscription, SubscriptionResponse
from services.billing_service import BillingService
from services.clients import get_stripe, get_supabase
from services.ledger_service import LedgerService
from services.webhook_service import StripeWebhookService

router = APIRouter(prefix="/api", tags=["Billing"])
logger = logging.getLogger(__name__)


@router.post("/create-subscription-checkout", response_model=SessionUrlResponse)
async def create_checkout_session(
    request: CheckoutRequest,
    current_user: dict = Depends(get_current_user),
    stripe_client: stripe.StripeClient = Depends(get_stripe),
    supabase: Client = Depends(get_supabase)
):
    """
    Create Stripe checkout session for subscription
    """
    billing_service = BillingService(stripe_client, LedgerService(supabase))
    price_id = billing_service.resolve_price(plan=request.plan, price_id=request.priceId)

    checkout_url = await billing_service.create_checkout_session(
        current_user["id"],
        current_user.get("email"),
        price_id
    )

    logger.info(f"Created checkout session for user {current_user['id']}, price: {price_id}")
    return SessionUrlResponse(url=checkout_url)


@router.post("/create-portal-session", response_model=SessionUrlResponse)
async def create_portal_session(
    current_user: dict = Depends(get_current_user),
    stripe_client: stripe.StripeClient = Depends(get_stripe),
    supabase: Client = Depends(get_supabase)
):
    """
    Create Stripe customer portal session
    """
    billing_service = BillingService(stripe_client, LedgerService(supabase))
    portal_url = await billing_service.create_portal_session(current_user["id"])
    return SessionUrlResponse(url=portal_url)


@router.get("/subscription", response_model=SubscriptionResponse)
async def get_subscription(
    current_user: dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase)
):
    """
    Get current user's subscription and remaining quota
    """
    row = await LedgerService(supabase).get_by_user(current_user["id"])
    if not row:
        return SubscriptionResponse()

    subscription = Subscription(**row)
    return SubscriptionResponse(
        status=subscription.status,
        stripe_price_id=subscription.stripe_price_id,
        plan=get_plan_for_price(subscription.stripe_price_id),
        current_period_start=subscription.current_period_start,
        current_period_end=subscription.current_period_end,
        quota_limit=subscription.quota_limit or 0,
        quota_used=subscription.quota_used or 0,
        remaining=subscription.remaining,
        is_active=subscription.is_active,
    )


@router.post("/webhooks/stripe")
async def stripe_webhook(request: Request, supabase: Client = Depends(get_supabase)):
    """
    Handle Stripe webhook events. Trust comes from the signature, not a session.
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    webhook_service = StripeWebhookService(LedgerService(supabase), os.getenv("STRIPE_WEBHOOK_SECRET"))
    return await webhook_service.process(payload, signature)
