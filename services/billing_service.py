"""
Stripe checkout and billing portal bridge for Renoir
"""
import os
import logging
from typing import Optional

import stripe

from config.plan_config import get_configured_price_ids, get_price_id
from services.errors import RenoirError, ValidationFailed
from services.ledger_service import LedgerService

logger = logging.getLogger(__name__)


class BillingService:
    def __init__(self, stripe_client: stripe.StripeClient, ledger: LedgerService):
        self.stripe = stripe_client
        self.ledger = ledger
        self.public_url = os.getenv("PUBLIC_URL", "http://localhost:3000").rstrip("/")

    def resolve_price(self, plan: Optional[str] = None, price_id: Optional[str] = None) -> str:
        """
        Resolve the Stripe price for a checkout request.

        A plan name is mapped through the server side plan table. A raw price id
        is only accepted when it is one of the configured prices.
        """
        if plan:
            resolved = get_price_id(plan)
            if not resolved:
                raise ValidationFailed(f"Unknown or unconfigured plan '{plan}'")
            return resolved
        if price_id:
            if price_id not in get_configured_price_ids():
                raise ValidationFailed("Unknown priceId")
            return price_id
        raise ValidationFailed("priceId or plan required")

    async def get_or_create_customer(self, user_id: str, email: Optional[str]) -> str:
        """
        Get existing customer or create new one
        """
        customer_id = await self.ledger.get_customer_id(user_id)
        if customer_id:
            return customer_id

        params = {"metadata": {"user_id": user_id}}
        if email:
            params["email"] = email
        customer = self.stripe.customers.create(params=params)

        await self.ledger.link_customer(user_id, customer.id)
        logger.info(f"Created Stripe customer {customer.id} for user {user_id}")
        return customer.id

    async def create_checkout_session(self, user_id: str, email: Optional[str], price_id: str) -> str:
        """
        Create Stripe checkout session for subscription
        """
        try:
            customer_id = await self.get_or_create_customer(user_id, email)
            session = self.stripe.checkout.sessions.create(params={
                "mode": "subscription",
                "customer": customer_id,
                "line_items": [{"price": price_id, "quantity": 1}],
                "allow_promotion_codes": True,
                "metadata": {"user_id": user_id, "price_id": price_id},
                "success_url": f"{self.public_url}/dashboard",
                "cancel_url": f"{self.public_url}/pricing",
            })
            logger.info(f"Created checkout session {session.id} for user {user_id}")
            return session.url

        except stripe.StripeError as e:
            logger.error(f"Stripe error creating checkout session: {str(e)}")
            raise RenoirError(f"Payment error: {e.user_message or str(e)}")

    async def create_portal_session(self, user_id: str) -> str:
        """
        Create Stripe customer portal session
        """
        customer_id = await self.ledger.get_customer_id(user_id)
        if not customer_id:
            raise ValidationFailed("No customer")

        try:
            session = self.stripe.billing_portal.sessions.create(params={
                "customer": customer_id,
                "return_url": f"{self.public_url}/dashboard",
            })
            logger.info(f"Created portal session for user {user_id}")
            return session.url

        except stripe.StripeError as e:
            logger.error(f"Stripe error creating portal session: {str(e)}")
            raise RenoirError(f"Portal error: {e.user_message or str(e)}")
