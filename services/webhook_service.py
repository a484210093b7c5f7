"""
Stripe webhook reconciliation for Renoir.

Subscription state is only ever written from verified Stripe events, never
from client requests. Every handler upserts or updates by Stripe customer id,
so redelivered or reordered events converge on the same row.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import stripe

from config.plan_config import resolve_quota_limit
from services.errors import RenoirError, ValidationFailed
from services.ledger_service import LedgerService

logger = logging.getLogger(__name__)


def _first_item(obj: Dict[str, Any], key: str) -> Dict[str, Any]:
    items = ((obj.get(key) or {}).get("data")) or []
    return items[0] if items else {}


def _epoch_to_iso(value: Optional[int]) -> Optional[str]:
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc).isoformat()


class StripeWebhookService:
    def __init__(self, ledger: LedgerService, webhook_secret: Optional[str]):
        self.ledger = ledger
        self.webhook_secret = webhook_secret
        self.event_handlers = {
            "checkout.session.completed": self._handle_checkout_completed,
            "customer.subscription.created": self._handle_subscription_changed,
            "customer.subscription.updated": self._handle_subscription_changed,
            "customer.subscription.deleted": self._handle_subscription_deleted,
            "invoice.payment_succeeded": self._handle_payment_succeeded,
        }

    def verify_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Verify the ``stripe-signature`` header and parse the event body.

        Raises:
            ValidationFailed: If the signature or secret is missing or invalid
        """
        if not signature or not self.webhook_secret:
            logger.warning("Stripe webhook rejected: missing signature or webhook secret")
            raise ValidationFailed("Missing signature")

        try:
            body = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(body, signature, self.webhook_secret)
            return json.loads(body)
        except stripe.SignatureVerificationError as e:
            logger.error(f"Webhook signature verification failed: {str(e)}")
            raise ValidationFailed(f"Webhook Error: {str(e)}")
        except ValueError as e:
            logger.error(f"Webhook payload could not be parsed: {str(e)}")
            raise ValidationFailed(f"Webhook Error: {str(e)}")

    async def handle_event(self, event: Dict[str, Any]) -> bool:
        """
        Apply a verified event to the ledger.

        Returns True when the event type is handled, False for ignored types.
        """
        event_type = event.get("type")
        event_object = (event.get("data") or {}).get("object") or {}

        handler = self.event_handlers.get(event_type)
        if handler is None:
            logger.debug(f"Ignoring Stripe event {event_type}")
            return False

        logger.info(f"Processing webhook event: {event_type} ({event.get('id')})")
        try:
            await handler(event_object)
        except Exception as e:
            logger.error(f"Webhook handling error for {event_type}: {str(e)}", exc_info=True)
            raise RenoirError("Handler error")
        return True

    async def process(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        event = self.verify_event(payload, signature)
        await self.handle_event(event)
        return {"received": True}

    async def _handle_checkout_completed(self, session: Dict[str, Any]):
        """Mark the customer active; the subscription events fill in the rest"""
        line_item = _first_item(session, "line_items")
        price_id = (
            (line_item.get("price") or {}).get("id")
            or (session.get("metadata") or {}).get("price_id")
            or None
        )
        await self.ledger.upsert_by_customer({
            "stripe_customer_id": session.get("customer"),
            "stripe_subscription_id": session.get("subscription") or None,
            "stripe_price_id": price_id,
            "status": "active",
        })
        logger.info(f"Checkout completed for customer {session.get('customer')}")

    async def _handle_subscription_changed(self, subscription: Dict[str, Any]):
        item = _first_item(subscription, "items")
        price_id = (item.get("price") or {}).get("id")

        # Newer API versions moved the billing period onto the subscription items
        period_start = subscription.get("current_period_start") or item.get("current_period_start")
        period_end = subscription.get("current_period_end") or item.get("current_period_end")

        await self.ledger.upsert_by_customer({
            "stripe_customer_id": subscription.get("customer"),
            "stripe_subscription_id": subscription.get("id"),
            "stripe_price_id": price_id,
            "status": subscription.get("status"),
            "current_period_start": _epoch_to_iso(period_start),
            "current_period_end": _epoch_to_iso(period_end),
            "quota_limit": resolve_quota_limit(price_id),
        })
        logger.info(
            f"Subscription {subscription.get('id')} for customer {subscription.get('customer')} "
            f"is {subscription.get('status')}"
        )

    async def _handle_subscription_deleted(self, subscription: Dict[str, Any]):
        await self.ledger.update_by_customer(subscription.get("customer"), {"status": "canceled"})
        logger.info(f"Subscription canceled for customer {subscription.get('customer')}")

    async def _handle_payment_succeeded(self, invoice: Dict[str, Any]):
        # A paid invoice opens a new billing period
        await self.ledger.update_by_customer(invoice.get("customer"), {"quota_used": 0})
        logger.info(f"Quota reset for customer {invoice.get('customer')}")
