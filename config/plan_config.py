# config/plan_config.py

import os
from typing import Dict, Any, Optional

# Quota granted when a price id cannot be matched to a plan
DEFAULT_QUOTA_LIMIT = 50

PLAN_CONFIG: Dict[str, Dict[str, Any]] = {
    "basic": {
        "name": "Basic",
        "price_env": "STRIPE_PRICE_BASIC",
        "quota_limit": 50,
    },
    "pro": {
        "name": "Pro",
        "price_env": "STRIPE_PRICE_PRO",
        "quota_limit": 200,
    },
}

# Statuses that grant access to generation
ACTIVE_STATUSES = {"active", "trialing", "past_due"}


def get_price_id(plan: str) -> Optional[str]:
    """Return the configured Stripe price id for a plan name, if any."""
    plan_config = PLAN_CONFIG.get((plan or "").strip().lower())
    if not plan_config:
        return None
    return os.getenv(plan_config["price_env"]) or None


def get_configured_price_ids() -> Dict[str, str]:
    """Map every configured price id to its plan name."""
    price_ids = {}
    for plan in PLAN_CONFIG:
        price_id = get_price_id(plan)
        if price_id:
            price_ids[price_id] = plan
    return price_ids


def get_plan_for_price(price_id: Optional[str]) -> Optional[str]:
    if not price_id:
        return None
    return get_configured_price_ids().get(price_id)


def resolve_quota_limit(price_id: Optional[str]) -> int:
    """Resolve the monthly quota for a Stripe price id, falling back to the default."""
    plan = get_plan_for_price(price_id)
    if plan is None:
        return DEFAULT_QUOTA_LIMIT
    return PLAN_CONFIG[plan]["quota_limit"]


def is_active_status(status: Optional[str]) -> bool:
    if not status:
        return False
    return status.lower() in ACTIVE_STATUSES
