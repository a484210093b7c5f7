"""
Quota ledger for Renoir: one ``subscriptions`` row per user
"""
from typing import Optional, Dict, Any
from datetime import datetime, timezone
import logging
from supabase import Client

logger = logging.getLogger(__name__)

SUBSCRIPTIONS_TABLE = "subscriptions"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class LedgerService:
    def __init__(self, supabase_client: Client):
        self.supabase = supabase_client

    def _table(self):
        return self.supabase.table(SUBSCRIPTIONS_TABLE)

    async def get_by_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Get the newest subscription row for a user
        """
        response = (
            self._table()
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(1)
            .maybe_single()
            .execute()
        )
        return response.data if response else None

    async def get_customer_id(self, user_id: str) -> Optional[str]:
        response = (
            self._table()
            .select("stripe_customer_id")
            .eq("user_id", user_id)
            .maybe_single()
            .execute()
        )
        if response and response.data:
            return response.data.get("stripe_customer_id")
        return None

    async def link_customer(self, user_id: str, customer_id: str) -> None:
        """Attach a Stripe customer to the user's row, creating the row if needed."""
        self._table().upsert(
            {"user_id": user_id, "stripe_customer_id": customer_id, "updated_at": _now()},
            on_conflict="user_id",
        ).execute()
        logger.info(f"Linked Stripe customer {customer_id} to user {user_id}")

    async def upsert_by_customer(self, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Upsert a row keyed by ``stripe_customer_id``
        """
        if not fields.get("stripe_customer_id"):
            raise ValueError("stripe_customer_id is required to upsert a subscription")

        data = dict(fields)
        data["updated_at"] = _now()
        response = self._table().upsert(data, on_conflict="stripe_customer_id").execute()
        return response.data[0] if response.data else None

    async def update_by_customer(self, customer_id: str, fields: Dict[str, Any]) -> int:
        """
        Update every row for a Stripe customer. Returns the number of rows touched.
        """
        data = dict(fields)
        data["updated_at"] = _now()
        response = self._table().update(data).eq("stripe_customer_id", customer_id).execute()
        updated = len(response.data) if response.data else 0
        if not updated:
            logger.warning(f"No subscription row found for customer {customer_id}")
        return updated

    async def ensure_user_record(self, user_id: str) -> bool:
        """
        Create a free record (no quota) for a user who has none yet.

        Returns True when a record was created.
        """
        existing = (
            self._table()
            .select("id")
            .eq("user_id", user_id)
            .maybe_single()
            .execute()
        )
        if existing and existing.data:
            return False

        now = _now()
        self._table().insert({
            "user_id": user_id,
            "stripe_customer_id": None,
            "stripe_subscription_id": None,
            "stripe_price_id": None,
            "status": None,
            "current_period_start": None,
            "current_period_end": None,
            "quota_limit": 0,
            "quota_used": 0,
            "created_at": now,
            "updated_at": now,
        }).execute()
        logger.info(f"Initialized subscription record for user {user_id}")
        return True

    async def set_quota_used(self, user_id: str, used: int) -> None:
        self._table().update({"quota_used": used, "updated_at": _now()}).eq("user_id", user_id).execute()

    async def increment_quota_used(self, user_id: str, by: int = 1) -> None:
        """
        Increment usage atomically through the ``increment_quota_used`` RPC,
        falling back to a read-modify-write update when the RPC is missing.
        """
        try:
            self.supabase.rpc("increment_quota_used", {"p_user_id": user_id, "p_by": by}).execute()
            return
        except Exception as e:
            logger.warning(f"increment_quota_used RPC unavailable, falling back to update: {e}")

        current = await self.get_by_user(user_id)
        used = (current or {}).get("quota_used") or 0
        await self.set_quota_used(user_id, used + by)
