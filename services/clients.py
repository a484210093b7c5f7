"""
Process scoped API clients for Renoir.

Each client is created on first use and shared for the life of the process.
Handlers receive them through FastAPI dependencies so tests can swap them out
with ``app.dependency_overrides``. Supabase Auth calls get a fresh client
per request instead.
"""
import os
import logging
import threading
from typing import Callable, Generic, Optional, Tuple, TypeVar

import replicate
import stripe
from dotenv import load_dotenv
from supabase import create_client, Client, ClientOptions

from services.errors import ConfigurationError

load_dotenv()

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LazyClient(Generic[T]):
    """Build a client once, even when the first calls race."""

    def __init__(self, name: str, factory: Callable[[], T]):
        self.name = name
        self._factory = factory
        self._instance: Optional[T] = None
        self._lock = threading.Lock()

    def get(self) -> T:
        if self._instance is None:
            with self._lock:
                if self._instance is None:
                    self._instance = self._factory()
                    logger.info(f"✅ {self.name} client initialized")
        return self._instance

    def reset(self):
        with self._lock:
            self._instance = None


def _supabase_credentials() -> Tuple[str, str]:
    supabase_url = os.getenv("SUPABASE_URL")
    supabase_key = os.getenv("SUPABASE_SERVICE_KEY")
    if not supabase_url or not supabase_key:
        logger.error("SUPABASE_URL or SUPABASE_SERVICE_KEY is not set")
        raise ConfigurationError("Database is not configured")
    return supabase_url, supabase_key


def _build_supabase() -> Client:
    return create_client(*_supabase_credentials())


def _build_stripe() -> stripe.StripeClient:
    secret_key = os.getenv("STRIPE_SECRET_KEY")
    if not secret_key:
        logger.error("STRIPE_SECRET_KEY is not set")
        raise ConfigurationError("Billing is not configured")
    return stripe.StripeClient(secret_key)


def _build_replicate() -> replicate.Client:
    api_token = os.getenv("REPLICATE_API_TOKEN")
    if not api_token:
        logger.error("REPLICATE_API_TOKEN is not set")
        raise ConfigurationError("Image generation is not configured")
    return replicate.Client(api_token=api_token)


supabase_client = LazyClient("Supabase", _build_supabase)
stripe_client = LazyClient("Stripe", _build_stripe)
replicate_client = LazyClient("Replicate", _build_replicate)


def get_supabase() -> Client:
    return supabase_client.get()


def get_auth_client() -> Client:
    """
    Build a throwaway client for Supabase Auth calls made for an end user.

    Signing in writes the user's access token into the client's headers, so
    these calls must never run on the shared service client.
    """
    return create_client(
        *_supabase_credentials(),
        options=ClientOptions(persist_session=False, auto_refresh_token=False),
    )


def get_stripe() -> stripe.StripeClient:
    return stripe_client.get()


def get_replicate() -> replicate.Client:
    return replicate_client.get()
