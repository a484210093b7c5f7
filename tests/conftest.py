"""Shared pytest fixtures for Renoir tests."""

import os
import io
import hmac
import time
import uuid
import hashlib
import tempfile
from types import SimpleNamespace
from typing import Any, Callable, Dict, Generator, List, Optional

import pytest
from fastapi.testclient import TestClient
from PIL import Image

os.environ.setdefault("LOG_FILE", os.path.join(tempfile.gettempdir(), "renoir-tests.log"))

import auth.middleware as auth_middleware_module  # noqa: E402
from auth.dependencies import get_current_user  # noqa: E402
from index import app  # noqa: E402
from services.clients import get_auth_client, get_replicate, get_stripe, get_supabase  # noqa: E402

PUBLIC_STORAGE_URL = "https://project.supabase.co/storage/v1/object/public"
WEBHOOK_SECRET = "whsec_test_secret"
JWT_SECRET = "test-jwt-secret-with-enough-length-for-hs256"


# ---------------------------------------------------------------------------
# In-memory Supabase
# ---------------------------------------------------------------------------

class FakeResponse:
    def __init__(self, data: Any):
        self.data = data


class FakeQuery:
    """Just enough of the postgrest query builder for the services."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.action = "select"
        self.columns = "*"
        self.payload: Any = None
        self.on_conflict: Optional[str] = None
        self.filters: List[tuple] = []
        self.order_by: Optional[tuple] = None
        self.limit_count: Optional[int] = None
        self.row_range: Optional[tuple] = None
        self.single_mode: Optional[str] = None

    def select(self, columns: str = "*"):
        self.action = "select"
        self.columns = columns
        return self

    def insert(self, data):
        self.action = "insert"
        self.payload = data
        return self

    def upsert(self, data, on_conflict: Optional[str] = None):
        self.action = "upsert"
        self.payload = data
        self.on_conflict = on_conflict
        return self

    def update(self, data):
        self.action = "update"
        self.payload = data
        return self

    def delete(self):
        self.action = "delete"
        return self

    def eq(self, column: str, value: Any):
        self.filters.append((column, value))
        return self

    def order(self, column: str, desc: bool = False):
        self.order_by = (column, desc)
        return self

    def limit(self, count: int):
        self.limit_count = count
        return self

    def range(self, start: int, end: int):
        self.row_range = (start, end)
        return self

    def maybe_single(self):
        self.single_mode = "maybe"
        return self

    def single(self):
        self.single_mode = "single"
        return self

    def _matches(self, row: Dict[str, Any]) -> bool:
        return all(row.get(column) == value for column, value in self.filters)

    def _project(self, row: Dict[str, Any]) -> Dict[str, Any]:
        if self.columns.strip() == "*":
            return dict(row)
        return {column.strip(): row.get(column.strip()) for column in self.columns.split(",")}

    def _insert_row(self, rows: List[Dict[str, Any]], data: Dict[str, Any]) -> Dict[str, Any]:
        row = dict(data)
        row.setdefault("id", str(uuid.uuid4()))
        rows.append(row)
        return dict(row)

    def execute(self):
        if self.table in self.db.failing_tables:
            raise Exception(f"relation '{self.table}' is unavailable")

        rows = self.db.tables.setdefault(self.table, [])

        if self.action == "insert":
            items = self.payload if isinstance(self.payload, list) else [self.payload]
            return FakeResponse([self._insert_row(rows, item) for item in items])

        if self.action == "upsert":
            key = self.on_conflict or "id"
            value = self.payload.get(key)
            for row in rows:
                if value is not None and row.get(key) == value:
                    row.update(self.payload)
                    return FakeResponse([dict(row)])
            return FakeResponse([self._insert_row(rows, self.payload)])

        matched = [row for row in rows if self._matches(row)]

        if self.action == "update":
            for row in matched:
                row.update(self.payload)
            return FakeResponse([dict(row) for row in matched])

        if self.action == "delete":
            self.db.tables[self.table] = [row for row in rows if not self._matches(row)]
            return FakeResponse([dict(row) for row in matched])

        if self.order_by:
            column, desc = self.order_by
            matched = sorted(matched, key=lambda row: row.get(column) or "", reverse=desc)
        if self.row_range:
            start, end = self.row_range
            matched = matched[start:end + 1]
        if self.limit_count is not None:
            matched = matched[:self.limit_count]

        projected = [self._project(row) for row in matched]
        if self.single_mode == "maybe":
            # postgrest returns no response at all for an empty maybe_single()
            return FakeResponse(projected[0]) if projected else None
        if self.single_mode == "single":
            if not projected:
                raise Exception("JSON object requested, multiple (or no) rows returned")
            return FakeResponse(projected[0])
        return FakeResponse(projected)


class FakeRpc:
    def __init__(self, db: "FakeSupabase", name: str, params: Dict[str, Any]):
        self.db = db
        self.name = name
        self.params = params

    def execute(self):
        handler = self.db.rpc_handlers.get(self.name)
        if handler is None:
            raise Exception(f"Could not find the function public.{self.name}")
        return FakeResponse(handler(self.db, **self.params))


class FakeBucket:
    def __init__(self, storage: "FakeStorage", name: str):
        self.storage = storage
        self.name = name

    def upload(self, path: str, file: bytes, file_options: Optional[Dict[str, str]] = None):
        if self.name in self.storage.failing_buckets:
            raise Exception(f"Bucket not found: {self.name}")
        if any(fragment in path for fragment in self.storage.failing_paths):
            raise Exception(f"Upload rejected for {path}")
        content_type = (file_options or {}).get("content-type")
        self.storage.objects.setdefault(self.name, {})[path] = (file, content_type)
        return SimpleNamespace(path=path)

    def get_public_url(self, path: str) -> str:
        return f"{PUBLIC_STORAGE_URL}/{self.name}/{path}"

    def remove(self, paths: List[str]):
        if self.storage.remove_error:
            raise self.storage.remove_error
        for path in paths:
            self.storage.removed.append((self.name, path))
            self.storage.objects.get(self.name, {}).pop(path, None)
        return []


class FakeStorage:
    def __init__(self):
        self.objects: Dict[str, Dict[str, tuple]] = {}
        self.failing_buckets: set = set()
        self.failing_paths: List[str] = []
        self.removed: List[tuple] = []
        self.remove_error: Optional[Exception] = None

    def from_(self, bucket: str) -> FakeBucket:
        return FakeBucket(self, bucket)


class FakeAuthAdmin:
    def __init__(self):
        self.revoked_tokens: List[str] = []

    def sign_out(self, jwt: str, scope: str = "global"):
        self.revoked_tokens.append(jwt)


class FakeAuth:
    """Supabase Auth stand-in keyed by email."""

    def __init__(self):
        self.users: Dict[str, Dict[str, Any]] = {}
        self.confirm_on_sign_up = False
        self.admin = FakeAuthAdmin()

    def _user(self, record: Dict[str, Any]):
        return SimpleNamespace(
            id=record["id"],
            email=record["email"],
            email_confirmed_at=record["confirmed_at"],
        )

    def sign_up(self, credentials: Dict[str, Any]):
        email = credentials["email"]
        if email in self.users:
            raise Exception("User already registered")
        record = {
            "id": str(uuid.uuid4()),
            "email": email,
            "password": credentials["password"],
            "confirmed_at": "2026-01-01T00:00:00+00:00" if self.confirm_on_sign_up else None,
        }
        self.users[email] = record
        session = SimpleNamespace(access_token="session-token") if self.confirm_on_sign_up else None
        return SimpleNamespace(user=self._user(record), session=session)

    def sign_in_with_password(self, credentials: Dict[str, Any]):
        record = self.users.get(credentials["email"])
        if record is None or record["password"] != credentials["password"]:
            raise Exception("Invalid login credentials")
        return SimpleNamespace(user=self._user(record), session=SimpleNamespace(access_token="session-token"))


class FakeSupabase:
    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.failing_tables: set = set()
        self.rpc_handlers: Dict[str, Callable] = {}
        self.storage = FakeStorage()
        self.auth = FakeAuth()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, name: str, params: Dict[str, Any]) -> FakeRpc:
        return FakeRpc(self, name, params)

    def rows(self, name: str) -> List[Dict[str, Any]]:
        return self.tables.get(name, [])


# ---------------------------------------------------------------------------
# Replicate and Stripe
# ---------------------------------------------------------------------------

class FakeReplicate:
    def __init__(self):
        self.output: Any = None
        self.error: Optional[Exception] = None
        self.calls: List[tuple] = []

    def run(self, model_ref: str, input: Optional[Dict[str, Any]] = None):
        self.calls.append((model_ref, input))
        if self.error is not None:
            raise self.error
        return self.output


class FakeStripeResource:
    def __init__(self, factory: Callable[[Dict[str, Any]], Any]):
        self.factory = factory
        self.calls: List[Dict[str, Any]] = []
        self.error: Optional[Exception] = None

    def create(self, params: Optional[Dict[str, Any]] = None):
        self.calls.append(params)
        if self.error is not None:
            raise self.error
        return self.factory(params)


class FakeStripe:
    def __init__(self):
        self.customers = FakeStripeResource(lambda params: SimpleNamespace(id="cus_new"))
        self.checkout = SimpleNamespace(sessions=FakeStripeResource(
            lambda params: SimpleNamespace(id="cs_test", url="https://checkout.stripe.com/c/pay/cs_test")
        ))
        self.billing_portal = SimpleNamespace(sessions=FakeStripeResource(
            lambda params: SimpleNamespace(id="bps_test", url="https://billing.stripe.com/p/session/bps_test")
        ))


def _provider_error(status: Optional[int] = None, message: str = "provider failure") -> Exception:
    error = Exception(message)
    error.status = status
    return error


def _sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def _image_bytes(width: int = 800, height: int = 400, fmt: str = "PNG", **save_kwargs) -> bytes:
    mode = "RGBA" if fmt == "PNG" else "RGB"
    buffer = io.BytesIO()
    Image.new(mode, (width, height), color=(200, 120, 40)).save(buffer, format=fmt, **save_kwargs)
    return buffer.getvalue()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set the environment every test runs with."""
    monkeypatch.setenv("STRIPE_PRICE_BASIC", "price_basic")
    monkeypatch.setenv("STRIPE_PRICE_PRO", "price_pro")
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    monkeypatch.setenv("SUPABASE_JWT_SECRET", JWT_SECRET)
    monkeypatch.setenv("PUBLIC_URL", "https://renoir.test")
    monkeypatch.setattr(auth_middleware_module, "auth_middleware", None)


@pytest.fixture
def fake_supabase() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def fake_replicate() -> FakeReplicate:
    return FakeReplicate()


@pytest.fixture
def fake_stripe() -> FakeStripe:
    return FakeStripe()


@pytest.fixture
def current_user() -> Dict[str, str]:
    return {"id": "user-1", "email": "painter@example.com"}


@pytest.fixture
def anon_client(
    fake_supabase: FakeSupabase,
    fake_replicate: FakeReplicate,
    fake_stripe: FakeStripe,
) -> Generator[TestClient, None, None]:
    """Client with fake backends but real authentication.

    Yields:
        TestClient for the app
    """
    app.dependency_overrides[get_supabase] = lambda: fake_supabase
    app.dependency_overrides[get_auth_client] = lambda: fake_supabase
    app.dependency_overrides[get_replicate] = lambda: fake_replicate
    app.dependency_overrides[get_stripe] = lambda: fake_stripe
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def client(anon_client: TestClient, current_user: Dict[str, str]) -> TestClient:
    """Client authenticated as ``current_user``."""
    app.dependency_overrides[get_current_user] = lambda: current_user
    return anon_client


@pytest.fixture
def provider_error() -> Callable[..., Exception]:
    return _provider_error


@pytest.fixture
def sign_payload() -> Callable[..., str]:
    return _sign_payload


@pytest.fixture
def image_bytes() -> Callable[..., bytes]:
    return _image_bytes
