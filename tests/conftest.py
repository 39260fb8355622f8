import itertools
import json
import os
from datetime import datetime, timezone

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("AUTH_JWT_SECRET", "test-secret")
os.environ.setdefault("PUBLIC_APP_URL", "https://app.test")
os.environ.setdefault("BACKEND_API_URL", "http://backend.test")

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.notifications import NotificationBus
from app.core.security import AuthenticatedUser
from app.database import Base
from app.services.backend_client import BackendApiClient
from app.services.checkout_service import PaymentOrchestrator
from app.services.client_state import ClientStateStore, PaymentSessionStore
from app.services.subscription_service import SubscriptionCreator
from app.services.webhook_service import WebhookReconciler

JAN_31_2024 = datetime(2024, 1, 31, 10, 0, tzinfo=timezone.utc)


class FakeBackendApi:
    """In-memory stand-in for the remote REST API, served through httpx.MockTransport."""

    def __init__(self):
        self.requests = []
        self.payments = []
        self.checkouts = []
        self.status_updates = []
        self.subscriptions = {}
        self.fail = set()
        self._seq = itertools.count(1)

    def handler(self, request: httpx.Request) -> httpx.Response:
        method, path = request.method, request.url.path
        body = json.loads(request.content) if request.content else None
        self.requests.append((method, path, body))
        if (method, path) in self.fail:
            return httpx.Response(500, json={"message": "boom"})

        if method == "POST" and path == "/payment":
            n = next(self._seq)
            self.payments.append(body)
            data = {"sessionId": f"sess-{n}", "paymentUrl": f"https://pay.test/checkout/sess-{n}"}
            return httpx.Response(201, json={"error": False, "msg": "created", "data": data})
        if method == "POST" and path == "/stripe/stripe-checkout":
            n = next(self._seq)
            self.checkouts.append(body)
            return httpx.Response(200, json={"sessionId": f"cs_test_{n}", "url": f"https://checkout.test/cs_test_{n}"})
        if method == "POST" and path == "/payment/responseStatus":
            self.status_updates.append(body)
            return httpx.Response(200, json={"success": True, "data": None})
        if method == "GET" and path.startswith("/payment/"):
            user_id = path.rsplit("/", 1)[1]
            return httpx.Response(200, json=[p for p in self.payments if p["userId"] == user_id])
        if method == "POST" and path == "/subscriptions":
            sub = dict(body, _id=f"sub-{next(self._seq)}")
            self.subscriptions[sub["_id"]] = sub
            return httpx.Response(201, json={"success": True, "data": sub})
        if method == "GET" and path.startswith("/subscriptions/user/"):
            user_id = path.rsplit("/", 1)[1]
            return httpx.Response(200, json=[s for s in self.subscriptions.values() if s["userId"] == user_id])
        if method == "PATCH" and path.startswith("/subscriptions/"):
            sub = self.subscriptions[path.rsplit("/", 1)[1]]
            sub.update(body)
            return httpx.Response(200, json={"success": True, "data": sub})
        return httpx.Response(404, json={"message": "not found"})

    def active_subscriptions(self, user_id):
        return [s for s in self.subscriptions.values() if s["userId"] == user_id and s["status"] == "active"]


class FakeRedis:
    def __init__(self):
        self.data = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None, nx=False):
        if nx and key in self.data:
            return None
        self.data[key] = value
        return True

    async def delete(self, *keys):
        for key in keys:
            self.data.pop(key, None)

    async def incr(self, key):
        self.data[key] = int(self.data.get(key, 0)) + 1
        return self.data[key]

    async def expire(self, key, seconds):
        return True


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'billing.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_api():
    return FakeBackendApi()


@pytest.fixture
async def backend(fake_api):
    client = BackendApiClient("http://backend.test", transport=httpx.MockTransport(fake_api.handler))
    yield client
    await client.aclose()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def session_store(fake_redis):
    return PaymentSessionStore(ClientStateStore(fake_redis))


@pytest.fixture
def received():
    return []


@pytest.fixture
def notifications(received):
    bus = NotificationBus()
    bus.subscribe(received.append)
    return bus


@pytest.fixture
def user():
    return AuthenticatedUser(id="user-1", email="parent@example.com")


@pytest.fixture
def clock():
    return lambda: JAN_31_2024


@pytest.fixture
def orchestrator(backend, session_store, db, notifications, clock):
    return PaymentOrchestrator(backend, session_store, db, notifications, clock=clock)


@pytest.fixture
def creator(backend, session_store, notifications, clock):
    return SubscriptionCreator(backend, session_store, notifications, clock=clock)


@pytest.fixture
def deferred():
    return []


@pytest.fixture
def reconciler(backend, db, creator, notifications, deferred):
    return WebhookReconciler(backend, db, creator, notifications, defer=deferred.append)
