"""Dependencies for v1 API routes."""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.core.errors import Unauthenticated
from app.core.notifications import NotificationBus
from app.core.security import AuthenticatedUser, decode_access_token, user_from_claims
from app.database import get_db
from app.services.backend_client import BackendApiClient
from app.services.checkout_service import PaymentOrchestrator
from app.services.client_state import ClientStateStore, PaymentSessionStore
from app.services.subscription_service import SubscriptionCreator
from app.services.webhook_service import WebhookReconciler

security = HTTPBearer(auto_error=False)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[AuthenticatedUser]:
    if credentials is None:
        return None
    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")
    user = user_from_claims(payload)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")
    return user


async def get_current_v1_user(
    user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> AuthenticatedUser:
    if user is None:
        raise Unauthenticated()
    return user


async def require_superadmin(
    current_user: AuthenticatedUser = Depends(get_current_v1_user),
) -> AuthenticatedUser:
    if not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Superadmin access required")
    return current_user


def get_notification_bus(request: Request) -> NotificationBus:
    return request.app.state.notifications


def get_backend_client(request: Request) -> BackendApiClient:
    return request.app.state.backend


def get_redis(request: Request) -> Redis:
    return request.app.state.redis


def get_payment_session_store(redis_client: Redis = Depends(get_redis)) -> PaymentSessionStore:
    ttl = get_settings().PAYMENT_EXPIRY_HOURS * 3600
    return PaymentSessionStore(ClientStateStore(redis_client, ttl_seconds=ttl))


def get_orchestrator(
    backend: BackendApiClient = Depends(get_backend_client),
    sessions: PaymentSessionStore = Depends(get_payment_session_store),
    db: AsyncSession = Depends(get_db),
    notifications: NotificationBus = Depends(get_notification_bus),
) -> PaymentOrchestrator:
    return PaymentOrchestrator(backend, sessions, db, notifications)


def get_subscription_creator(
    backend: BackendApiClient = Depends(get_backend_client),
    sessions: PaymentSessionStore = Depends(get_payment_session_store),
    notifications: NotificationBus = Depends(get_notification_bus),
) -> SubscriptionCreator:
    return SubscriptionCreator(backend, sessions, notifications, currency=get_settings().DEFAULT_CURRENCY)


def get_webhook_reconciler(
    backend: BackendApiClient = Depends(get_backend_client),
    db: AsyncSession = Depends(get_db),
    creator: SubscriptionCreator = Depends(get_subscription_creator),
    notifications: NotificationBus = Depends(get_notification_bus),
) -> WebhookReconciler:
    return WebhookReconciler(backend, db, creator, notifications)
