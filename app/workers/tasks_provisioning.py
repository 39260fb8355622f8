"""Celery tasks for subscription provisioning the webhook could not finish."""

import asyncio
import logging
from typing import Optional

from celery import Task
from redis.asyncio import Redis

from app.config import get_settings
from app.core.errors import ProviderError
from app.core.notifications import NotificationBus, log_listener
from app.database import AsyncSessionLocal
from app.enums import PaymentStatus
from app.services.backend_client import BackendApiClient
from app.services.client_state import ClientStateStore, PaymentSessionStore
from app.services.payment_session_service import get_payment_session
from app.services.subscription_service import SubscriptionCreator
from app.services.webhook_service import WebhookReconciler
from app.workers.celery_app import celery_app

settings = get_settings()
logger = logging.getLogger(__name__)


class SessionNotReady(RuntimeError):
    """The payment session is missing or not yet marked successful."""


async def _provision_payment_session(session_id: str) -> Optional[str]:
    backend = BackendApiClient(settings.BACKEND_API_URL, timeout=settings.BACKEND_API_TIMEOUT_SECONDS)
    redis_client = Redis.from_url(settings.REDIS_URL, decode_responses=True)
    notifications = NotificationBus()
    notifications.subscribe(log_listener)
    try:
        async with AsyncSessionLocal() as db:
            record = await get_payment_session(db, session_id)
            if record is None:
                raise SessionNotReady(f"No payment session {session_id}")
            if record.status == PaymentStatus.PENDING.value:
                raise SessionNotReady(f"Payment session {session_id} is still pending")
            if record.status != PaymentStatus.SUCCESS.value:
                logger.info("Skipping provisioning for session %s in status %s", session_id, record.status)
                return None

            creator = SubscriptionCreator(
                backend,
                PaymentSessionStore(ClientStateStore(redis_client)),
                notifications,
                currency=settings.DEFAULT_CURRENCY,
            )
            reconciler = WebhookReconciler(backend, db, creator, notifications, defer=lambda _: None)
            subscription_id = await reconciler.provision(record)
            if subscription_id is None:
                raise SessionNotReady(f"Provisioning of {session_id} is held by another worker")
            return subscription_id
    finally:
        await backend.aclose()
        await redis_client.aclose()


class BaseProvisioningTask(Task):
    autoretry_for = (SessionNotReady, ProviderError)
    retry_backoff = settings.PROVISIONING_RETRY_COUNTDOWN_SECONDS
    retry_backoff_max = 3600
    retry_jitter = True
    max_retries = settings.PROVISIONING_MAX_RETRIES

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        logger.error("Giving up provisioning %s after retries: %s", args, exc)


@celery_app.task(bind=True, base=BaseProvisioningTask, name="app.workers.tasks_provisioning.provision_payment_session")
def provision_payment_session(self, session_id: str) -> Optional[str]:
    return asyncio.run(_provision_payment_session(session_id))
