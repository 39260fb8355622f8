"""Reconciles provider payment notifications with payment sessions."""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import (
    PaymentFlowError,
    PaymentNotCompleted,
    ProvisioningPending,
    ValidationError,
)
from app.core.notifications import NotificationBus
from app.core.security import AuthenticatedUser
from app.enums import BillingCycle, PaymentStatus, ProvisioningState, SubscriptionPlan
from app.models import PaymentSessionRecord
from app.schemas_v1 import WebhookPayload
from app.services.backend_client import BackendApiClient
from app.services.payment_session_service import (
    apply_payment_status,
    claim_provisioning,
    complete_provisioning,
    fail_provisioning,
    get_payment_session,
    record_webhook_event,
)
from app.services.plan_catalog import features_for
from app.services.subscription_service import SubscriptionCreator

logger = logging.getLogger(__name__)


def resolve_status(payload: WebhookPayload) -> Optional[PaymentStatus]:
    """Status from whichever field the sending provider filled in."""
    candidates = [payload.transaction_status, payload.payment_status]
    if payload.transaction:
        candidates.append(payload.transaction.transaction_status)
    statuses = [s for s in (PaymentStatus.parse(c) for c in candidates) if s is not None]
    if PaymentStatus.SUCCESS in statuses:
        return PaymentStatus.SUCCESS
    return statuses[0] if statuses else None


def enqueue_provisioning(session_id: str) -> None:
    from app.workers.tasks_provisioning import provision_payment_session

    provision_payment_session.delay(session_id)


@dataclass
class WebhookOutcome:
    session_id: Optional[str]
    status: Optional[PaymentStatus]
    subscription_id: Optional[str] = None
    deferred: bool = False
    conflict: bool = False

    @property
    def label(self) -> str:
        if self.conflict:
            return "conflict"
        if self.deferred:
            return "deferred"
        if self.subscription_id:
            return "provisioned"
        return "recorded" if self.status else "ignored"


class WebhookReconciler:
    def __init__(
        self,
        backend: BackendApiClient,
        db: AsyncSession,
        creator: SubscriptionCreator,
        notifications: NotificationBus,
        defer: Callable[[str], None] = enqueue_provisioning,
    ):
        self.backend = backend
        self.db = db
        self.creator = creator
        self.notifications = notifications
        self.defer = defer

    async def handle(self, payload: WebhookPayload) -> WebhookOutcome:
        """Process one delivery. Safe to call repeatedly with the same payload.

        Raises only when the status update itself fails, so the provider
        retries; provisioning problems are logged and deferred instead.
        """
        status = resolve_status(payload)
        outcome = WebhookOutcome(session_id=payload.session_id, status=status)
        logger.info("Payment webhook for session %s: %s", payload.session_id, status.value if status else None)

        await self.backend.update_payment_status(payload)
        # Stored before the status is applied so a checkout recorded meanwhile can replay it.
        event = await record_webhook_event(
            self.db,
            payload=payload.model_dump(by_alias=True, mode="json"),
            session_id=payload.session_id,
            resolved_status=status,
            outcome="received",
        )

        if status is None:
            logger.warning("Webhook for session %s carried no recognizable status", payload.session_id)
        elif not payload.session_id:
            if status is PaymentStatus.SUCCESS:
                logger.error("Successful payment notification without a session id; cannot provision: %s", payload.uuid)
        else:
            transaction_id = payload.transaction.transaction_id if payload.transaction else None
            transition = await apply_payment_status(self.db, payload.session_id, status, transaction_id)
            outcome.conflict = transition.conflict is not None
            record = transition.record
            if record is None:
                if status is PaymentStatus.SUCCESS:
                    logger.warning("No payment session %s on file yet; deferring provisioning", payload.session_id)
                    self._defer(outcome)
            elif record.status == PaymentStatus.SUCCESS.value:
                await self._provision_or_defer(record, outcome)
            elif transition.changed:
                self.notifications.error(
                    "Payment Failed",
                    f"Payment {status.value}. Please try again or contact support.",
                    user_id=record.user_id,
                )

        event.outcome = outcome.label
        await self.db.commit()
        return outcome

    async def provision(self, record: PaymentSessionRecord) -> Optional[str]:
        """Create the subscription for a successful session, at most once.

        Returns the subscription id, or None while another caller holds the
        provisioning claim.
        """
        if record.provisioning_state == ProvisioningState.DONE.value:
            return record.subscription_id
        if not await claim_provisioning(self.db, record.session_id):
            current = await get_payment_session(self.db, record.session_id)
            return current.subscription_id if current else None

        owner = AuthenticatedUser(id=record.user_id, email=record.user_email)
        try:
            subscription = await self.creator.create_subscription(
                owner,
                SubscriptionPlan(record.plan_name),
                record.price,
                BillingCycle(record.billing_cycle),
                features=features_for(record.plan_id),
                currency=record.currency,
            )
        except BaseException as exc:
            # Includes cancellation; the claim must not stay in_progress.
            await fail_provisioning(self.db, record.session_id, getattr(exc, "message", None) or repr(exc))
            raise

        await complete_provisioning(self.db, record.session_id, subscription.id)
        return subscription.id

    async def confirm(self, user: AuthenticatedUser, session_id: str) -> PaymentSessionRecord:
        """Success-page confirmation: provision from the server-side record only."""
        record = await get_payment_session(self.db, session_id)
        if record is None or record.user_id != user.id:
            raise ValidationError("sessionId", "Unknown payment session")
        if record.status == PaymentStatus.PENDING.value:
            raise ProvisioningPending("Payment is still being confirmed")
        if record.status != PaymentStatus.SUCCESS.value:
            raise PaymentNotCompleted(f"Payment {record.status}")

        subscription_id = await self.provision(record)
        if subscription_id is None:
            raise ProvisioningPending("Subscription is being created")
        return await get_payment_session(self.db, session_id)

    async def _provision_or_defer(self, record: PaymentSessionRecord, outcome: WebhookOutcome) -> None:
        try:
            outcome.subscription_id = await self.provision(record)
        except PaymentFlowError:
            logger.exception("Provisioning failed for session %s; deferring", record.session_id)
            self._defer(outcome)

    def _defer(self, outcome: WebhookOutcome) -> None:
        self.defer(outcome.session_id)
        outcome.deferred = True
