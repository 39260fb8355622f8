"""Billing-period math and subscription creation through the backend API."""

import calendar
import logging
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from app.core.errors import PaymentFlowError, Unauthenticated
from app.core.notifications import NotificationBus
from app.core.security import AuthenticatedUser
from app.enums import BillingCycle, SubscriptionPlan, SubscriptionStatus
from app.schemas_v1 import Subscription, SubscriptionCreate, SubscriptionUpdate
from app.services.backend_client import BackendApiClient
from app.services.client_state import PaymentSessionStore
from app.services.payment_service import utcnow

logger = logging.getLogger(__name__)

CYCLE_MONTHS = {
    BillingCycle.MONTHLY: 1,
    BillingCycle.QUARTERLY: 3,
    BillingCycle.YEARLY: 12,
}


def add_months(value: datetime, months: int) -> datetime:
    """Calendar month addition; the day is clamped to the target month's last day."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def compute_billing_period(start: datetime, billing_cycle: BillingCycle) -> Tuple[datetime, datetime]:
    return start, add_months(start, CYCLE_MONTHS[BillingCycle(billing_cycle)])


class SubscriptionCreator:
    def __init__(
        self,
        backend: BackendApiClient,
        sessions: PaymentSessionStore,
        notifications: NotificationBus,
        clock: Callable[[], datetime] = utcnow,
        currency: str = "USD",
    ):
        self.backend = backend
        self.sessions = sessions
        self.notifications = notifications
        self.clock = clock
        self.currency = currency

    async def create_subscription(
        self,
        user: Optional[AuthenticatedUser],
        plan: SubscriptionPlan,
        price: float,
        billing_cycle: BillingCycle,
        features: Optional[List[str]] = None,
        currency: Optional[str] = None,
    ) -> Subscription:
        if user is None:
            raise Unauthenticated()

        start, end = compute_billing_period(self.clock(), billing_cycle)
        payload = SubscriptionCreate(
            user_id=user.id,
            plan_name=plan,
            status=SubscriptionStatus.ACTIVE,
            start_date=start,
            end_date=end,
            auto_renew=True,
            price=price,
            currency=currency or self.currency,
            billing_cycle=billing_cycle,
            features=list(features or []),
            last_payment_date=start,
            next_billing_date=end,
        )
        try:
            subscription = await self.backend.create_subscription(payload)
        except PaymentFlowError as exc:
            logger.error("Subscription creation failed for user %s: %s", user.id, exc.message)
            self.notifications.error(
                "Error", "Failed to create subscription. Please contact support.", user_id=user.id
            )
            raise

        try:
            await self._supersede_active(user.id, keep=subscription.id)
        except PaymentFlowError:
            # The new subscription exists; older ones are left for follow-up.
            logger.exception("Could not supersede previous subscriptions of user %s", user.id)
        await self.sessions.clear(user.id)
        logger.info(
            "Created %s subscription %s for user %s (%s -> %s)",
            plan.value,
            subscription.id,
            user.id,
            start.isoformat(),
            end.isoformat(),
        )
        self.notifications.success(
            "Subscription Created!",
            f"Welcome to {plan.value}! Your subscription is now active.",
            user_id=user.id,
        )
        return subscription

    async def _supersede_active(self, user_id: str, keep: Optional[str]) -> None:
        """Cancel every other active subscription so at most one stays active."""
        for previous in await self.backend.get_user_active_subscriptions(user_id):
            if previous.id is None or previous.id == keep:
                continue
            await self.backend.update_subscription(
                previous.id,
                SubscriptionUpdate(status=SubscriptionStatus.CANCELED, auto_renew=False),
            )
            logger.info("Superseded subscription %s of user %s", previous.id, user_id)

    async def get_active_subscription(self, user_id: str) -> Optional[Subscription]:
        active = await self.backend.get_user_active_subscriptions(user_id)
        return active[0] if active else None
