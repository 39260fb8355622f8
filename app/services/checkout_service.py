"""Payment session orchestration: build, submit and remember a checkout."""

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.core.errors import PaymentFlowError, Unauthenticated, ValidationError
from app.core.notifications import NotificationBus
from app.core.security import AuthenticatedUser
from app.enums import PaymentProviderKind
from app.schemas_v1 import CheckoutResponse, PaymentResponse, PaymentSession
from app.services.backend_client import BackendApiClient
from app.services.client_state import PaymentSessionStore
from app.services.payment_service import (
    CheckoutContext,
    build_redirect_urls,
    get_payment_provider,
    to_minor_units,
    utcnow,
)
from app.services.payment_session_service import record_payment_session
from app.services.plan_catalog import billing_cycle_for, find_price, get_pricing_plan, stripe_price_id

logger = logging.getLogger(__name__)


class PaymentOrchestrator:
    """Starts checkouts with either provider for the signed-in user.

    Nothing is persisted until the provider accepted the request: the
    durable record (used for provisioning) and the client-held session
    (used by the dashboard) are both written after a successful call.
    """

    def __init__(
        self,
        backend: BackendApiClient,
        sessions: PaymentSessionStore,
        db: AsyncSession,
        notifications: NotificationBus,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.backend = backend
        self.sessions = sessions
        self.db = db
        self.notifications = notifications
        self.settings = settings or get_settings()
        self.clock = clock

    async def create_local_payment(
        self,
        user: Optional[AuthenticatedUser],
        plan_id: str,
        plan_name: str,
        amount: float,
        phone_number: str,
        is_annual: bool = False,
    ) -> PaymentResponse:
        if user is None:
            raise Unauthenticated()

        try:
            pricing = get_pricing_plan(plan_id)
            price = pricing.price_for(is_annual)
            if to_minor_units(amount) != to_minor_units(price):
                raise ValidationError("amount", f"Amount does not match the {pricing.name} price of {price}")
            ctx = self._context(user, pricing.id, plan_name, is_annual, amount=price, phone=phone_number)
            request = get_payment_provider(PaymentProviderKind.LOCAL, self.settings).build_request(ctx)
            response = await self.backend.create_payment(request)
        except PaymentFlowError as exc:
            self._report_failure(user, exc)
            raise

        await self._remember(
            user,
            provider=PaymentProviderKind.LOCAL,
            session_id=response.session_id,
            plan_id=pricing.id,
            plan_name=plan_name,
            subscription_plan=pricing.plan.value,
            price=price,
            ctx=ctx,
            amount_minor=request.amount,
        )
        logger.info("Local payment %s created for user %s (%s)", response.session_id, user.id, pricing.id)
        return response

    async def create_international_payment(
        self,
        user: Optional[AuthenticatedUser],
        plan_id: str,
        plan_name: str,
        price_id: Optional[str] = None,
        is_annual: bool = False,
    ) -> CheckoutResponse:
        if user is None:
            raise Unauthenticated()

        try:
            pricing = get_pricing_plan(plan_id)
            price_id = price_id or stripe_price_id(pricing.id, is_annual, self.settings)
            match = find_price(price_id, self.settings)
            if match is not None and (match[0].id != pricing.id or match[1] != is_annual):
                raise ValidationError("priceId", f"Price {price_id} does not belong to the selected plan")
            ctx = self._context(user, pricing.id, plan_name, is_annual, price_id=price_id)
            request = get_payment_provider(PaymentProviderKind.INTERNATIONAL, self.settings).build_request(ctx)
            response = await self.backend.create_stripe_checkout(request)
        except PaymentFlowError as exc:
            self._report_failure(user, exc)
            raise

        await self._remember(
            user,
            provider=PaymentProviderKind.INTERNATIONAL,
            session_id=response.session_id,
            plan_id=pricing.id,
            plan_name=plan_name,
            subscription_plan=pricing.plan.value,
            price=pricing.price_for(is_annual),
            ctx=ctx,
            price_id=price_id,
        )
        logger.info("Card checkout %s created for user %s (%s)", response.session_id, user.id, pricing.id)
        return response

    async def get_session(self, user: Optional[AuthenticatedUser]) -> Optional[PaymentSession]:
        if user is None:
            raise Unauthenticated()
        return await self.sessions.load(user.id)

    async def clear_session(self, user: Optional[AuthenticatedUser]) -> None:
        if user is None:
            raise Unauthenticated()
        await self.sessions.clear(user.id)

    def _context(
        self,
        user: AuthenticatedUser,
        plan_id: str,
        plan_name: str,
        is_annual: bool,
        **extra,
    ) -> CheckoutContext:
        billing_cycle = billing_cycle_for(is_annual)
        return CheckoutContext(
            user_id=user.id,
            email=user.email,
            plan_id=plan_id,
            plan_name=plan_name,
            billing_cycle=billing_cycle,
            urls=build_redirect_urls(self.settings.PUBLIC_APP_URL, plan_id, billing_cycle),
            issued_at=self.clock(),
            **extra,
        )

    async def _remember(
        self,
        user: AuthenticatedUser,
        provider: PaymentProviderKind,
        session_id: str,
        plan_id: str,
        plan_name: str,
        subscription_plan: str,
        price: float,
        ctx: CheckoutContext,
        amount_minor: Optional[int] = None,
        price_id: Optional[str] = None,
    ) -> None:
        await record_payment_session(
            self.db,
            session_id=session_id,
            user_id=user.id,
            user_email=user.email,
            provider=provider.value,
            plan_id=plan_id,
            plan_name=subscription_plan,
            price=price,
            currency=self.settings.DEFAULT_CURRENCY,
            billing_cycle=ctx.billing_cycle.value,
            amount_minor=amount_minor,
            price_id=price_id,
        )
        await self.sessions.save(
            user.id,
            PaymentSession(
                session_id=session_id,
                plan_id=plan_id,
                plan_name=plan_name,
                amount=price,
                billing_cycle=ctx.billing_cycle,
                timestamp=int(ctx.issued_at.timestamp() * 1000),
                provider=provider,
            ),
        )

    def _report_failure(self, user: AuthenticatedUser, exc: PaymentFlowError) -> None:
        logger.warning("Payment initiation failed for user %s: %s", user.id, exc.message)
        self.notifications.error("Payment Failed", exc.message, user_id=user.id)
