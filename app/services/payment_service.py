"""Payment provider abstraction: local mobile-money and international card."""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, FrozenSet, Optional, Tuple, Union
from urllib.parse import urlencode

from app.config import Settings, get_settings
from app.core.errors import ValidationError
from app.enums import BillingCycle, PaymentMethod, PaymentProviderKind
from app.schemas_v1 import (
    CheckoutItem,
    InternationalCheckoutRequest,
    PaymentItem,
    PaymentRequest,
)


@dataclass(frozen=True)
class RedirectUrls:
    success_url: str
    cancel_url: str
    error_url: str
    notify_url: str


@dataclass(frozen=True)
class CheckoutContext:
    user_id: str
    plan_id: str
    plan_name: str
    billing_cycle: BillingCycle
    urls: RedirectUrls
    issued_at: datetime
    email: Optional[str] = None
    amount: Optional[float] = None
    phone: Optional[str] = None
    price_id: Optional[str] = None


def build_redirect_urls(origin: str, plan_id: str, billing_cycle: BillingCycle) -> RedirectUrls:
    base = origin.rstrip("/")
    query = urlencode({"plan": plan_id, "billing": billing_cycle.value})
    return RedirectUrls(
        success_url=f"{base}/upgrade/success?{query}",
        cancel_url=f"{base}/upgrade?status=canceled",
        error_url=f"{base}/upgrade?status=error",
        notify_url=f"{base}/api/payment/webhook",
    )


def validate_phone(phone: Optional[str], country_code: str = "251") -> str:
    """Return the phone with whitespace removed, or raise a field error."""
    cleaned = re.sub(r"\s+", "", phone or "")
    if not cleaned:
        raise ValidationError("phone", "Phone number is required for mobile money payments")
    if not re.fullmatch(rf"{re.escape(country_code)}[0-9]{{9}}", cleaned):
        raise ValidationError("phone", f"Phone number must look like {country_code}XXXXXXXXX")
    return cleaned


def to_minor_units(amount: Union[float, Decimal, int]) -> int:
    try:
        value = Decimal(str(amount))
    except (ArithmeticError, ValueError):
        raise ValidationError("amount", f"Invalid amount: {amount!r}")
    if not value.is_finite() or value <= 0:
        raise ValidationError("amount", "Amount must be greater than zero")
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _display_plan(plan_name: str) -> str:
    name = (plan_name or "").strip()
    return f"{name[0].upper()}{name[1:]}" if name else "Premium"


@dataclass(frozen=True)
class LocalProvider:
    """Mobile-money / bank-rail provider. Amount is sent in minor units."""

    country_code: str
    expiry: timedelta
    email_domain: str
    lang: str = "EN"

    kind = PaymentProviderKind.LOCAL
    requires_phone = True
    supported_methods: Tuple[PaymentMethod, ...] = tuple(PaymentMethod)

    def build_request(self, ctx: CheckoutContext) -> PaymentRequest:
        phone = validate_phone(ctx.phone, self.country_code)
        amount = to_minor_units(ctx.amount if ctx.amount is not None else 0)
        plan = _display_plan(ctx.plan_name)
        return PaymentRequest(
            user_id=ctx.user_id,
            amount=amount,
            cancel_url=ctx.urls.cancel_url,
            success_url=ctx.urls.success_url,
            error_url=ctx.urls.error_url,
            notify_url=ctx.urls.notify_url,
            phone=phone,
            email=ctx.email or f"user_{ctx.user_id}@{self.email_domain}",
            expire_date=ctx.issued_at + self.expiry,
            items=[
                PaymentItem(
                    name=f"{plan} Plan",
                    quantity=1,
                    price=amount,
                    description=f"{plan} {ctx.billing_cycle.value} subscription",
                )
            ],
            payment_methods=list(self.supported_methods),
            lang=self.lang,
        )


@dataclass(frozen=True)
class InternationalProvider:
    """Card checkout against pre-configured price ids; no free-form amounts."""

    price_ids: FrozenSet[str]
    mode: str = "payment"

    kind = PaymentProviderKind.INTERNATIONAL
    requires_phone = False
    supported_methods: Tuple[PaymentMethod, ...] = ()

    def build_request(self, ctx: CheckoutContext) -> InternationalCheckoutRequest:
        if not ctx.price_id:
            raise ValidationError("priceId", "A price id is required for card checkout")
        if ctx.price_id not in self.price_ids:
            raise ValidationError("priceId", f"Unknown price id: {ctx.price_id}")
        return InternationalCheckoutRequest(
            user_id=ctx.user_id,
            items=[CheckoutItem(price=ctx.price_id, quantity=1)],
            success_url=ctx.urls.success_url,
            cancel_url=ctx.urls.cancel_url,
            error_url=ctx.urls.error_url,
            notify_url=ctx.urls.notify_url,
            mode=self.mode,
        )


PaymentProvider = Union[LocalProvider, InternationalProvider]


def get_payment_provider(kind, settings: Optional[Settings] = None) -> PaymentProvider:
    settings = settings or get_settings()
    try:
        kind = PaymentProviderKind(kind)
    except ValueError:
        raise ValidationError("provider", f"Unsupported payment provider: {kind}")

    providers: Dict[PaymentProviderKind, PaymentProvider] = {
        PaymentProviderKind.LOCAL: LocalProvider(
            country_code=settings.LOCAL_PHONE_COUNTRY_CODE,
            expiry=timedelta(hours=settings.PAYMENT_EXPIRY_HOURS),
            email_domain=settings.FALLBACK_EMAIL_DOMAIN,
            lang=settings.PAYMENT_LANG,
        ),
        PaymentProviderKind.INTERNATIONAL: InternationalProvider(
            price_ids=frozenset(
                price for prices in settings.stripe_price_ids().values() for price in prices.values()
            ),
            mode=settings.CHECKOUT_MODE,
        ),
    }
    return providers[kind]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
