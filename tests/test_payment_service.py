from datetime import datetime, timedelta, timezone

import pytest

from app.core.errors import ValidationError
from app.enums import BillingCycle, PaymentMethod, PaymentProviderKind
from app.services.payment_service import (
    CheckoutContext,
    InternationalProvider,
    LocalProvider,
    build_redirect_urls,
    get_payment_provider,
    to_minor_units,
    validate_phone,
)
from app.services.plan_catalog import find_price, get_pricing_plan, stripe_price_id

ISSUED = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def _ctx(**extra):
    return CheckoutContext(
        user_id="user-1",
        plan_id="builder",
        plan_name="builder",
        billing_cycle=BillingCycle.MONTHLY,
        urls=build_redirect_urls("https://app.test", "builder", BillingCycle.MONTHLY),
        issued_at=ISSUED,
        **extra,
    )


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("251912345678", "251912345678"),
        ("251 912 345 678", "251912345678"),
        (" 251912345678\t", "251912345678"),
    ],
)
def test_valid_phones(raw, expected):
    assert validate_phone(raw) == expected


@pytest.mark.parametrize("raw", ["", None, "0912345678", "25191234567", "2519123456789", "+251912345678", "251abc345678"])
def test_invalid_phones(raw):
    with pytest.raises(ValidationError) as excinfo:
        validate_phone(raw)
    assert excinfo.value.field == "phone"


@pytest.mark.parametrize("amount,minor", [(9.99, 999), (6.99, 699), (119.99, 11999), (1, 100), ("0.005", 1)])
def test_minor_units(amount, minor):
    assert to_minor_units(amount) == minor


@pytest.mark.parametrize("amount", [0, -1, "abc", float("nan")])
def test_rejects_bad_amounts(amount):
    with pytest.raises(ValidationError):
        to_minor_units(amount)


def test_redirect_urls():
    urls = build_redirect_urls("https://app.test/", "pro", BillingCycle.YEARLY)
    assert urls.success_url == "https://app.test/upgrade/success?plan=pro&billing=yearly"
    assert urls.cancel_url == "https://app.test/upgrade?status=canceled"
    assert urls.error_url == "https://app.test/upgrade?status=error"
    assert urls.notify_url == "https://app.test/api/payment/webhook"


def test_local_request_shape():
    provider = LocalProvider(country_code="251", expiry=timedelta(hours=24), email_domain="learnpath.app")
    request = provider.build_request(_ctx(amount=9.99, phone="251 912 345 678"))
    wire = request.to_wire()

    assert wire["amount"] == 999
    assert wire["phone"] == 251912345678
    assert wire["email"] == "user_user-1@learnpath.app"
    assert request.expire_date - ISSUED == timedelta(hours=24)
    assert wire["items"] == [
        {"name": "Builder Plan", "quantity": 1, "price": 999, "description": "Builder monthly subscription"}
    ]
    assert wire["paymentMethods"] == [m.value for m in PaymentMethod]
    assert wire["notifyUrl"].endswith("/api/payment/webhook")


def test_local_request_uses_account_email():
    provider = LocalProvider(country_code="251", expiry=timedelta(hours=24), email_domain="learnpath.app")
    request = provider.build_request(_ctx(amount=9.99, phone="251912345678", email="kid@example.com"))
    assert request.email == "kid@example.com"


def test_local_request_rejects_bad_phone():
    provider = LocalProvider(country_code="251", expiry=timedelta(hours=24), email_domain="learnpath.app")
    with pytest.raises(ValidationError):
        provider.build_request(_ctx(amount=9.99, phone="0912345678"))


def test_international_requires_known_price():
    provider = InternationalProvider(price_ids=frozenset({"price_builder_monthly"}))
    with pytest.raises(ValidationError) as excinfo:
        provider.build_request(_ctx())
    assert excinfo.value.field == "priceId"
    with pytest.raises(ValidationError):
        provider.build_request(_ctx(price_id="price_unknown"))


def test_international_request_shape():
    provider = InternationalProvider(price_ids=frozenset({"price_builder_monthly"}))
    wire = provider.build_request(_ctx(price_id="price_builder_monthly")).to_wire()
    assert wire["items"] == [{"price": "price_builder_monthly", "quantity": 1}]
    assert wire["userId"] == "user-1"
    assert wire["mode"] == "payment"


def test_provider_capabilities():
    local = get_payment_provider("arifpay")
    card = get_payment_provider(PaymentProviderKind.INTERNATIONAL)
    assert local.requires_phone and not card.requires_phone
    assert card.supported_methods == ()
    assert "price_pro_annual" in card.price_ids


def test_unknown_provider():
    with pytest.raises(ValidationError) as excinfo:
        get_payment_provider("paypal")
    assert excinfo.value.field == "provider"


def test_catalog_price_lookup():
    assert stripe_price_id("starter", is_annual=True) == "price_starter_annual"
    plan, is_annual = find_price("price_builder_monthly")
    assert plan.id == "builder" and is_annual is False
    assert find_price("price_nope") is None
    assert get_pricing_plan("Builder").annual_savings_percent == 25


@pytest.mark.parametrize("plan_id", ["free", "gold", ""])
def test_catalog_rejects_unpurchasable_plans(plan_id):
    with pytest.raises(ValidationError):
        get_pricing_plan(plan_id)
