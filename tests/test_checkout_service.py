import pytest
from sqlalchemy import select

from app.core.errors import ProviderError, Unauthenticated, ValidationError
from app.enums import BillingCycle, PaymentProviderKind
from app.models import PaymentSessionRecord
from app.services.payment_session_service import get_payment_session


async def _records(db):
    result = await db.execute(select(PaymentSessionRecord))
    return list(result.scalars().all())


@pytest.mark.asyncio
async def test_local_payment_session_lifecycle(orchestrator, user, fake_api, db, clock):
    response = await orchestrator.create_local_payment(
        user, plan_id="builder", plan_name="builder", amount=9.99, phone_number="251 912 345 678"
    )

    assert response.session_id == "sess-1"
    assert response.payment_url.startswith("https://pay.test/")
    assert fake_api.payments[0]["amount"] == 999
    assert fake_api.payments[0]["phone"] == 251912345678

    held = await orchestrator.get_session(user)
    assert held.session_id == "sess-1"
    assert held.plan_id == "builder"
    assert held.amount == 9.99
    assert held.billing_cycle is BillingCycle.MONTHLY
    assert held.provider is PaymentProviderKind.LOCAL
    assert held.timestamp == int(clock().timestamp() * 1000)

    record = await get_payment_session(db, "sess-1")
    assert record.user_id == user.id
    assert record.plan_name == "Builder"
    assert record.amount_minor == 999
    assert record.status == "pending"

    await orchestrator.clear_session(user)
    assert await orchestrator.get_session(user) is None


@pytest.mark.asyncio
async def test_annual_local_payment(orchestrator, user, fake_api):
    await orchestrator.create_local_payment(
        user, plan_id="pro", plan_name="Pro Bundle", amount=119.99, phone_number="251912345678", is_annual=True
    )
    held = await orchestrator.get_session(user)
    assert held.billing_cycle is BillingCycle.YEARLY
    assert "billing=yearly" in fake_api.payments[0]["successUrl"]


@pytest.mark.asyncio
async def test_provider_error_persists_nothing(orchestrator, user, fake_api, db, received):
    fake_api.fail.add(("POST", "/payment"))

    with pytest.raises(ProviderError) as excinfo:
        await orchestrator.create_local_payment(
            user, plan_id="builder", plan_name="Builder", amount=9.99, phone_number="251912345678"
        )

    assert excinfo.value.message == "API Error: 500 - Internal Server Error"
    assert await orchestrator.get_session(user) is None
    assert await _records(db) == []
    assert received[-1].title == "Payment Failed"


@pytest.mark.asyncio
async def test_invalid_phone_never_reaches_provider(orchestrator, user, fake_api, db):
    with pytest.raises(ValidationError) as excinfo:
        await orchestrator.create_local_payment(
            user, plan_id="builder", plan_name="Builder", amount=9.99, phone_number="0912345678"
        )
    assert excinfo.value.field == "phone"
    assert fake_api.requests == []
    assert await _records(db) == []


@pytest.mark.asyncio
async def test_unknown_plan_is_rejected(orchestrator, user, fake_api):
    with pytest.raises(ValidationError) as excinfo:
        await orchestrator.create_local_payment(
            user, plan_id="gold", plan_name="Gold", amount=9.99, phone_number="251912345678"
        )
    assert excinfo.value.field == "planId"
    assert fake_api.requests == []


@pytest.mark.asyncio
async def test_unauthenticated_checkout(orchestrator, fake_api):
    with pytest.raises(Unauthenticated):
        await orchestrator.create_local_payment(
            None, plan_id="builder", plan_name="Builder", amount=9.99, phone_number="251912345678"
        )
    with pytest.raises(Unauthenticated):
        await orchestrator.create_international_payment(None, plan_id="builder", plan_name="Builder")
    with pytest.raises(Unauthenticated):
        await orchestrator.get_session(None)
    assert fake_api.requests == []


@pytest.mark.asyncio
async def test_international_payment_defaults_price(orchestrator, user, fake_api, db):
    response = await orchestrator.create_international_payment(user, plan_id="starter", plan_name="Starter", is_annual=True)

    assert fake_api.checkouts[0]["items"] == [{"price": "price_starter_annual", "quantity": 1}]
    record = await get_payment_session(db, response.session_id)
    assert record.provider == "stripe"
    assert record.price == 59.99
    assert record.price_id == "price_starter_annual"
    assert record.billing_cycle == "yearly"

    held = await orchestrator.get_session(user)
    assert held.provider is PaymentProviderKind.INTERNATIONAL


@pytest.mark.asyncio
async def test_international_price_must_match_plan(orchestrator, user, fake_api):
    with pytest.raises(ValidationError) as excinfo:
        await orchestrator.create_international_payment(
            user, plan_id="starter", plan_name="Starter", price_id="price_pro_monthly"
        )
    assert excinfo.value.field == "priceId"

    with pytest.raises(ValidationError):
        await orchestrator.create_international_payment(
            user, plan_id="starter", plan_name="Starter", price_id="price_not_configured"
        )
    assert fake_api.requests == []


@pytest.mark.asyncio
@pytest.mark.parametrize("amount,is_annual", [(0.01, True), (13.99, True), (119.99, False)])
async def test_amount_must_match_catalog_price(orchestrator, user, fake_api, db, amount, is_annual):
    with pytest.raises(ValidationError) as excinfo:
        await orchestrator.create_local_payment(
            user, plan_id="pro", plan_name="Pro", amount=amount, phone_number="251912345678", is_annual=is_annual
        )
    assert excinfo.value.field == "amount"
    assert fake_api.requests == []
    assert await _records(db) == []


@pytest.mark.asyncio
async def test_recorded_price_comes_from_catalog(orchestrator, user, fake_api, db):
    response = await orchestrator.create_local_payment(
        user, plan_id="pro", plan_name="Pro", amount=119.99, phone_number="251912345678", is_annual=True
    )
    record = await get_payment_session(db, response.session_id)
    assert record.price == 119.99
    assert record.amount_minor == 11999
    assert fake_api.payments[0]["amount"] == 11999
