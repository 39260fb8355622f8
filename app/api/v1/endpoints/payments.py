"""v1 checkout endpoints (local mobile money + international card)."""

from typing import List, Optional

from fastapi import APIRouter, Depends, status
from redis.asyncio import Redis

from app.config import get_settings
from app.core.rate_limit import enforce_rate_limit, in_flight
from app.core.security import AuthenticatedUser
from app.core.v1_dependencies import get_backend_client, get_current_v1_user, get_orchestrator, get_redis
from app.schemas_v1 import (
    CheckoutResponse,
    InternationalPaymentCreateRequest,
    LocalPaymentCreateRequest,
    PaymentRecord,
    PaymentResponse,
    PaymentSession,
)
from app.services.backend_client import BackendApiClient
from app.services.checkout_service import PaymentOrchestrator

router = APIRouter()
settings = get_settings()


@router.post("/local", response_model=PaymentResponse)
async def create_local_payment(
    payload: LocalPaymentCreateRequest,
    current_user: AuthenticatedUser = Depends(get_current_v1_user),
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
    redis_client: Redis = Depends(get_redis),
):
    await enforce_rate_limit(
        redis_client, f"checkout:{current_user.id}", settings.CHECKOUT_RATE_LIMIT, settings.CHECKOUT_RATE_WINDOW_SECONDS
    )
    async with in_flight(redis_client, f"checkout:{current_user.id}", settings.CHECKOUT_IN_FLIGHT_SECONDS):
        return await orchestrator.create_local_payment(
            current_user,
            plan_id=payload.plan_id,
            plan_name=payload.plan_name,
            amount=payload.amount,
            phone_number=payload.phone_number,
            is_annual=payload.is_annual,
        )


@router.post("/international", response_model=CheckoutResponse)
async def create_international_payment(
    payload: InternationalPaymentCreateRequest,
    current_user: AuthenticatedUser = Depends(get_current_v1_user),
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
    redis_client: Redis = Depends(get_redis),
):
    await enforce_rate_limit(
        redis_client, f"checkout:{current_user.id}", settings.CHECKOUT_RATE_LIMIT, settings.CHECKOUT_RATE_WINDOW_SECONDS
    )
    async with in_flight(redis_client, f"checkout:{current_user.id}", settings.CHECKOUT_IN_FLIGHT_SECONDS):
        return await orchestrator.create_international_payment(
            current_user,
            plan_id=payload.plan_id,
            plan_name=payload.plan_name,
            price_id=payload.price_id,
            is_annual=payload.is_annual,
        )


@router.get("/session", response_model=Optional[PaymentSession])
async def get_payment_session(
    current_user: AuthenticatedUser = Depends(get_current_v1_user),
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.get_session(current_user)


@router.delete("/session", status_code=status.HTTP_204_NO_CONTENT)
async def clear_payment_session(
    current_user: AuthenticatedUser = Depends(get_current_v1_user),
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
):
    await orchestrator.clear_session(current_user)


@router.get("/history", response_model=List[PaymentRecord])
async def payment_history(
    current_user: AuthenticatedUser = Depends(get_current_v1_user),
    backend: BackendApiClient = Depends(get_backend_client),
):
    return await backend.get_user_payments(current_user.id)
