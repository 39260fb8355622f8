"""v1 subscription endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.core.errors import ValidationError
from app.core.security import AuthenticatedUser
from app.core.v1_dependencies import (
    get_current_v1_user,
    get_payment_session_store,
    get_subscription_creator,
    get_webhook_reconciler,
    require_superadmin,
)
from app.enums import SubscriptionPlan
from app.schemas_v1 import (
    CurrentSubscriptionResponse,
    ManualSubscriptionRequest,
    Subscription,
    SubscriptionConfirmResponse,
)
from app.services.client_state import PaymentSessionStore
from app.services.plan_hierarchy import get_current_plan
from app.services.subscription_service import SubscriptionCreator
from app.services.webhook_service import WebhookReconciler

router = APIRouter()


@router.post("/confirm", response_model=SubscriptionConfirmResponse)
async def confirm_subscription(
    session_id: Optional[str] = Query(default=None, alias="sessionId"),
    current_user: AuthenticatedUser = Depends(get_current_v1_user),
    sessions: PaymentSessionStore = Depends(get_payment_session_store),
    reconciler: WebhookReconciler = Depends(get_webhook_reconciler),
):
    """Called by the success page after the provider redirect."""
    if not session_id:
        held = await sessions.load(current_user.id)
        if held is None:
            raise ValidationError("sessionId", "No payment session found")
        session_id = held.session_id

    record = await reconciler.confirm(current_user, session_id)
    return SubscriptionConfirmResponse(
        session_id=record.session_id,
        payment_status=record.status,
        subscription_id=record.subscription_id,
        plan_name=SubscriptionPlan(record.plan_name),
    )


@router.get("/me", response_model=CurrentSubscriptionResponse)
async def my_subscription(
    current_user: AuthenticatedUser = Depends(get_current_v1_user),
    creator: SubscriptionCreator = Depends(get_subscription_creator),
):
    subscription = await creator.get_active_subscription(current_user.id)
    return CurrentSubscriptionResponse(current_plan=get_current_plan(subscription), subscription=subscription)


@router.post("", response_model=Subscription)
async def grant_subscription(
    payload: ManualSubscriptionRequest,
    _: AuthenticatedUser = Depends(require_superadmin),
    creator: SubscriptionCreator = Depends(get_subscription_creator),
):
    """Manual grant by an administrator (e.g. offline payment)."""
    owner = AuthenticatedUser(id=payload.user_id, email=payload.email)
    return await creator.create_subscription(
        owner,
        payload.plan,
        payload.price,
        payload.billing_cycle,
        features=payload.features,
    )
