"""v1 API router."""

from fastapi import APIRouter

from app.api.v1.endpoints import access, payments, plans, subscriptions

router = APIRouter(prefix="/v1")
router.include_router(plans.router, prefix="/plans", tags=["v1-plans"])
router.include_router(payments.router, prefix="/payments", tags=["v1-payments"])
router.include_router(subscriptions.router, prefix="/subscriptions", tags=["v1-subscriptions"])
router.include_router(access.router, prefix="/access", tags=["v1-access"])
