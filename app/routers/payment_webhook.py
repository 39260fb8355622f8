"""Inbound payment provider notifications."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.core.v1_dependencies import get_webhook_reconciler
from app.schemas_v1 import WebhookAck, WebhookPayload
from app.services.webhook_service import WebhookReconciler

router = APIRouter(prefix="/payment", tags=["payment-webhook"])
logger = logging.getLogger(__name__)


@router.post("/webhook", response_model=WebhookAck)
async def payment_webhook(
    payload: WebhookPayload,
    reconciler: WebhookReconciler = Depends(get_webhook_reconciler),
):
    """Acknowledge once the status is recorded; 500 makes the provider retry."""
    try:
        await reconciler.handle(payload)
    except Exception as exc:
        logger.exception("Payment webhook processing failed for session %s: %s", payload.session_id, exc)
        return JSONResponse(status_code=500, content={"error": "Webhook processing failed"})
    return WebhookAck(success=True)


@router.get("/webhook")
async def payment_webhook_probe():
    return {"message": "Payment webhook endpoint"}
