"""Durable payment-session records and their status state machine.

A record starts `pending`; every other status is terminal and final. The
first terminal status recorded wins, so a confirmed success can never be
overwritten by a late failure. Provisioning is claimed with a conditional
UPDATE so concurrent or repeated deliveries provision at most once; a claim
left in_progress past PROVISIONING_CLAIM_TIMEOUT_SECONDS can be taken over.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.core.errors import IdempotencyConflict
from app.enums import PaymentStatus, ProvisioningState
from app.models import PaymentSessionRecord, WebhookEvent

logger = logging.getLogger(__name__)


@dataclass
class StatusTransition:
    record: Optional[PaymentSessionRecord]
    changed: bool = False
    conflict: Optional[IdempotencyConflict] = None


async def get_payment_session(db: AsyncSession, session_id: str) -> Optional[PaymentSessionRecord]:
    result = await db.execute(
        select(PaymentSessionRecord)
        .where(PaymentSessionRecord.session_id == session_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def record_payment_session(
    db: AsyncSession,
    *,
    session_id: str,
    user_id: str,
    user_email: Optional[str],
    provider: str,
    plan_id: str,
    plan_name: str,
    price: float,
    currency: str,
    billing_cycle: str,
    amount_minor: Optional[int] = None,
    price_id: Optional[str] = None,
) -> PaymentSessionRecord:
    existing = await get_payment_session(db, session_id)
    if existing:
        return existing

    record = PaymentSessionRecord(
        session_id=session_id,
        user_id=user_id,
        user_email=user_email,
        provider=provider,
        plan_id=plan_id,
        plan_name=plan_name,
        price=price,
        currency=currency,
        billing_cycle=billing_cycle,
        amount_minor=amount_minor,
        price_id=price_id,
        status=PaymentStatus.PENDING.value,
        provisioning_state=ProvisioningState.PENDING.value,
        provisioning_attempts=0,
    )
    db.add(record)
    await db.commit()
    await db.refresh(record)

    # Notifications can arrive before the checkout is on file; replay them.
    for status, transaction_id in await recorded_statuses(db, session_id):
        logger.info("Applying %s received before payment session %s was recorded", status.value, session_id)
        record = (await apply_payment_status(db, session_id, status, transaction_id)).record
    return record


async def recorded_statuses(db: AsyncSession, session_id: str) -> List[Tuple[PaymentStatus, Optional[str]]]:
    """Terminal statuses from stored notifications for `session_id`, oldest first."""
    result = await db.execute(
        select(WebhookEvent)
        .where(
            WebhookEvent.session_id == session_id,
            WebhookEvent.resolved_status.is_not(None),
            WebhookEvent.resolved_status != PaymentStatus.PENDING.value,
        )
        .order_by(WebhookEvent.id.asc())
    )
    statuses = []
    for event in result.scalars().all():
        status = PaymentStatus.parse(event.resolved_status)
        if status is None:
            continue
        transaction = (event.payload or {}).get("transaction") or {}
        statuses.append((status, transaction.get("transactionId")))
    return statuses


async def apply_payment_status(
    db: AsyncSession,
    session_id: str,
    status: PaymentStatus,
    transaction_id: Optional[str] = None,
) -> StatusTransition:
    """Move a pending record to `status`; terminal records are left alone."""
    if status is PaymentStatus.PENDING:
        return StatusTransition(record=await get_payment_session(db, session_id))

    now = datetime.utcnow()
    values = {"status": status.value, "status_updated_at": now, "updated_at": now}
    if transaction_id:
        values["transaction_id"] = transaction_id
    result = await db.execute(
        update(PaymentSessionRecord)
        .where(
            PaymentSessionRecord.session_id == session_id,
            PaymentSessionRecord.status == PaymentStatus.PENDING.value,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    record = await get_payment_session(db, session_id)
    if result.rowcount == 1:
        logger.info("Payment session %s moved to %s", session_id, status.value)
        return StatusTransition(record=record, changed=True)

    if record is None or record.status == status.value:
        return StatusTransition(record=record)

    conflict = IdempotencyConflict(session_id, record.status, status.value)
    logger.error("%s", conflict.message)
    record.conflict_status = status.value
    await db.commit()
    return StatusTransition(record=record, conflict=conflict)


def _claimable(stale_after_seconds: Optional[int] = None):
    """Provisioning not started, failed, or claimed by a caller that never finished."""
    if stale_after_seconds is None:
        stale_after_seconds = get_settings().PROVISIONING_CLAIM_TIMEOUT_SECONDS
    cutoff = datetime.utcnow() - timedelta(seconds=stale_after_seconds)
    return or_(
        PaymentSessionRecord.provisioning_state.in_(
            [ProvisioningState.PENDING.value, ProvisioningState.FAILED.value]
        ),
        and_(
            PaymentSessionRecord.provisioning_state == ProvisioningState.IN_PROGRESS.value,
            PaymentSessionRecord.updated_at < cutoff,
        ),
    )


async def claim_provisioning(
    db: AsyncSession, session_id: str, stale_after_seconds: Optional[int] = None
) -> bool:
    """Atomically take ownership of provisioning a successful session."""
    result = await db.execute(
        update(PaymentSessionRecord)
        .where(
            PaymentSessionRecord.session_id == session_id,
            PaymentSessionRecord.status == PaymentStatus.SUCCESS.value,
            _claimable(stale_after_seconds),
        )
        .values(
            provisioning_state=ProvisioningState.IN_PROGRESS.value,
            provisioning_attempts=PaymentSessionRecord.provisioning_attempts + 1,
            updated_at=datetime.utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount == 1


async def complete_provisioning(db: AsyncSession, session_id: str, subscription_id: Optional[str]) -> None:
    now = datetime.utcnow()
    await db.execute(
        update(PaymentSessionRecord)
        .where(PaymentSessionRecord.session_id == session_id)
        .values(
            provisioning_state=ProvisioningState.DONE.value,
            subscription_id=subscription_id,
            provisioned_at=now,
            last_error=None,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()


async def fail_provisioning(db: AsyncSession, session_id: str, error: str) -> None:
    await db.execute(
        update(PaymentSessionRecord)
        .where(PaymentSessionRecord.session_id == session_id)
        .values(
            provisioning_state=ProvisioningState.FAILED.value,
            last_error=error[:1000],
            updated_at=datetime.utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()


async def list_unprovisioned(
    db: AsyncSession, limit: int = 100, stale_after_seconds: Optional[int] = None
) -> List[PaymentSessionRecord]:
    """Successful sessions whose subscription has not been created yet."""
    result = await db.execute(
        select(PaymentSessionRecord)
        .where(
            PaymentSessionRecord.status == PaymentStatus.SUCCESS.value,
            _claimable(stale_after_seconds),
        )
        .order_by(PaymentSessionRecord.status_updated_at.asc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def record_webhook_event(
    db: AsyncSession,
    payload: dict,
    session_id: Optional[str],
    resolved_status: Optional[PaymentStatus],
    outcome: str,
) -> WebhookEvent:
    event = WebhookEvent(
        session_id=session_id,
        resolved_status=resolved_status.value if resolved_status else None,
        payload=payload,
        outcome=outcome,
    )
    db.add(event)
    await db.commit()
    return event
