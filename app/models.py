"""SQLAlchemy database models for the billing service."""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Float, Index, Integer, String

from app.database import Base


class PaymentSessionRecord(Base):
    """Server-side copy of a checkout, keyed by the provider session id.

    Holds the subscription terms so a webhook can provision without trusting
    anything the client kept.
    """

    __tablename__ = "payment_sessions"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String(255), unique=True, index=True, nullable=False)
    user_id = Column(String(64), nullable=False)
    user_email = Column(String(255), nullable=True)
    provider = Column(String(20), nullable=False)  # arifpay | stripe
    plan_id = Column(String(50), nullable=False)
    plan_name = Column(String(50), nullable=False)
    price = Column(Float, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")
    billing_cycle = Column(String(20), nullable=False, default="monthly")
    amount_minor = Column(Integer, nullable=True)
    price_id = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default="pending")
    conflict_status = Column(String(20), nullable=True)
    transaction_id = Column(String(255), nullable=True)
    provisioning_state = Column(String(20), nullable=False, default="pending")
    provisioning_attempts = Column(Integer, nullable=False, default=0)
    subscription_id = Column(String(64), nullable=True)
    last_error = Column(String(1000), nullable=True)
    status_updated_at = Column(DateTime, nullable=True)
    provisioned_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_payment_sessions_user_created", "user_id", "created_at"),
        Index("idx_payment_sessions_status_prov", "status", "provisioning_state"),
    )


class WebhookEvent(Base):
    """One row per inbound provider notification."""

    __tablename__ = "webhook_events"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String(255), nullable=True, index=True)
    resolved_status = Column(String(20), nullable=True)
    payload = Column(JSON, nullable=True)
    outcome = Column(String(50), nullable=True)
    received_at = Column(DateTime, default=datetime.utcnow)
