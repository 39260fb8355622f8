"""Pydantic schemas for v1 billing APIs and backend API payloads.

Backend and provider payloads are camelCase on the wire; models accept either
spelling and serialize with `model_dump(by_alias=True)`.
"""

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

from app.enums import (
    BillingCycle,
    CourseSubscriptionType,
    PaymentMethod,
    PaymentProviderKind,
    SubscriptionPlan,
    SubscriptionStatus,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class MessageResponse(BaseModel):
    message: str


# --- Provider requests ---


class PaymentItem(CamelModel):
    name: str
    quantity: int = 1
    price: int
    description: Optional[str] = None
    image: Optional[str] = None


class PaymentRequest(CamelModel):
    """Local (mobile-money) provider payment request. `amount` is in minor units."""

    user_id: str
    amount: int
    cancel_url: str
    success_url: str
    error_url: str
    notify_url: str
    phone: Optional[str] = None
    email: Optional[str] = None
    expire_date: datetime
    items: List[PaymentItem]
    payment_methods: List[PaymentMethod]
    lang: str = "EN"

    @field_serializer("phone")
    def _phone_as_number(self, phone: Optional[str]):
        return int(phone) if phone else None


class CheckoutItem(CamelModel):
    price: str
    quantity: int = 1


class InternationalCheckoutRequest(CamelModel):
    user_id: str
    items: List[CheckoutItem]
    success_url: str
    cancel_url: str
    error_url: Optional[str] = None
    notify_url: Optional[str] = None
    mode: str = "payment"


# --- Provider responses ---


class PaymentResponse(CamelModel):
    session_id: str
    payment_url: str
    transaction_id: Optional[str] = None
    cancel_url: Optional[str] = None


class CheckoutResponse(CamelModel):
    session_id: str
    url: str


class PaymentRecord(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: Optional[str] = Field(default=None, alias="_id")
    user_id: Optional[str] = None
    amount: Optional[float] = None
    status: Optional[str] = None
    items: List[PaymentItem] = Field(default_factory=list)
    created_at: Optional[datetime] = None


# --- Client-held session ---


class PaymentSession(CamelModel):
    session_id: str
    plan_id: str
    plan_name: str
    amount: Optional[float] = None
    billing_cycle: BillingCycle
    timestamp: int
    provider: PaymentProviderKind


# --- Webhook ---


class WebhookTransaction(CamelModel):
    transaction_id: Optional[str] = None
    transaction_status: Optional[str] = None


class WebhookPayload(CamelModel):
    """Inbound provider callback. Both providers' shapes are accepted."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    uuid: Optional[str] = None
    nonce: Optional[str] = None
    phone: Optional[Union[int, str]] = None
    transaction_status: Optional[str] = None
    payment_status: Optional[str] = None
    total_amount: Optional[float] = None
    transaction: Optional[WebhookTransaction] = None
    notification_url: Optional[str] = None
    session_id: Optional[str] = None


class WebhookAck(BaseModel):
    success: bool = True


# --- Subscriptions ---


class SubscriptionCreate(CamelModel):
    user_id: str
    plan_name: SubscriptionPlan
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    start_date: datetime
    end_date: datetime
    auto_renew: bool = True
    price: float
    currency: str = "USD"
    billing_cycle: BillingCycle
    features: List[str] = Field(default_factory=list)
    last_payment_date: Optional[datetime] = None
    next_billing_date: Optional[datetime] = None
    cancel_at_period_end: bool = False


class Subscription(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: Optional[str] = Field(default=None, alias="_id")
    user_id: str
    plan_name: SubscriptionPlan
    status: SubscriptionStatus
    start_date: datetime
    end_date: datetime
    auto_renew: bool = True
    price: float = 0
    currency: str = "USD"
    billing_cycle: BillingCycle
    features: List[str] = Field(default_factory=list)
    last_payment_date: Optional[datetime] = None
    next_billing_date: Optional[datetime] = None
    cancel_at_period_end: bool = False


class SubscriptionUpdate(CamelModel):
    status: Optional[SubscriptionStatus] = None
    auto_renew: Optional[bool] = None
    cancel_at_period_end: Optional[bool] = None


# --- v1 API bodies ---


class LocalPaymentCreateRequest(CamelModel):
    plan_id: str = Field(..., min_length=1, max_length=50)
    plan_name: str = Field(default="Plan", max_length=100)
    amount: float = Field(..., gt=0)
    phone_number: str = Field(..., min_length=1, max_length=32)
    is_annual: bool = False


class InternationalPaymentCreateRequest(CamelModel):
    plan_id: str = Field(..., min_length=1, max_length=50)
    plan_name: str = Field(default="Plan", max_length=100)
    price_id: Optional[str] = Field(default=None, max_length=100)
    is_annual: bool = False


class ManualSubscriptionRequest(CamelModel):
    user_id: str
    email: Optional[str] = None
    plan: SubscriptionPlan
    price: float = Field(..., ge=0)
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    features: List[str] = Field(default_factory=list)


class SubscriptionConfirmResponse(CamelModel):
    session_id: str
    payment_status: str
    subscription_id: Optional[str] = None
    plan_name: SubscriptionPlan


class CurrentSubscriptionResponse(CamelModel):
    current_plan: SubscriptionPlan
    subscription: Optional[Subscription] = None


class PlanResponse(CamelModel):
    id: str
    name: str
    plan: SubscriptionPlan
    audience: str
    description: str
    monthly_price: float
    annual_price: float
    annual_savings_percent: int
    features: List[str]
    popular: bool = False


class CourseRef(CamelModel):
    id: str
    sub_type: CourseSubscriptionType


class CourseFilterRequest(CamelModel):
    courses: List[CourseRef]


class CourseAccessResponse(CamelModel):
    course_type: CourseSubscriptionType
    current_plan: SubscriptionPlan
    allowed: bool


class AccessibleCoursesResponse(CamelModel):
    current_plan: SubscriptionPlan
    course_types: List[CourseSubscriptionType]
