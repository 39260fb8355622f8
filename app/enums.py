"""Closed value sets shared by the billing flow."""

from enum import Enum
from typing import Optional


class SubscriptionPlan(str, Enum):
    FREE = "Free"
    STARTER = "Starter"
    BUILDER = "Builder"
    PRO_BUNDLE = "Pro-Bundle"
    ORGANIZATION = "Organization"

    @classmethod
    def _missing_(cls, value):
        return _match_casefold(cls, value)


class CourseSubscriptionType(str, Enum):
    """Tier a course is tagged with. The dashboard sends either casing."""

    FREE = "Free"
    STARTER = "Starter"
    BUILDER = "Builder"
    PRO = "Pro-Bundle"
    ORGANIZATION = "Organization"

    @classmethod
    def _missing_(cls, value):
        return _match_casefold(cls, value)


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    CANCELED = "canceled"
    EXPIRED = "expired"
    TRIAL = "trial"


class BillingCycle(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    FAILED = "failed"
    CANCELED = "canceled"
    EXPIRED = "expired"
    UNAUTHORIZED = "unauthorized"
    SUCCESS = "SUCCESS"

    @property
    def is_terminal(self) -> bool:
        return self is not PaymentStatus.PENDING

    @classmethod
    def parse(cls, raw: Optional[str]) -> Optional["PaymentStatus"]:
        """Case-insensitive lookup; None for empty or unknown values."""
        if not raw:
            return None
        return _match_casefold(cls, raw)


class PaymentMethod(str, Enum):
    TELEBIRR = "TELEBIRR"
    AWASH = "AWASH"
    AWASH_WALLET = "AWASH_WALLET"
    PSS = "PSS"
    CBE = "CBE"
    AMOLE = "AMOLE"
    BOA = "BOA"
    KACHA = "KACHA"
    TELEBIRR_USSD = "TELEBIRR_USSD"
    HELLOCASH = "HELLOCASH"
    MPESSA = "MPESSA"


class PaymentProviderKind(str, Enum):
    LOCAL = "arifpay"
    INTERNATIONAL = "stripe"


class ProvisioningState(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    FAILED = "failed"


def _match_casefold(enum_cls, value):
    if not isinstance(value, str):
        return None
    needle = value.strip().casefold()
    for member in enum_cls:
        if member.value.casefold() == needle:
            return member
    return None
