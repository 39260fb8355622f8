"""Purchasable plan catalog (prices in USD)."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from app.config import Settings, get_settings
from app.core.errors import ValidationError
from app.enums import BillingCycle, SubscriptionPlan


@dataclass(frozen=True)
class PricingPlan:
    id: str
    name: str
    plan: SubscriptionPlan
    audience: str
    description: str
    monthly_price: float
    annual_price: float
    features: List[str] = field(default_factory=list)
    popular: bool = False

    def price_for(self, is_annual: bool) -> float:
        return self.annual_price if is_annual else self.monthly_price

    @property
    def annual_savings_percent(self) -> int:
        if not self.monthly_price:
            return 0
        monthly_total = self.monthly_price * 12
        return round((monthly_total - self.annual_price) / monthly_total * 100)


DEFAULT_PLANS = [
    PricingPlan(
        id="free",
        name="Free Plan",
        plan=SubscriptionPlan.FREE,
        audience="Ages 6-10",
        description="Perfect for getting started with basic coding concepts",
        monthly_price=0,
        annual_price=0,
        features=[
            "Limited access to mobile app levels",
            "Basic blocks",
            "Intro level content",
            "Community support",
        ],
    ),
    PricingPlan(
        id="starter",
        name="Starter",
        plan=SubscriptionPlan.STARTER,
        audience="Ages 6-10",
        description="Full mobile experience with engaging puzzles and characters",
        monthly_price=6.99,
        annual_price=59.99,
        features=[
            "Full mobile app access",
            "More puzzles & characters",
            "Progress tracking",
            "Parental dashboard",
            "Email support",
        ],
    ),
    PricingPlan(
        id="builder",
        name="Builder",
        plan=SubscriptionPlan.BUILDER,
        audience="Ages 8-14",
        description="Transition to real coding with web technologies",
        monthly_price=9.99,
        annual_price=89.99,
        features=[
            "Full web access",
            "HTML & CSS courses",
            "Intro Python programming",
            "Real coding projects",
            "Code editor access",
            "Priority support",
        ],
        popular=True,
    ),
    PricingPlan(
        id="pro",
        name="Pro Bundle",
        plan=SubscriptionPlan.PRO_BUNDLE,
        audience="Families / Siblings",
        description="Complete family coding solution with premium features",
        monthly_price=13.99,
        annual_price=119.99,
        features=[
            "Mobile + Web access",
            "New projects monthly",
            "Bonus badges & rewards",
            "Multiple child accounts",
            "Advanced progress tracking",
            "Premium support",
        ],
    ),
]

_BY_ID: Dict[str, PricingPlan] = {p.id: p for p in DEFAULT_PLANS}


def list_plans() -> List[PricingPlan]:
    return list(DEFAULT_PLANS)


def get_pricing_plan(plan_id: str) -> PricingPlan:
    """Look up a purchasable plan; Free and unknown ids are rejected."""
    plan = _BY_ID.get((plan_id or "").strip().lower())
    if plan is None or plan.plan is SubscriptionPlan.FREE:
        raise ValidationError("planId", f"Invalid plan: {plan_id}")
    return plan


def billing_cycle_for(is_annual: bool) -> BillingCycle:
    return BillingCycle.YEARLY if is_annual else BillingCycle.MONTHLY


def stripe_price_id(plan_id: str, is_annual: bool, settings: Optional[Settings] = None) -> str:
    settings = settings or get_settings()
    plan = get_pricing_plan(plan_id)
    return settings.stripe_price_ids()[plan.id]["annual" if is_annual else "monthly"]


def find_price(price_id: str, settings: Optional[Settings] = None) -> Optional[tuple]:
    """Reverse lookup: price id -> (PricingPlan, is_annual)."""
    settings = settings or get_settings()
    for plan_id, prices in settings.stripe_price_ids().items():
        for period, configured in prices.items():
            if configured == price_id:
                return _BY_ID[plan_id], period == "annual"
    return None


def features_for(plan_id: str) -> List[str]:
    plan = _BY_ID.get((plan_id or "").strip().lower())
    return list(plan.features) if plan else []
