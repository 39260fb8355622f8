"""Subscription tier ordering and course access checks."""

import logging
from typing import Callable, Iterable, List, Optional, TypeVar

from app.enums import CourseSubscriptionType, SubscriptionPlan, SubscriptionStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")

PLAN_ORDINALS = {
    SubscriptionPlan.FREE: 0,
    SubscriptionPlan.STARTER: 1,
    SubscriptionPlan.BUILDER: 2,
    SubscriptionPlan.PRO_BUNDLE: 3,
    SubscriptionPlan.ORGANIZATION: 4,
}

COURSE_TO_PLAN = {
    CourseSubscriptionType.FREE: SubscriptionPlan.FREE,
    CourseSubscriptionType.STARTER: SubscriptionPlan.STARTER,
    CourseSubscriptionType.BUILDER: SubscriptionPlan.BUILDER,
    CourseSubscriptionType.PRO: SubscriptionPlan.PRO_BUNDLE,
    CourseSubscriptionType.ORGANIZATION: SubscriptionPlan.ORGANIZATION,
}

# Above every real plan: unmapped course types are never accessible.
_UNMAPPED_LEVEL = max(PLAN_ORDINALS.values()) + 1


def _check_tables() -> None:
    missing_plans = set(SubscriptionPlan) - set(PLAN_ORDINALS)
    if missing_plans:
        raise RuntimeError(f"Plans without an ordinal: {sorted(p.value for p in missing_plans)}")
    missing_courses = set(CourseSubscriptionType) - set(COURSE_TO_PLAN)
    if missing_courses:
        raise RuntimeError(f"Course types without a plan mapping: {sorted(c.value for c in missing_courses)}")
    if len(set(COURSE_TO_PLAN.values())) != len(COURSE_TO_PLAN):
        raise RuntimeError("Course type to plan mapping must be one-to-one")


_check_tables()


def plan_ordinal(plan: Optional[SubscriptionPlan]) -> int:
    if plan is None:
        return PLAN_ORDINALS[SubscriptionPlan.FREE]
    return PLAN_ORDINALS[plan]


def course_level(course_plan: CourseSubscriptionType) -> int:
    plan = COURSE_TO_PLAN.get(course_plan)
    if plan is None:
        logger.error("Course type %r has no plan mapping; treating as inaccessible", course_plan)
        return _UNMAPPED_LEVEL
    return PLAN_ORDINALS[plan]


def can_access_course(
    user_plan: Optional[SubscriptionPlan],
    course_plan: CourseSubscriptionType,
) -> bool:
    """Whether a user on `user_plan` may open a course tagged `course_plan`.

    No plan (or Free) only opens Free courses; otherwise a plan opens every
    course at its own tier and below.
    """
    if user_plan is None or user_plan is SubscriptionPlan.FREE:
        return course_plan is CourseSubscriptionType.FREE
    return plan_ordinal(user_plan) >= course_level(course_plan)


def get_accessible_course_types(user_plan: Optional[SubscriptionPlan]) -> List[CourseSubscriptionType]:
    """Course types `user_plan` can open, in tier order."""
    return [course for course in CourseSubscriptionType if can_access_course(user_plan, course)]


def filter_courses_by_subscription(
    courses: Iterable[T],
    user_plan: Optional[SubscriptionPlan],
    sub_type: Callable[[T], CourseSubscriptionType] = lambda course: course.sub_type,
) -> List[T]:
    return [course for course in courses if can_access_course(user_plan, sub_type(course))]


def get_current_plan(subscription) -> SubscriptionPlan:
    """Plan of an active subscription, Free otherwise."""
    if subscription is None or subscription.status != SubscriptionStatus.ACTIVE:
        return SubscriptionPlan.FREE
    return subscription.plan_name or SubscriptionPlan.FREE


def can_access_feature(subscription, required_plan: SubscriptionPlan) -> bool:
    if subscription is None:
        return required_plan is SubscriptionPlan.FREE
    return (
        subscription.status == SubscriptionStatus.ACTIVE
        and plan_ordinal(subscription.plan_name) >= plan_ordinal(required_plan)
    )


def is_upgrade(current: Optional[SubscriptionPlan], target: SubscriptionPlan) -> bool:
    """Only strictly higher tiers are offered for purchase."""
    return plan_ordinal(target) > plan_ordinal(current)
