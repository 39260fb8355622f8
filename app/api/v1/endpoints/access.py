"""v1 course access endpoints."""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from app.core.security import AuthenticatedUser
from app.core.v1_dependencies import get_current_v1_user, get_subscription_creator
from app.enums import CourseSubscriptionType, SubscriptionPlan
from app.schemas_v1 import AccessibleCoursesResponse, CourseAccessResponse, CourseFilterRequest, CourseRef
from app.services.plan_hierarchy import (
    can_access_course,
    filter_courses_by_subscription,
    get_accessible_course_types,
    get_current_plan,
)
from app.services.subscription_service import SubscriptionCreator

router = APIRouter()


async def _current_plan(user: AuthenticatedUser, creator: SubscriptionCreator) -> SubscriptionPlan:
    return get_current_plan(await creator.get_active_subscription(user.id))


@router.get("/courses", response_model=AccessibleCoursesResponse)
async def accessible_course_types(
    current_user: AuthenticatedUser = Depends(get_current_v1_user),
    creator: SubscriptionCreator = Depends(get_subscription_creator),
):
    plan = await _current_plan(current_user, creator)
    return AccessibleCoursesResponse(current_plan=plan, course_types=get_accessible_course_types(plan))


@router.get("/courses/{course_type}", response_model=CourseAccessResponse)
async def course_access(
    course_type: str,
    current_user: AuthenticatedUser = Depends(get_current_v1_user),
    creator: SubscriptionCreator = Depends(get_subscription_creator),
):
    try:
        course = CourseSubscriptionType(course_type)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown course type")
    plan = await _current_plan(current_user, creator)
    return CourseAccessResponse(course_type=course, current_plan=plan, allowed=can_access_course(plan, course))


@router.post("/courses/filter", response_model=List[CourseRef])
async def filter_courses(
    payload: CourseFilterRequest,
    current_user: AuthenticatedUser = Depends(get_current_v1_user),
    creator: SubscriptionCreator = Depends(get_subscription_creator),
):
    plan = await _current_plan(current_user, creator)
    return filter_courses_by_subscription(payload.courses, plan)
