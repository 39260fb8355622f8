"""v1 plan catalog endpoints."""

from typing import List

from fastapi import APIRouter

from app.schemas_v1 import PlanResponse
from app.services.plan_catalog import list_plans

router = APIRouter()


@router.get("", response_model=List[PlanResponse])
async def get_plans():
    return [
        PlanResponse(
            id=p.id,
            name=p.name,
            plan=p.plan,
            audience=p.audience,
            description=p.description,
            monthly_price=p.monthly_price,
            annual_price=p.annual_price,
            annual_savings_percent=p.annual_savings_percent,
            features=p.features,
            popular=p.popular,
        )
        for p in list_plans()
    ]
