from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.responses import ok
from ..db import get_db
from ..deps import require_chef_or_admin
from ..models import User
from ..services import analytics_service

router = APIRouter()


@router.get("/analytics/overview")
def overview(
    time_range: Literal["7d", "30d", "90d", "all"] = Query("30d", alias="timeRange"),
    db: Session = Depends(get_db),
    chef: User = Depends(require_chef_or_admin),
):
    return ok(analytics_service.get_chef_overview(db, chef, time_range))


@router.get("/recipes/{recipe_id}/analytics")
def recipe_analytics(
    recipe_id: str,
    time_range: Literal["7d", "30d", "90d", "all"] = Query("30d", alias="timeRange"),
    db: Session = Depends(get_db),
    chef: User = Depends(require_chef_or_admin),
):
    return ok(analytics_service.get_recipe_analytics(db, recipe_id, chef, time_range))
