from typing import Literal

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.pagination import page_params
from ..core.responses import ok
from ..db import get_db
from ..deps import get_current_user
from ..models import User
from ..schemas import RecipeOut
from ..services import saved_recipe_service

router = APIRouter()


@router.get("/me/saved-recipes")
def saved_recipes(
    page: int = 1,
    limit: int = 10,
    sort_order: Literal["asc", "desc"] = "desc",
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    rows, meta = saved_recipe_service.get_saved_recipes(db, user, page_params(page, limit), sort_order)
    return ok({
        "recipes": [
            {"saved_at": row.saved_at, "recipe": RecipeOut.model_validate(row.recipe)} for row in rows
        ],
        "pagination": meta,
    })
