"""Recipe endpoints: submission, browsing, discovery feeds, image upload,
saved-recipe toggles and view tracking.

Static paths are declared before `/{recipe_id}` so they are not captured by it.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, File, Query, Request, Response, UploadFile, status
from sqlalchemy.orm import Session

from ..core.pagination import page_params
from ..core.responses import dump_all, ok
from ..db import get_db
from ..deps import client_ip, get_current_user, get_optional_user, require_chef_or_admin
from ..infra.rate_limit import limiter
from ..models import User
from ..schemas import BulkCheckIn, RecipeCreate, RecipeOut, RecipeUpdate
from ..services import analytics_service, image_upload, recipe_service, saved_recipe_service
from ..settings import settings

router = APIRouter()


def _csv(value: Optional[str]) -> list[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


@router.get("/recommended")
def recommended(
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    recipes = recipe_service.get_recommended_recipes(db, user, limit)
    return ok({"recipes": dump_all(RecipeOut, recipes)})


@router.get("/trending")
def trending(limit: int = Query(10, ge=1, le=50), db: Session = Depends(get_db)):
    recipes = recipe_service.get_trending_recipes(db, limit)
    return ok({"recipes": dump_all(RecipeOut, recipes)})


@router.get("/new")
def newest(limit: int = Query(10, ge=1, le=50), db: Session = Depends(get_db)):
    recipes = recipe_service.get_new_recipes(db, limit)
    return ok({"recipes": dump_all(RecipeOut, recipes)})


@router.post("/upload-image", status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.rate_limit_upload)
async def upload_image(
    request: Request,
    response: Response,
    image: UploadFile = File(...),
    user: User = Depends(require_chef_or_admin),
):
    data = await image.read()
    result = image_upload.upload_recipe_image(user.id, data, image.content_type)
    return ok(result, "Image uploaded successfully")


@router.get("/my-recipes")
def my_recipes(
    status_filter: Optional[Literal["PENDING", "APPROVED", "REJECTED"]] = Query(None, alias="status"),
    page: int = 1,
    limit: int = 10,
    db: Session = Depends(get_db),
    user: User = Depends(require_chef_or_admin),
):
    items, meta = recipe_service.get_my_recipes(db, user, page_params(page, limit), status_filter)
    return ok({"recipes": dump_all(RecipeOut, items), "pagination": meta})


@router.post("/saved/check")
def bulk_check_saved(
    body: BulkCheckIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return ok({"saved": saved_recipe_service.bulk_check_saved(db, user, body.recipe_ids)})


@router.post("", status_code=status.HTTP_201_CREATED)
def submit(
    body: RecipeCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_chef_or_admin),
):
    recipe = recipe_service.submit_recipe(db, user, body.model_dump())
    return ok(RecipeOut.model_validate(recipe), "Recipe submitted for review")


@router.get("")
def browse(
    page: int = 1,
    limit: int = 10,
    meal_type: Optional[str] = None,
    diet_type: Optional[str] = None,
    difficulty: Optional[str] = None,
    main_ingredient: Optional[str] = None,
    cuisine_type: Optional[str] = None,
    min_prep_time: Optional[int] = Query(None, ge=0),
    max_prep_time: Optional[int] = Query(None, ge=0),
    search: Optional[str] = None,
    ingredients: Optional[str] = None,
    sort_by: Literal["rating", "recent", "prep_time"] = "recent",
    sort_order: Literal["asc", "desc"] = "desc",
    db: Session = Depends(get_db),
):
    filters = recipe_service.BrowseFilters(
        meal_type=_csv(meal_type),
        diet_type=_csv(diet_type),
        difficulty=[d.upper() for d in _csv(difficulty)],
        main_ingredient=main_ingredient,
        cuisine_type=cuisine_type,
        min_prep_time=min_prep_time,
        max_prep_time=max_prep_time,
        search=search,
        ingredients=_csv(ingredients),
    )
    items, meta = recipe_service.browse_recipes(db, filters, page_params(page, limit), sort_by, sort_order)
    return ok({"recipes": dump_all(RecipeOut, items), "pagination": meta})


@router.get("/{recipe_id}")
def get_recipe(
    recipe_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    recipe = recipe_service.get_recipe_by_id(db, recipe_id, user)
    return ok(RecipeOut.model_validate(recipe))


@router.put("/{recipe_id}")
def update_recipe(
    recipe_id: str,
    body: RecipeUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    recipe = recipe_service.update_recipe(db, recipe_id, user, body.model_dump(exclude_unset=True))
    return ok(RecipeOut.model_validate(recipe), "Recipe updated successfully")


@router.delete("/{recipe_id}")
def delete_recipe(
    recipe_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    recipe_service.delete_recipe(db, recipe_id, user)
    return ok(message="Recipe deleted successfully")


@router.post("/{recipe_id}/view")
def track_view(
    recipe_id: str,
    request: Request,
    db: Session = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    result = analytics_service.track_recipe_view(db, recipe_id, user, client_ip(request))
    return ok({"recorded": result["recorded"]}, result["message"])


# --- Saved recipes ---

@router.post("/{recipe_id}/save")
def save_recipe(
    recipe_id: str,
    response: Response,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    row, already_saved = saved_recipe_service.save_recipe(db, user, recipe_id)
    response.status_code = status.HTTP_200_OK if already_saved else status.HTTP_201_CREATED
    return ok(
        {"recipe_id": recipe_id, "saved_at": row.saved_at, "already_saved": already_saved},
        "Recipe already saved" if already_saved else "Recipe saved successfully",
    )


@router.delete("/{recipe_id}/save")
def unsave_recipe(
    recipe_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    saved_recipe_service.unsave_recipe(db, user, recipe_id)
    return ok(message="Recipe removed from saved list")


@router.get("/{recipe_id}/saved")
def check_saved(
    recipe_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    row = saved_recipe_service.check_recipe_saved(db, user, recipe_id)
    return ok({"is_saved": row is not None, "saved_at": row.saved_at if row else None})
