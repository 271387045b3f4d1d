"""Recipe lifecycle: submission, moderation, edits, browsing and discovery feeds.

Status transitions:
- PENDING  -> APPROVED | REJECTED   (admin)
- REJECTED -> APPROVED              (admin re-review)
- REJECTED -> PENDING               (author edits the recipe)

APPROVED recipes can only be edited by an admin.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from sqlalchemy import String, cast, func, or_
from sqlalchemy.orm import Session, joinedload

from ..core.clock import utcnow, start_of_day
from ..core.pagination import PageParams, paginate
from ..core.text import clean_text
from ..errors import NotFound, PermissionDenied, ValidationFailed
from ..models import Rating, Recipe, RecipeStatus, RecipeView, Role, SavedRecipe, User
from . import analytics_service, audit, image_upload, notification_service

logger = logging.getLogger("recipehub.recipes")

MIN_REJECTION_REASON = 10
TRENDING_DAYS = 7

SORT_COLUMNS = {
    "rating": Recipe.average_rating,
    "recent": Recipe.created_at,
    "prep_time": Recipe.prep_time,
}

_TEXT_FIELDS = ("title", "description", "main_ingredient", "cuisine_type")
_LIST_FIELDS = ("meal_type", "diet_type", "allergies")
_REQUIRED_FIELDS = {
    "title", "main_ingredient", "ingredients", "instructions", "prep_time",
    "cooking_time", "servings", "difficulty", "meal_type", "diet_type",
    "allergies", "image_urls",
}


@dataclass
class BrowseFilters:
    meal_type: list[str] = field(default_factory=list)
    diet_type: list[str] = field(default_factory=list)
    difficulty: list[str] = field(default_factory=list)
    main_ingredient: Optional[str] = None
    cuisine_type: Optional[str] = None
    min_prep_time: Optional[int] = None
    max_prep_time: Optional[int] = None
    search: Optional[str] = None
    ingredients: list[str] = field(default_factory=list)


def _json_list_contains(column, value: str):
    # Works on JSONB (postgres) and JSON-as-TEXT (sqlite) alike
    return cast(column, String).like(f'%"{value}"%')


def _clean_payload(data: dict) -> dict:
    out = dict(data)
    for key in _TEXT_FIELDS:
        if out.get(key) is not None:
            out[key] = clean_text(out[key]) or None
    for key in _LIST_FIELDS:
        if out.get(key) is not None:
            out[key] = [clean_text(v) for v in out[key] if clean_text(v)]
    if out.get("instructions") is not None:
        out["instructions"] = [clean_text(s) for s in out["instructions"]]
    if out.get("ingredients") is not None:
        out["ingredients"] = [
            {
                "name": clean_text(i["name"]),
                "amount": clean_text(i["amount"]),
                "unit": clean_text(i.get("unit")) or None,
            }
            for i in out["ingredients"]
        ]
    return out


def _load(db: Session, recipe_id: str) -> Recipe:
    recipe = (
        db.query(Recipe)
        .options(joinedload(Recipe.author))
        .filter(Recipe.id == recipe_id)
        .first()
    )
    if recipe is None:
        raise NotFound("Recipe not found")
    return recipe


def _can_manage(recipe: Recipe, user: User) -> bool:
    return user.role == Role.ADMIN or recipe.author_id == user.id


# --- Submission & moderation ---

def submit_recipe(db: Session, author: User, data: dict) -> Recipe:
    payload = _clean_payload(data)
    if not payload.get("title") or not payload.get("main_ingredient"):
        raise ValidationFailed("Title and main ingredient are required")

    recipe = Recipe(author_id=author.id, status=RecipeStatus.PENDING, **payload)
    db.add(recipe)
    db.commit()
    db.refresh(recipe)
    logger.info(f"Recipe {recipe.id} submitted by {author.id}")

    notification_service.notify_new_recipe_submission(db, recipe, author)
    return recipe


def approve_recipe(db: Session, recipe_id: str, admin: User, admin_note: Optional[str] = None,
                   ip_address: Optional[str] = None) -> Recipe:
    recipe = _load(db, recipe_id)
    if recipe.status == RecipeStatus.APPROVED:
        raise ValidationFailed("Recipe is already approved")

    recipe.status = RecipeStatus.APPROVED
    recipe.approved_at = utcnow()
    recipe.approved_by_id = admin.id
    recipe.admin_note = clean_text(admin_note) or None
    recipe.rejected_at = None
    recipe.rejected_by_id = None
    recipe.rejection_reason = None
    audit.record(
        db,
        admin_id=admin.id,
        action="recipe_approved",
        target_type="recipe",
        target_id=recipe.id,
        target_name=recipe.title,
        reason=recipe.admin_note,
        ip_address=ip_address,
    )
    db.commit()
    db.refresh(recipe)
    logger.info(f"Recipe {recipe.id} approved by {admin.id}")
    analytics_service.invalidate_cache()

    notification_service.notify_recipe_approved(db, recipe, admin.id)
    return recipe


def reject_recipe(db: Session, recipe_id: str, admin: User, reason: Optional[str],
                  ip_address: Optional[str] = None) -> Recipe:
    reason = clean_text(reason)
    if len(reason) < MIN_REJECTION_REASON:
        raise ValidationFailed(f"Rejection reason must be at least {MIN_REJECTION_REASON} characters")

    recipe = _load(db, recipe_id)
    if recipe.status == RecipeStatus.REJECTED:
        raise ValidationFailed("Recipe is already rejected")

    recipe.status = RecipeStatus.REJECTED
    recipe.rejected_at = utcnow()
    recipe.rejected_by_id = admin.id
    recipe.rejection_reason = reason
    recipe.approved_at = None
    recipe.approved_by_id = None
    audit.record(
        db,
        admin_id=admin.id,
        action="recipe_rejected",
        target_type="recipe",
        target_id=recipe.id,
        target_name=recipe.title,
        reason=reason,
        ip_address=ip_address,
    )
    db.commit()
    db.refresh(recipe)
    logger.info(f"Recipe {recipe.id} rejected by {admin.id}")
    analytics_service.invalidate_cache()

    notification_service.notify_recipe_rejected(db, recipe, admin.id, reason)
    return recipe


def update_recipe(db: Session, recipe_id: str, user: User, data: dict) -> Recipe:
    recipe = _load(db, recipe_id)
    if not _can_manage(recipe, user):
        raise PermissionDenied("You can only edit your own recipes")

    is_admin = user.role == Role.ADMIN
    if recipe.status == RecipeStatus.APPROVED and not is_admin:
        raise PermissionDenied("Approved recipes cannot be edited")

    for key, value in _clean_payload(data).items():
        if value is None and key in _REQUIRED_FIELDS:
            continue
        setattr(recipe, key, value)

    if recipe.status == RecipeStatus.REJECTED:
        recipe.status = RecipeStatus.PENDING
        recipe.rejected_at = None
        recipe.rejected_by_id = None
        recipe.rejection_reason = None
        logger.info(f"Rejected recipe {recipe.id} resubmitted for review")

    db.commit()
    db.refresh(recipe)
    return recipe


def delete_recipe(db: Session, recipe_id: str, user: User) -> None:
    recipe = _load(db, recipe_id)
    if not _can_manage(recipe, user):
        raise PermissionDenied("You can only delete your own recipes")
    image_urls = list(recipe.image_urls or [])
    db.delete(recipe)
    db.commit()
    logger.info(f"Recipe {recipe_id} deleted by {user.id}")
    image_upload.delete_images(image_urls)


# --- Reads ---

def get_recipe_by_id(db: Session, recipe_id: str, user: Optional[User]) -> Recipe:
    recipe = _load(db, recipe_id)
    if recipe.status != RecipeStatus.APPROVED and (user is None or not _can_manage(recipe, user)):
        raise PermissionDenied("You do not have access to this recipe")
    return recipe


def get_my_recipes(db: Session, author: User, params: PageParams, status: Optional[str] = None):
    q = db.query(Recipe).options(joinedload(Recipe.author)).filter(Recipe.author_id == author.id)
    if status:
        q = q.filter(Recipe.status == status)
    return paginate(q.order_by(Recipe.created_at.desc()), params)


def browse_recipes(db: Session, filters: BrowseFilters, params: PageParams,
                   sort_by: str = "recent", sort_order: str = "desc"):
    q = db.query(Recipe).options(joinedload(Recipe.author)).filter(Recipe.status == RecipeStatus.APPROVED)

    if filters.meal_type:
        q = q.filter(or_(*[_json_list_contains(Recipe.meal_type, v) for v in filters.meal_type]))
    if filters.diet_type:
        q = q.filter(or_(*[_json_list_contains(Recipe.diet_type, v) for v in filters.diet_type]))
    if filters.difficulty:
        q = q.filter(Recipe.difficulty.in_(filters.difficulty))
    if filters.main_ingredient:
        q = q.filter(Recipe.main_ingredient.ilike(f"%{filters.main_ingredient}%"))
    if filters.cuisine_type:
        q = q.filter(Recipe.cuisine_type.ilike(f"%{filters.cuisine_type}%"))
    if filters.min_prep_time is not None:
        q = q.filter(Recipe.prep_time >= filters.min_prep_time)
    if filters.max_prep_time is not None:
        q = q.filter(Recipe.prep_time <= filters.max_prep_time)
    if filters.search:
        term = f"%{filters.search.strip()}%"
        q = q.filter(or_(
            Recipe.title.ilike(term),
            Recipe.description.ilike(term),
            Recipe.main_ingredient.ilike(term),
        ))
    if filters.ingredients:
        clauses = []
        for name in filters.ingredients:
            clauses.append(Recipe.main_ingredient.ilike(f"%{name}%"))
            clauses.append(cast(Recipe.ingredients, String).ilike(f"%{name}%"))
        q = q.filter(or_(*clauses))

    column = SORT_COLUMNS.get(sort_by, Recipe.created_at)
    ordering = column.asc() if sort_order == "asc" else column.desc()
    q = q.order_by(ordering, Recipe.created_at.desc())
    return paginate(q, params)


def get_new_recipes(db: Session, limit: int = 10) -> list[Recipe]:
    return (
        db.query(Recipe)
        .options(joinedload(Recipe.author))
        .filter(Recipe.status == RecipeStatus.APPROVED)
        .order_by(Recipe.approved_at.desc(), Recipe.created_at.desc())
        .limit(limit)
        .all()
    )


def get_trending_recipes(db: Session, limit: int = 10, days: int = TRENDING_DAYS) -> list[Recipe]:
    """Approved recipes ranked by views + ratings received in the last `days` days."""
    cutoff = utcnow() - timedelta(days=days)
    views = (
        db.query(RecipeView.recipe_id.label("recipe_id"), func.count(RecipeView.id).label("n"))
        .filter(RecipeView.viewed_at >= cutoff)
        .group_by(RecipeView.recipe_id)
        .subquery()
    )
    ratings = (
        db.query(Rating.recipe_id.label("recipe_id"), func.count(Rating.id).label("n"))
        .filter(Rating.created_at >= cutoff)
        .group_by(Rating.recipe_id)
        .subquery()
    )
    score = func.coalesce(views.c.n, 0) + func.coalesce(ratings.c.n, 0)
    return (
        db.query(Recipe)
        .options(joinedload(Recipe.author))
        .outerjoin(views, views.c.recipe_id == Recipe.id)
        .outerjoin(ratings, ratings.c.recipe_id == Recipe.id)
        .filter(Recipe.status == RecipeStatus.APPROVED)
        .order_by(score.desc(), Recipe.average_rating.desc(), Recipe.created_at.desc())
        .limit(limit)
        .all()
    )


def get_recommended_recipes(db: Session, user: Optional[User], limit: int = 10) -> list[Recipe]:
    """Top-rated approved recipes, preferring the main ingredients and cuisines
    of what the user has saved. The user's own and already-saved recipes are skipped."""
    base = (
        db.query(Recipe)
        .options(joinedload(Recipe.author))
        .filter(Recipe.status == RecipeStatus.APPROVED)
    )
    top_rated = (Recipe.average_rating.desc(), Recipe.total_ratings.desc(), Recipe.created_at.desc())
    if user is None:
        return base.order_by(*top_rated).limit(limit).all()

    saved = (
        db.query(Recipe.id, Recipe.main_ingredient, Recipe.cuisine_type)
        .join(SavedRecipe, SavedRecipe.recipe_id == Recipe.id)
        .filter(SavedRecipe.user_id == user.id)
        .all()
    )
    exclude = {row.id for row in saved}
    base = base.filter(Recipe.author_id != user.id)
    if exclude:
        base = base.filter(Recipe.id.notin_(exclude))

    ingredients = {row.main_ingredient for row in saved if row.main_ingredient}
    cuisines = {row.cuisine_type for row in saved if row.cuisine_type}
    picked: list[Recipe] = []
    if ingredients or cuisines:
        clauses = []
        if ingredients:
            clauses.append(Recipe.main_ingredient.in_(ingredients))
        if cuisines:
            clauses.append(Recipe.cuisine_type.in_(cuisines))
        picked = base.filter(or_(*clauses)).order_by(*top_rated).limit(limit).all()

    if len(picked) < limit:
        seen = {r.id for r in picked}
        q = base
        if seen:
            q = q.filter(Recipe.id.notin_(seen))
        picked.extend(q.order_by(*top_rated).limit(limit - len(picked)).all())
    return picked


# --- Admin views ---

def get_pending_recipes(db: Session, params: PageParams):
    q = (
        db.query(Recipe)
        .options(joinedload(Recipe.author))
        .filter(Recipe.status == RecipeStatus.PENDING)
        .order_by(Recipe.created_at.asc())
    )
    return paginate(q, params)


def get_recipe_admin(db: Session, recipe_id: str) -> Recipe:
    return _load(db, recipe_id)


def get_approval_stats(db: Session) -> dict:
    counts = dict(
        db.query(Recipe.status, func.count(Recipe.id)).group_by(Recipe.status).all()
    )
    today = start_of_day(utcnow())
    approved_today = db.query(Recipe).filter(Recipe.approved_at >= today).count()
    rejected_today = db.query(Recipe).filter(Recipe.rejected_at >= today).count()
    pending = counts.get(RecipeStatus.PENDING, 0)
    approved = counts.get(RecipeStatus.APPROVED, 0)
    rejected = counts.get(RecipeStatus.REJECTED, 0)
    return {
        "pending": pending,
        "approved": approved,
        "rejected": rejected,
        "total": pending + approved + rejected,
        "approved_today": approved_today,
        "rejected_today": rejected_today,
    }
