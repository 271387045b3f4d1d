"""Per-user recipe bookmarks."""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ..core.pagination import PageParams, paginate
from ..errors import NotFound, ValidationFailed
from ..models import Recipe, RecipeStatus, SavedRecipe, User

MAX_BULK_CHECK = 100


def save_recipe(db: Session, user: User, recipe_id: str) -> tuple[SavedRecipe, bool]:
    """Idempotent. Returns (saved_row, already_saved)."""
    recipe = db.get(Recipe, recipe_id)
    if recipe is None or recipe.status != RecipeStatus.APPROVED:
        raise NotFound("Recipe not found or not available")

    existing = db.query(SavedRecipe).filter(
        SavedRecipe.user_id == user.id, SavedRecipe.recipe_id == recipe_id
    ).first()
    if existing:
        return existing, True

    saved = SavedRecipe(user_id=user.id, recipe_id=recipe_id)
    db.add(saved)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent save of the same recipe
        db.rollback()
        existing = db.query(SavedRecipe).filter(
            SavedRecipe.user_id == user.id, SavedRecipe.recipe_id == recipe_id
        ).one()
        return existing, True
    db.refresh(saved)
    return saved, False


def unsave_recipe(db: Session, user: User, recipe_id: str) -> None:
    deleted = db.query(SavedRecipe).filter(
        SavedRecipe.user_id == user.id, SavedRecipe.recipe_id == recipe_id
    ).delete()
    if not deleted:
        db.rollback()
        raise NotFound("Recipe is not in your saved list")
    db.commit()


def get_saved_recipes(db: Session, user: User, params: PageParams, sort_order: str = "desc"):
    order = SavedRecipe.saved_at.asc() if sort_order == "asc" else SavedRecipe.saved_at.desc()
    q = (
        db.query(SavedRecipe)
        .options(joinedload(SavedRecipe.recipe).joinedload(Recipe.author))
        .join(Recipe, Recipe.id == SavedRecipe.recipe_id)
        .filter(SavedRecipe.user_id == user.id, Recipe.status == RecipeStatus.APPROVED)
        .order_by(order)
    )
    return paginate(q, params)


def check_recipe_saved(db: Session, user: User, recipe_id: str) -> SavedRecipe | None:
    return db.query(SavedRecipe).filter(
        SavedRecipe.user_id == user.id, SavedRecipe.recipe_id == recipe_id
    ).first()


def bulk_check_saved(db: Session, user: User, recipe_ids: list[str]) -> dict[str, bool]:
    if len(recipe_ids) > MAX_BULK_CHECK:
        raise ValidationFailed(f"Cannot check more than {MAX_BULK_CHECK} recipes at once")
    saved = {
        row.recipe_id
        for row in db.query(SavedRecipe.recipe_id).filter(
            SavedRecipe.user_id == user.id, SavedRecipe.recipe_id.in_(recipe_ids)
        )
    }
    return {rid: rid in saved for rid in recipe_ids}
