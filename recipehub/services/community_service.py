"""Ratings and threaded comments on approved recipes."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload, selectinload

from ..core.pagination import PageParams, paginate
from ..core.text import clean_text
from ..errors import NotFound, PermissionDenied, ValidationFailed
from ..models import Comment, Rating, Recipe, RecipeStatus, Role, User
from . import notification_service

logger = logging.getLogger("recipehub.community")

MAX_COMMENT_LENGTH = 1000
HIGH_RATING = 5


def _approved_recipe(db: Session, recipe_id: str, action: str) -> Recipe:
    recipe = db.get(Recipe, recipe_id)
    if recipe is None or recipe.status != RecipeStatus.APPROVED:
        raise NotFound(f"Recipe not found or not available for {action}")
    return recipe


def recalculate_rating_stats(db: Session, recipe: Recipe) -> Recipe:
    avg, count = db.query(func.avg(Rating.rating), func.count(Rating.id)).filter(
        Rating.recipe_id == recipe.id
    ).one()
    recipe.total_ratings = int(count or 0)
    recipe.average_rating = round(float(avg), 1) if count else 0.0
    return recipe


# --- Ratings ---

def submit_rating(db: Session, user: User, recipe_id: str, value: int) -> tuple[Rating, Recipe, bool]:
    """Create or replace the user's rating. Returns (rating, recipe, created)."""
    if not isinstance(value, int) or not 1 <= value <= 5:
        raise ValidationFailed("Rating must be an integer between 1 and 5")

    recipe = _approved_recipe(db, recipe_id, "rating")
    if recipe.author_id == user.id:
        raise ValidationFailed("You cannot rate your own recipe")

    rating = db.query(Rating).filter(Rating.recipe_id == recipe_id, Rating.user_id == user.id).first()
    created = rating is None
    if created:
        rating = Rating(recipe_id=recipe_id, user_id=user.id, rating=value)
        db.add(rating)
    else:
        rating.rating = value
    db.flush()

    recalculate_rating_stats(db, recipe)
    db.commit()
    db.refresh(rating)
    db.refresh(recipe)

    if value == HIGH_RATING:
        notification_service.notify_high_rating(db, recipe, rating.id, user)
    return rating, recipe, created


def get_user_rating(db: Session, user: User, recipe_id: str) -> Optional[Rating]:
    if db.get(Recipe, recipe_id) is None:
        raise NotFound("Recipe not found")
    return db.query(Rating).filter(Rating.recipe_id == recipe_id, Rating.user_id == user.id).first()


def get_recipe_ratings(db: Session, recipe_id: str, params: PageParams) -> dict:
    recipe = _approved_recipe(db, recipe_id, "rating")
    q = (
        db.query(Rating)
        .options(joinedload(Rating.user))
        .filter(Rating.recipe_id == recipe_id)
        .order_by(Rating.created_at.desc())
    )
    items, meta = paginate(q, params)

    distribution = {str(i): 0 for i in range(1, 6)}
    for value, count in (
        db.query(Rating.rating, func.count(Rating.id))
        .filter(Rating.recipe_id == recipe_id)
        .group_by(Rating.rating)
        .all()
    ):
        distribution[str(value)] = count

    return {
        "ratings": items,
        "pagination": meta,
        "average_rating": recipe.average_rating,
        "total_ratings": recipe.total_ratings,
        "distribution": distribution,
    }


def delete_rating(db: Session, user: User, recipe_id: str) -> Recipe:
    rating = db.query(Rating).filter(Rating.recipe_id == recipe_id, Rating.user_id == user.id).first()
    if rating is None:
        raise NotFound("No rating found to delete")
    recipe = rating.recipe
    db.delete(rating)
    db.flush()
    recalculate_rating_stats(db, recipe)
    db.commit()
    db.refresh(recipe)
    return recipe


# --- Comments ---

def _comment_content(content: Optional[str]) -> str:
    content = clean_text(content)
    if not content:
        raise ValidationFailed("Comment content is required")
    if len(content) > MAX_COMMENT_LENGTH:
        raise ValidationFailed(f"Comment must be at most {MAX_COMMENT_LENGTH} characters")
    return content


def add_comment(db: Session, user: User, recipe_id: str, content: str,
                parent_id: Optional[str] = None) -> Comment:
    content = _comment_content(content)
    recipe = _approved_recipe(db, recipe_id, "commenting")

    if parent_id:
        parent = db.get(Comment, parent_id)
        if parent is None or parent.recipe_id != recipe_id:
            raise ValidationFailed("Parent comment does not belong to this recipe")

    comment = Comment(recipe_id=recipe_id, user_id=user.id, parent_id=parent_id, content=content)
    db.add(comment)
    recipe.total_comments = (recipe.total_comments or 0) + 1
    db.commit()
    db.refresh(comment)

    if recipe.author_id != user.id:
        notification_service.notify_new_comment(db, recipe, comment.id, user)
    return comment


def get_recipe_comments(db: Session, recipe_id: str, params: PageParams):
    _approved_recipe(db, recipe_id, "commenting")
    q = (
        db.query(Comment)
        .options(joinedload(Comment.user), selectinload(Comment.replies).joinedload(Comment.user))
        .filter(Comment.recipe_id == recipe_id, Comment.parent_id.is_(None))
        .order_by(Comment.created_at.desc())
    )
    return paginate(q, params)


def _load_comment(db: Session, recipe_id: str, comment_id: str) -> Comment:
    comment = db.get(Comment, comment_id)
    if comment is None or comment.recipe_id != recipe_id:
        raise NotFound("Comment not found")
    return comment


def update_comment(db: Session, user: User, recipe_id: str, comment_id: str, content: str) -> Comment:
    content = _comment_content(content)
    comment = _load_comment(db, recipe_id, comment_id)
    if comment.user_id != user.id:
        raise PermissionDenied("You can only update your own comments")
    comment.content = content
    db.commit()
    db.refresh(comment)
    return comment


def count_thread(db: Session, comment_id: str) -> int:
    """Number of rows removed when `comment_id` is deleted (itself + all replies)."""
    total = 0
    frontier = [comment_id]
    while frontier:
        total += len(frontier)
        frontier = [
            row.id for row in db.query(Comment.id).filter(Comment.parent_id.in_(frontier)).all()
        ]
    return total


def delete_comment_row(db: Session, comment: Comment) -> int:
    """Delete a comment (replies cascade) and keep recipe.total_comments in step."""
    removed = count_thread(db, comment.id)
    recipe = db.get(Recipe, comment.recipe_id)
    db.delete(comment)
    if recipe is not None:
        recipe.total_comments = max(0, (recipe.total_comments or 0) - removed)
    return removed


def delete_comment(db: Session, user: User, recipe_id: str, comment_id: str) -> int:
    comment = _load_comment(db, recipe_id, comment_id)
    if comment.user_id != user.id and user.role != Role.ADMIN:
        raise PermissionDenied("You can only delete your own comments")
    removed = delete_comment_row(db, comment)
    db.commit()
    return removed
