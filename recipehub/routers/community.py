"""Ratings and comments on approved recipes."""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from ..core.pagination import page_params
from ..core.responses import dump_all, ok
from ..db import get_db
from ..deps import get_current_user
from ..models import User
from ..schemas import CommentIn, CommentOut, CommentUpdate, RatingIn, RatingOut
from ..services import community_service

router = APIRouter()


def _recipe_stats(recipe) -> dict:
    return {"average_rating": recipe.average_rating, "total_ratings": recipe.total_ratings}


# --- Ratings ---

@router.post("/recipes/{recipe_id}/ratings")
def rate_recipe(
    recipe_id: str,
    body: RatingIn,
    response: Response,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    rating, recipe, created = community_service.submit_rating(db, user, recipe_id, body.rating)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return ok(
        {"rating": RatingOut.model_validate(rating), "recipe_stats": _recipe_stats(recipe)},
        "Rating submitted successfully" if created else "Rating updated successfully",
    )


@router.get("/recipes/{recipe_id}/ratings")
def list_ratings(
    recipe_id: str,
    page: int = 1,
    limit: int = 10,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    result = community_service.get_recipe_ratings(db, recipe_id, page_params(page, limit))
    result["ratings"] = dump_all(RatingOut, result["ratings"])
    return ok(result)


@router.get("/recipes/{recipe_id}/ratings/me")
def my_rating(
    recipe_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    rating = community_service.get_user_rating(db, user, recipe_id)
    return ok({"rating": RatingOut.model_validate(rating) if rating else None})


@router.delete("/recipes/{recipe_id}/ratings/me")
def delete_my_rating(
    recipe_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    recipe = community_service.delete_rating(db, user, recipe_id)
    return ok({"recipe_stats": _recipe_stats(recipe)}, "Rating deleted successfully")


# --- Comments ---

@router.post("/recipes/{recipe_id}/comments", status_code=status.HTTP_201_CREATED)
def add_comment(
    recipe_id: str,
    body: CommentIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    comment = community_service.add_comment(db, user, recipe_id, body.content, body.parent_id)
    return ok(CommentOut.model_validate(comment), "Comment added successfully")


@router.get("/recipes/{recipe_id}/comments")
def list_comments(
    recipe_id: str,
    page: int = 1,
    limit: int = 10,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    items, meta = community_service.get_recipe_comments(db, recipe_id, page_params(page, limit))
    return ok({"comments": dump_all(CommentOut, items), "pagination": meta})


@router.put("/recipes/{recipe_id}/comments/{comment_id}")
def update_comment(
    recipe_id: str,
    comment_id: str,
    body: CommentUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    comment = community_service.update_comment(db, user, recipe_id, comment_id, body.content)
    return ok(CommentOut.model_validate(comment), "Comment updated successfully")


@router.delete("/recipes/{recipe_id}/comments/{comment_id}")
def delete_comment(
    recipe_id: str,
    comment_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    removed = community_service.delete_comment(db, user, recipe_id, comment_id)
    return ok({"deleted_count": removed}, "Comment deleted successfully")
