"""Admin user management, content removal and the audit trail."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from ..core.clock import utcnow
from ..core.pagination import PageParams, paginate
from ..core.text import clean_text
from ..errors import NotFound, PermissionDenied, ServiceError, ValidationFailed
from ..models import (
    AuditLog,
    Comment,
    Rating,
    Recipe,
    RecipeStatus,
    Role,
    Session as UserSession,
    User,
)
from . import audit, image_upload
from .community_service import delete_comment_row

logger = logging.getLogger("recipehub.admin")

MIN_REASON = 10
USER_SORT_COLUMNS = {
    "created_at": User.created_at,
    "email": User.email,
    "first_name": User.first_name,
    "last_name": User.last_name,
    "last_login_at": User.last_login_at,
}
COMMENT_SORT_COLUMNS = {
    "created_at": Comment.created_at,
    "updated_at": Comment.updated_at,
}


def _require_reason(reason: Optional[str], what: str) -> str:
    reason = clean_text(reason)
    if len(reason) < MIN_REASON:
        raise ValidationFailed(f"{what} reason must be at least {MIN_REASON} characters")
    return reason


def _user_or_404(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


def _label(user: User) -> str:
    return f"{user.full_name} ({user.email})"


# --- Users ---

def list_users(
    db: Session,
    params: PageParams,
    search: Optional[str] = None,
    role: Optional[str] = None,
    status: Optional[str] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
):
    q = db.query(User)
    if search:
        term = f"%{search.strip()}%"
        q = q.filter(or_(User.email.ilike(term), User.first_name.ilike(term), User.last_name.ilike(term)))
    if role:
        q = q.filter(User.role == role)
    if status == "banned":
        q = q.filter(User.is_banned.is_(True))
    elif status == "active":
        q = q.filter(User.is_banned.is_(False))

    column = USER_SORT_COLUMNS.get(sort_by, User.created_at)
    q = q.order_by(column.asc() if sort_order == "asc" else column.desc())
    users, meta = paginate(q, params)

    ids = [u.id for u in users]
    recipe_counts = dict(
        db.query(Recipe.author_id, func.count(Recipe.id))
        .filter(Recipe.author_id.in_(ids))
        .group_by(Recipe.author_id)
        .all()
    ) if ids else {}
    comment_counts = dict(
        db.query(Comment.user_id, func.count(Comment.id))
        .filter(Comment.user_id.in_(ids))
        .group_by(Comment.user_id)
        .all()
    ) if ids else {}

    rows = [
        {
            "user": u,
            "recipe_count": recipe_counts.get(u.id, 0),
            "comment_count": comment_counts.get(u.id, 0),
        }
        for u in users
    ]
    return rows, meta


def get_user_details(db: Session, user_id: str) -> dict:
    user = _user_or_404(db, user_id)

    status_counts = dict(
        db.query(Recipe.status, func.count(Recipe.id))
        .filter(Recipe.author_id == user_id)
        .group_by(Recipe.status)
        .all()
    )
    avg_rating = (
        db.query(func.avg(Recipe.average_rating))
        .filter(Recipe.author_id == user_id, Recipe.total_ratings > 0)
        .scalar()
    )
    comments_posted = db.query(Comment).filter(Comment.user_id == user_id).count()
    ratings_given = db.query(Rating).filter(Rating.user_id == user_id).count()

    activity = []
    for r in (
        db.query(Recipe).filter(Recipe.author_id == user_id)
        .order_by(Recipe.created_at.desc()).limit(5)
    ):
        activity.append({"type": "recipe_submitted", "timestamp": r.created_at,
                         "details": f'Submitted "{r.title}"'})
    for c in (
        db.query(Comment).options(joinedload(Comment.recipe)).filter(Comment.user_id == user_id)
        .order_by(Comment.created_at.desc()).limit(5)
    ):
        activity.append({"type": "comment_posted", "timestamp": c.created_at,
                         "details": f'Commented on "{c.recipe.title}"'})
    for rt in (
        db.query(Rating).options(joinedload(Rating.recipe)).filter(Rating.user_id == user_id)
        .order_by(Rating.created_at.desc()).limit(5)
    ):
        activity.append({"type": "rating_given", "timestamp": rt.created_at,
                         "details": f'Rated "{rt.recipe.title}" {rt.rating}/5'})
    activity.sort(key=lambda a: a["timestamp"], reverse=True)

    return {
        "user": user,
        "statistics": {
            "recipes_submitted": sum(status_counts.values()),
            "recipes_approved": status_counts.get(RecipeStatus.APPROVED, 0),
            "recipes_pending": status_counts.get(RecipeStatus.PENDING, 0),
            "recipes_rejected": status_counts.get(RecipeStatus.REJECTED, 0),
            "comments_posted": comments_posted,
            "ratings_given": ratings_given,
            "average_recipe_rating": round(float(avg_rating), 2) if avg_rating is not None else 0.0,
        },
        "recent_activity": activity[:10],
    }


def ban_user(db: Session, admin: User, user_id: str, reason: str, ip_address: Optional[str] = None) -> User:
    reason = _require_reason(reason, "Ban")
    if user_id == admin.id:
        raise PermissionDenied("You cannot ban yourself")

    user = _user_or_404(db, user_id)
    if user.role == Role.ADMIN:
        raise PermissionDenied("Admins cannot be banned")
    if user.is_banned:
        raise ValidationFailed("User is already banned")

    user.is_banned = True
    user.banned_at = utcnow()
    user.banned_by = admin.id
    user.ban_reason = reason
    revoked = db.query(UserSession).filter(UserSession.user_id == user.id).delete()
    audit.record(
        db,
        admin_id=admin.id,
        action="user_banned",
        target_type="user",
        target_id=user.id,
        target_name=_label(user),
        reason=reason,
        details={"user_email": user.email, "sessions_revoked": revoked},
        ip_address=ip_address,
    )
    db.commit()
    db.refresh(user)
    logger.warning(f"User {user.id} banned by {admin.id}")
    return user


def unban_user(db: Session, admin: User, user_id: str, reason: Optional[str] = None,
               ip_address: Optional[str] = None) -> User:
    user = _user_or_404(db, user_id)
    if not user.is_banned:
        raise ValidationFailed("User is not banned")

    previous = user.ban_reason
    user.is_banned = False
    user.banned_at = None
    user.banned_by = None
    user.ban_reason = None
    audit.record(
        db,
        admin_id=admin.id,
        action="user_unbanned",
        target_type="user",
        target_id=user.id,
        target_name=_label(user),
        reason=clean_text(reason) or None,
        details={"previous_ban_reason": previous},
        ip_address=ip_address,
    )
    db.commit()
    db.refresh(user)
    logger.info(f"User {user.id} unbanned by {admin.id}")
    return user


def change_user_role(db: Session, admin: User, user_id: str, new_role: str, reason: Optional[str] = None,
                     ip_address: Optional[str] = None) -> User:
    if new_role not in Role.ALL:
        raise ValidationFailed("Invalid role")
    if user_id == admin.id:
        raise ValidationFailed("Cannot change your own role")

    user = _user_or_404(db, user_id)
    if user.role == new_role:
        raise ValidationFailed("User already has this role")
    if user.role == Role.ADMIN:
        admins = db.query(User).filter(User.role == Role.ADMIN).count()
        if admins <= 1:
            raise ValidationFailed("Cannot demote the last admin")

    old_role = user.role
    user.role = new_role
    audit.record(
        db,
        admin_id=admin.id,
        action="role_changed",
        target_type="user",
        target_id=user.id,
        target_name=_label(user),
        reason=clean_text(reason) or None,
        details={"old_role": old_role, "new_role": new_role},
        ip_address=ip_address,
    )
    db.commit()
    db.refresh(user)
    logger.info(f"User {user.id} role {old_role} -> {new_role} by {admin.id}")
    return user


# --- Recipes ---

def _delete_recipe(db: Session, admin: User, recipe_id: str, reason: str, ip_address: Optional[str]) -> list[str]:
    """Audit and delete one recipe. Returns its image URLs for storage cleanup."""
    recipe = db.get(Recipe, recipe_id)
    if recipe is None:
        raise NotFound("Recipe not found")
    audit.record(
        db,
        admin_id=admin.id,
        action="recipe_deleted",
        target_type="recipe",
        target_id=recipe.id,
        target_name=recipe.title,
        reason=reason,
        details={"author_id": recipe.author_id, "status": recipe.status, "image_urls": recipe.image_urls},
        ip_address=ip_address,
    )
    db.delete(recipe)
    return list(recipe.image_urls or [])


def admin_delete_recipe(db: Session, admin: User, recipe_id: str, reason: str,
                        ip_address: Optional[str] = None) -> dict:
    reason = _require_reason(reason, "Deletion")
    image_urls = _delete_recipe(db, admin, recipe_id, reason, ip_address)
    db.commit()
    image_upload.delete_images(image_urls)
    return {"recipe_id": recipe_id, "deleted_at": utcnow(), "deleted_by": admin.id, "reason": reason}


def bulk_delete_recipes(db: Session, admin: User, recipe_ids: list[str], reason: str,
                        ip_address: Optional[str] = None) -> dict:
    reason = _require_reason(reason, "Deletion")
    if not recipe_ids:
        raise ValidationFailed("No recipe IDs provided")

    results = []
    for recipe_id in recipe_ids:
        try:
            image_urls = _delete_recipe(db, admin, recipe_id, reason, ip_address)
            db.commit()
            image_upload.delete_images(image_urls)
            results.append({"id": recipe_id, "success": True})
        except ServiceError as e:
            db.rollback()
            results.append({"id": recipe_id, "success": False, "error": e.message})

    deleted = sum(1 for r in results if r["success"])
    return {"deleted_count": deleted, "failed_count": len(results) - deleted, "results": results}


# --- Comments ---

def list_comments(
    db: Session,
    params: PageParams,
    recipe_id: Optional[str] = None,
    user_id: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
):
    q = db.query(Comment).options(joinedload(Comment.user), joinedload(Comment.recipe))
    if recipe_id:
        q = q.filter(Comment.recipe_id == recipe_id)
    if user_id:
        q = q.filter(Comment.user_id == user_id)
    if search:
        q = q.filter(Comment.content.ilike(f"%{search.strip()}%"))
    column = COMMENT_SORT_COLUMNS.get(sort_by, Comment.created_at)
    q = q.order_by(column.asc() if sort_order == "asc" else column.desc())
    return paginate(q, params)


def bulk_delete_comments(db: Session, admin: User, comment_ids: list[str], reason: str,
                         ip_address: Optional[str] = None) -> dict:
    reason = _require_reason(reason, "Deletion")
    if not comment_ids:
        raise ValidationFailed("No comment IDs provided")

    results = []
    for comment_id in comment_ids:
        comment = db.get(Comment, comment_id)
        if comment is None:
            # Already removed, possibly as a reply of an earlier id in this batch
            results.append({"id": comment_id, "success": False, "error": "Comment not found"})
            continue
        audit.record(
            db,
            admin_id=admin.id,
            action="comment_deleted",
            target_type="comment",
            target_id=comment.id,
            target_name=f"Comment by {comment.user.full_name}",
            reason=reason,
            details={
                "comment_text": comment.content[:100],
                "user_id": comment.user_id,
                "recipe_id": comment.recipe_id,
            },
            ip_address=ip_address,
        )
        delete_comment_row(db, comment)
        db.commit()
        db.expire_all()
        results.append({"id": comment_id, "success": True})

    deleted = sum(1 for r in results if r["success"])
    return {"deleted_count": deleted, "failed_count": len(results) - deleted, "results": results}


# --- Audit ---

def get_audit_logs(
    db: Session,
    params: PageParams,
    action: Optional[str] = None,
    admin_id: Optional[str] = None,
    target_user_id: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
):
    q = db.query(AuditLog)
    if action:
        q = q.filter(AuditLog.action == action)
    if admin_id:
        q = q.filter(AuditLog.admin_id == admin_id)
    if target_user_id:
        q = q.filter(AuditLog.target_type == "user", AuditLog.target_id == target_user_id)
    if start_date:
        q = q.filter(AuditLog.timestamp >= start_date)
    if end_date:
        q = q.filter(AuditLog.timestamp <= end_date)
    return paginate(q.order_by(AuditLog.timestamp.desc()), params)
