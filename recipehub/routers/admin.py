"""Admin endpoints: recipe moderation, user management, content removal,
audit trail and platform analytics. Every route requires the ADMIN role."""

from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ..core.pagination import page_params
from ..core.responses import dump_all, ok
from ..db import get_db
from ..deps import client_ip, require_admin
from ..models import User
from ..schemas import (
    AdminUserOut,
    ApproveIn,
    AuditLogOut,
    AuthorOut,
    BanIn,
    BulkDeleteCommentsIn,
    BulkDeleteRecipesIn,
    CommentOut,
    ReasonIn,
    RecipeOut,
    RejectIn,
    RoleIn,
)
from ..services import admin_service, analytics_service, recipe_service

router = APIRouter()


# --- Recipe moderation ---

@router.get("/recipes/pending")
def pending_recipes(
    page: int = 1,
    limit: int = 10,
    db: Session = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    items, meta = recipe_service.get_pending_recipes(db, page_params(page, limit))
    return ok({"recipes": dump_all(RecipeOut, items), "pagination": meta})


@router.get("/recipes/stats")
def approval_stats(db: Session = Depends(get_db), _admin: User = Depends(require_admin)):
    return ok(recipe_service.get_approval_stats(db))


@router.post("/recipes/bulk-delete")
def bulk_delete_recipes(
    body: BulkDeleteRecipesIn,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    result = admin_service.bulk_delete_recipes(db, admin, body.recipe_ids, body.reason, client_ip(request))
    return ok(result, f"{result['deleted_count']} recipe(s) deleted")


@router.get("/recipes/{recipe_id}")
def recipe_detail(recipe_id: str, db: Session = Depends(get_db), _admin: User = Depends(require_admin)):
    return ok(RecipeOut.model_validate(recipe_service.get_recipe_admin(db, recipe_id)))


@router.put("/recipes/{recipe_id}/approve")
def approve_recipe(
    recipe_id: str,
    request: Request,
    body: Optional[ApproveIn] = None,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    note = body.admin_note if body else None
    recipe = recipe_service.approve_recipe(db, recipe_id, admin, note, client_ip(request))
    return ok(RecipeOut.model_validate(recipe), "Recipe approved successfully")


@router.put("/recipes/{recipe_id}/reject")
def reject_recipe(
    recipe_id: str,
    body: RejectIn,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    recipe = recipe_service.reject_recipe(db, recipe_id, admin, body.reason, client_ip(request))
    return ok(RecipeOut.model_validate(recipe), "Recipe rejected")


@router.delete("/recipes/{recipe_id}")
def delete_recipe(
    recipe_id: str,
    body: ReasonIn,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    result = admin_service.admin_delete_recipe(db, admin, recipe_id, body.reason, client_ip(request))
    return ok(result, "Recipe deleted successfully")


# --- Users ---

@router.get("/users")
def list_users(
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    role: Optional[Literal["USER", "CHEF", "ADMIN"]] = None,
    status: Optional[Literal["active", "banned"]] = None,
    sort_by: str = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
    db: Session = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    rows, meta = admin_service.list_users(db, page_params(page, limit), search, role, status, sort_by, sort_order)
    users = [
        {
            **AdminUserOut.model_validate(row["user"]).model_dump(),
            "recipe_count": row["recipe_count"],
            "comment_count": row["comment_count"],
        }
        for row in rows
    ]
    return ok({"users": users, "pagination": meta})


@router.get("/users/{user_id}")
def user_details(user_id: str, db: Session = Depends(get_db), _admin: User = Depends(require_admin)):
    details = admin_service.get_user_details(db, user_id)
    details["user"] = AdminUserOut.model_validate(details["user"])
    return ok(details)


@router.post("/users/{user_id}/ban")
def ban_user(
    user_id: str,
    body: BanIn,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    user = admin_service.ban_user(db, admin, user_id, body.reason, client_ip(request))
    return ok(AdminUserOut.model_validate(user), "User banned successfully")


@router.post("/users/{user_id}/unban")
def unban_user(
    user_id: str,
    request: Request,
    body: Optional[ReasonIn] = None,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    reason = body.reason if body else None
    user = admin_service.unban_user(db, admin, user_id, reason, client_ip(request))
    return ok(AdminUserOut.model_validate(user), "User unbanned successfully")


@router.put("/users/{user_id}/role")
def change_role(
    user_id: str,
    body: RoleIn,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    user = admin_service.change_user_role(db, admin, user_id, body.role, None, client_ip(request))
    return ok(AdminUserOut.model_validate(user), f"User role changed to {user.role}")


# --- Comments ---

@router.get("/comments")
def list_comments(
    page: int = 1,
    limit: int = 10,
    recipe_id: Optional[str] = None,
    user_id: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: Literal["created_at", "updated_at"] = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
    db: Session = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    items, meta = admin_service.list_comments(
        db, page_params(page, limit), recipe_id, user_id, search, sort_by, sort_order
    )
    comments = [
        {
            **CommentOut.model_validate(c).model_dump(exclude={"replies"}),
            "recipe_title": c.recipe.title,
            "user": AuthorOut.model_validate(c.user).model_dump(),
        }
        for c in items
    ]
    return ok({"comments": comments, "pagination": meta})


@router.post("/comments/bulk-delete")
def bulk_delete_comments(
    body: BulkDeleteCommentsIn,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    result = admin_service.bulk_delete_comments(db, admin, body.comment_ids, body.reason, client_ip(request))
    return ok(result, f"{result['deleted_count']} comment(s) deleted")


# --- Audit ---

@router.get("/audit-logs")
def audit_logs(
    page: int = 1,
    limit: int = 20,
    action: Optional[str] = None,
    admin_id: Optional[str] = None,
    target_user_id: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    db: Session = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    items, meta = admin_service.get_audit_logs(
        db, page_params(page, limit), action, admin_id, target_user_id, start_date, end_date
    )
    return ok({"logs": dump_all(AuditLogOut, items), "pagination": meta})


# --- Analytics ---

@router.get("/analytics/overview")
def analytics_overview(
    time_range: Literal["7d", "30d", "90d", "all"] = Query("30d", alias="timeRange"),
    db: Session = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    return ok(analytics_service.get_admin_overview(db, time_range))


@router.get("/analytics/recipe-trends")
def recipe_trends(
    time_range: Literal["7d", "30d", "90d", "1y"] = Query("30d", alias="timeRange"),
    group_by: Optional[Literal["day", "week", "month"]] = Query(None, alias="groupBy"),
    db: Session = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    return ok(analytics_service.get_recipe_trends(db, time_range, group_by))


@router.get("/analytics/user-growth")
def user_growth(
    time_range: Literal["7d", "30d", "90d", "1y"] = Query("30d", alias="timeRange"),
    group_by: Optional[Literal["day", "week", "month"]] = Query(None, alias="groupBy"),
    db: Session = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    return ok(analytics_service.get_user_growth_trends(db, time_range, group_by))
