"""Dashboard aggregates for admins and chefs, plus recipe view tracking.

Admin aggregates are cached in Redis for `settings.analytics_cache_ttl` seconds,
so every value they return must be JSON-serializable.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Optional

from redis.exceptions import RedisError
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ..core.clock import ensure_utc, start_of_day, utcnow
from ..errors import NotFound, PermissionDenied, ValidationFailed
from ..infra.redis_cache import delete_prefix_sync, get_or_set_json_sync
from ..models import Comment, Rating, Recipe, RecipeStatus, RecipeView, Role, User
from ..settings import settings

logger = logging.getLogger("recipehub.analytics")

OVERVIEW_RANGES = {"7d": 7, "30d": 30, "90d": 90, "all": None}
TREND_RANGES = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}
GROUPINGS = ("day", "week", "month")


def _threshold(time_range: str, ranges: dict) -> Optional[datetime]:
    if time_range not in ranges:
        raise ValidationFailed(f"Invalid time range. Use one of: {', '.join(ranges)}")
    days = ranges[time_range]
    return utcnow() - timedelta(days=days) if days else None


def _iso(value: Optional[datetime]) -> Optional[str]:
    value = ensure_utc(value)
    return value.isoformat() if value else None


def date_key(value: datetime, group_by: str) -> str:
    """ISO date of the bucket start: the day, the Monday of the week, or the 1st of the month."""
    d = ensure_utc(value).date()
    if group_by == "week":
        d = d - timedelta(days=d.weekday())
    elif group_by == "month":
        d = d.replace(day=1)
    return d.isoformat()


def _default_grouping(days: int) -> str:
    if days <= 30:
        return "day"
    return "week" if days <= 90 else "month"


def _cached(name: str, compute, *parts):
    key = "analytics:" + ":".join([name, *[str(p) for p in parts]])
    value, _hit = get_or_set_json_sync(key, settings.analytics_cache_ttl, compute)
    return value


def invalidate_cache() -> None:
    """Drop cached admin aggregates after a moderation decision."""
    try:
        delete_prefix_sync("analytics:")
    except RedisError as e:
        logger.warning(f"Analytics cache invalidation failed: {e}")


def _avg_of_rated(recipes) -> float:
    rated = [r.average_rating for r in recipes if r.total_ratings > 0]
    return sum(rated) / len(rated) if rated else 0.0


def _view_counts(db: Session, recipe_ids: list[str], since: Optional[datetime] = None) -> dict[str, int]:
    if not recipe_ids:
        return {}
    q = db.query(RecipeView.recipe_id, func.count(RecipeView.id)).filter(RecipeView.recipe_id.in_(recipe_ids))
    if since is not None:
        q = q.filter(RecipeView.viewed_at >= since)
    return dict(q.group_by(RecipeView.recipe_id).all())


# --- Admin ---

def get_admin_overview(db: Session, time_range: str = "30d") -> dict:
    since = _threshold(time_range, OVERVIEW_RANGES)
    return _cached("overview", lambda: _compute_admin_overview(db, since), time_range)


def _compute_admin_overview(db: Session, since: Optional[datetime]) -> dict:
    users_by_role = dict(db.query(User.role, func.count(User.id)).group_by(User.role).all())
    total_users = sum(users_by_role.values())
    active_users = (
        db.query(User).filter(User.last_login_at >= since).count() if since else total_users
    )
    recipe_counts = dict(db.query(Recipe.status, func.count(Recipe.id)).group_by(Recipe.status).all())

    def in_period(model, column):
        return db.query(model).filter(column >= since).count() if since else 0

    avg_rating = db.query(func.avg(Rating.rating)).scalar()

    # Top chefs by views on approved recipes
    approved = (
        db.query(Recipe)
        .options(joinedload(Recipe.author))
        .filter(Recipe.status == RecipeStatus.APPROVED)
        .all()
    )
    views = _view_counts(db, [r.id for r in approved])
    by_chef = defaultdict(list)
    for r in approved:
        if r.author.role == Role.CHEF:
            by_chef[r.author].append(r)
    top_chefs = sorted(
        (
            {
                "user_id": chef.id,
                "name": chef.full_name,
                "recipe_count": len(recipes),
                "average_rating": round(_avg_of_rated(recipes), 2),
                "total_views": sum(views.get(r.id, 0) for r in recipes),
            }
            for chef, recipes in by_chef.items()
        ),
        key=lambda c: c["total_views"],
        reverse=True,
    )[:5]

    activity = []
    if since:
        for u in db.query(User).filter(User.created_at >= since).order_by(User.created_at.desc()).limit(5):
            activity.append({"type": "user_registered", "timestamp": _iso(u.created_at),
                             "details": f"{u.full_name} registered"})
        for r in db.query(Recipe).filter(Recipe.created_at >= since).order_by(Recipe.created_at.desc()).limit(5):
            activity.append({"type": "recipe_submitted", "timestamp": _iso(r.created_at),
                             "details": f'Recipe "{r.title}" submitted'})
        for r in db.query(Recipe).filter(Recipe.approved_at >= since).order_by(Recipe.approved_at.desc()).limit(5):
            activity.append({"type": "recipe_approved", "timestamp": _iso(r.approved_at),
                             "details": f'Recipe "{r.title}" approved'})
        for u in db.query(User).filter(User.banned_at >= since).order_by(User.banned_at.desc()).limit(5):
            activity.append({"type": "user_banned", "timestamp": _iso(u.banned_at),
                             "details": f"{u.full_name} banned"})
        activity.sort(key=lambda a: a["timestamp"], reverse=True)

    return {
        "users": {
            "total": total_users,
            "active": active_users,
            "banned": db.query(User).filter(User.is_banned.is_(True)).count(),
            "new_in_period": in_period(User, User.created_at),
            "by_role": {role: users_by_role.get(role, 0) for role in Role.ALL},
        },
        "recipes": {
            "total": sum(recipe_counts.values()),
            "approved": recipe_counts.get(RecipeStatus.APPROVED, 0),
            "pending": recipe_counts.get(RecipeStatus.PENDING, 0),
            "rejected": recipe_counts.get(RecipeStatus.REJECTED, 0),
            "new_in_period": in_period(Recipe, Recipe.created_at),
        },
        "engagement": {
            "total_comments": db.query(Comment).count(),
            "total_ratings": db.query(Rating).count(),
            "average_rating": round(float(avg_rating), 2) if avg_rating is not None else 0.0,
            "comments_in_period": in_period(Comment, Comment.created_at),
            "ratings_in_period": in_period(Rating, Rating.created_at),
        },
        "top_chefs": top_chefs,
        "recent_activity": activity[:10],
    }


def _trend_window(time_range: str, group_by: Optional[str]) -> tuple[int, datetime, str]:
    since = _threshold(time_range, TREND_RANGES)
    days = TREND_RANGES[time_range]
    group_by = group_by or _default_grouping(days)
    if group_by not in GROUPINGS:
        raise ValidationFailed("Invalid group_by. Use one of: day, week, month")
    return days, since, group_by


def get_recipe_trends(db: Session, time_range: str = "30d", group_by: Optional[str] = None) -> dict:
    _days, since, group_by = _trend_window(time_range, group_by)
    return _cached("recipe-trends", lambda: _compute_recipe_trends(db, since, group_by), time_range, group_by)


def _compute_recipe_trends(db: Session, since: datetime, group_by: str) -> dict:
    recipes = db.query(Recipe).filter(Recipe.created_at >= since).all()
    buckets = defaultdict(lambda: {"submitted": 0, "approved": 0, "rejected": 0})
    for r in recipes:
        buckets[date_key(r.created_at, group_by)]["submitted"] += 1
        if r.status == RecipeStatus.APPROVED and r.approved_at:
            buckets[date_key(r.approved_at, group_by)]["approved"] += 1
        if r.status == RecipeStatus.REJECTED and r.rejected_at:
            buckets[date_key(r.rejected_at, group_by)]["rejected"] += 1

    submitted = len(recipes)
    approved = sum(1 for r in recipes if r.status == RecipeStatus.APPROVED)
    rejected = sum(1 for r in recipes if r.status == RecipeStatus.REJECTED)
    return {
        "group_by": group_by,
        "trends": [{"date": k, **v} for k, v in sorted(buckets.items())],
        "summary": {
            "total_submitted": submitted,
            "total_approved": approved,
            "total_rejected": rejected,
            "approval_rate": round(approved / submitted * 100, 2) if submitted else 0.0,
        },
    }


def get_user_growth_trends(db: Session, time_range: str = "30d", group_by: Optional[str] = None) -> dict:
    days, since, group_by = _trend_window(time_range, group_by)
    return _cached("user-growth", lambda: _compute_user_growth(db, days, since, group_by), time_range, group_by)


def _compute_user_growth(db: Session, days: int, since: datetime, group_by: str) -> dict:
    users = db.query(User).filter(User.created_at >= since).all()
    buckets = defaultdict(lambda: {"new_users": 0, "new_chefs": 0, "new_admins": 0, "total": 0})
    field = {Role.USER: "new_users", Role.CHEF: "new_chefs", Role.ADMIN: "new_admins"}
    for u in users:
        bucket = buckets[date_key(u.created_at, group_by)]
        bucket["total"] += 1
        bucket[field[u.role]] += 1

    previous = db.query(User).filter(
        User.created_at >= since - timedelta(days=days), User.created_at < since
    ).count()
    growth = (len(users) - previous) / previous * 100 if previous else 0.0
    return {
        "group_by": group_by,
        "trends": [{"date": k, **v} for k, v in sorted(buckets.items())],
        "summary": {"total_new_users": len(users), "growth_rate": round(growth, 2)},
    }


# --- Chef ---

def get_chef_overview(db: Session, chef: User, time_range: str = "30d") -> dict:
    if chef.role not in (Role.CHEF, Role.ADMIN):
        raise PermissionDenied("Chef not found or invalid role")
    since = _threshold(time_range, OVERVIEW_RANGES)

    recipes = db.query(Recipe).filter(Recipe.author_id == chef.id).all()
    ids = [r.id for r in recipes]
    views = _view_counts(db, ids)
    total_views = sum(views.values())
    views_in_period = sum(_view_counts(db, ids, since).values()) if since else total_views

    def engaged(r):
        return views.get(r.id, 0) > 0 or r.total_ratings > 0 or r.total_comments > 0

    top = sorted(
        (r for r in recipes if r.status == RecipeStatus.APPROVED and engaged(r)),
        key=lambda r: (views.get(r.id, 0), r.average_rating, r.total_comments),
        reverse=True,
    )[:5]

    return {
        "my_recipes": {
            "total": len(recipes),
            "approved": sum(1 for r in recipes if r.status == RecipeStatus.APPROVED),
            "pending": sum(1 for r in recipes if r.status == RecipeStatus.PENDING),
            "rejected": sum(1 for r in recipes if r.status == RecipeStatus.REJECTED),
            "new_in_period": sum(1 for r in recipes if since and ensure_utc(r.created_at) >= since),
        },
        "performance": {
            "total_views": total_views,
            "views_in_period": views_in_period,
            "total_ratings": sum(r.total_ratings for r in recipes),
            "average_rating": round(_avg_of_rated(recipes), 2),
            "total_comments": sum(r.total_comments for r in recipes),
        },
        "top_recipes": [
            {
                "id": r.id,
                "name": r.title,
                "views": views.get(r.id, 0),
                "rating": r.average_rating,
                "rating_count": r.total_ratings,
                "comment_count": r.total_comments,
            }
            for r in top
        ],
        "rankings": _chef_rankings(db, chef.id),
        "recent_activity": _chef_activity(db, chef.id, ids, since),
    }


def _chef_rankings(db: Session, chef_id: str) -> dict:
    approved = (
        db.query(Recipe)
        .join(User, User.id == Recipe.author_id)
        .filter(Recipe.status == RecipeStatus.APPROVED, User.role.in_((Role.CHEF, Role.ADMIN)))
        .all()
    )
    views = _view_counts(db, [r.id for r in approved])
    per_chef = defaultdict(list)
    for r in approved:
        per_chef[r.author_id].append(r)
    stats = [
        {
            "id": author_id,
            "views": sum(views.get(r.id, 0) for r in recipes),
            "rating": _avg_of_rated(recipes),
        }
        for author_id, recipes in per_chef.items()
    ]

    def rank(key: str) -> Optional[int]:
        ordered = [s["id"] for s in sorted(stats, key=lambda s: s[key], reverse=True)]
        return ordered.index(chef_id) + 1 if chef_id in ordered else None

    return {"total_chefs": len(stats), "view_rank": rank("views"), "rating_rank": rank("rating")}


def _chef_activity(db: Session, chef_id: str, recipe_ids: list[str], since: Optional[datetime]) -> list[dict]:
    if not since or not recipe_ids:
        return []
    activity = []
    for c in (
        db.query(Comment).options(joinedload(Comment.user), joinedload(Comment.recipe))
        .filter(Comment.recipe_id.in_(recipe_ids), Comment.created_at >= since)
        .order_by(Comment.created_at.desc()).limit(5)
    ):
        activity.append({"type": "comment_received", "timestamp": _iso(c.created_at),
                         "details": f'{c.user.full_name} commented on "{c.recipe.title}"'})
    for rt in (
        db.query(Rating).options(joinedload(Rating.recipe))
        .filter(Rating.recipe_id.in_(recipe_ids), Rating.created_at >= since)
        .order_by(Rating.created_at.desc()).limit(5)
    ):
        activity.append({"type": "rating_received", "timestamp": _iso(rt.created_at),
                         "details": f'"{rt.recipe.title}" received {rt.rating}/5 rating'})
    for r in (
        db.query(Recipe)
        .filter(Recipe.author_id == chef_id, Recipe.approved_at >= since)
        .order_by(Recipe.approved_at.desc()).limit(5)
    ):
        activity.append({"type": "recipe_approved", "timestamp": _iso(r.approved_at),
                         "details": f'"{r.title}" was approved'})
    for r in (
        db.query(Recipe)
        .filter(Recipe.author_id == chef_id, Recipe.rejected_at >= since)
        .order_by(Recipe.rejected_at.desc()).limit(5)
    ):
        activity.append({"type": "recipe_rejected", "timestamp": _iso(r.rejected_at),
                         "details": f'"{r.title}" was rejected'})
    activity.sort(key=lambda a: a["timestamp"], reverse=True)
    return activity[:10]


def get_recipe_analytics(db: Session, recipe_id: str, user: User, time_range: str = "30d") -> dict:
    since = _threshold(time_range, OVERVIEW_RANGES)
    recipe = db.get(Recipe, recipe_id)
    if recipe is None:
        raise NotFound("Recipe not found")
    if recipe.author_id != user.id and user.role != Role.ADMIN:
        raise PermissionDenied("Unauthorized to view this recipe analytics")

    view_q = db.query(RecipeView).filter(RecipeView.recipe_id == recipe_id)
    total_views = view_q.count()
    trends = []
    views_in_period = total_views
    if since:
        recent = view_q.filter(RecipeView.viewed_at >= since).all()
        views_in_period = len(recent)
        per_day = defaultdict(int)
        for v in recent:
            per_day[date_key(v.viewed_at, "day")] += 1
        trends = [{"date": k, "views": n} for k, n in sorted(per_day.items())]

    ratings = db.query(Rating).filter(Rating.recipe_id == recipe_id).all()
    distribution = {str(i): 0 for i in range(5, 0, -1)}
    for r in ratings:
        distribution[str(r.rating)] += 1

    comments = (
        db.query(Comment).options(joinedload(Comment.user))
        .filter(Comment.recipe_id == recipe_id)
        .order_by(Comment.created_at.desc())
    )
    comments_in_period = (
        comments.filter(Comment.created_at >= since).count() if since else recipe.total_comments
    )

    return {
        "recipe": {
            "id": recipe.id,
            "name": recipe.title,
            "status": recipe.status,
            "created_at": _iso(recipe.created_at),
            "approved_at": _iso(recipe.approved_at),
        },
        "views": {"total": total_views, "views_in_period": views_in_period, "view_trends": trends},
        "ratings": {
            "total": len(ratings),
            "average": recipe.average_rating,
            "distribution": distribution,
            "ratings_in_period": (
                sum(1 for r in ratings if ensure_utc(r.created_at) >= since) if since else len(ratings)
            ),
        },
        "comments": {
            "total": recipe.total_comments,
            "comments_in_period": comments_in_period,
            "recent_comments": [
                {"id": c.id, "user_name": c.user.full_name, "text": c.content, "created_at": _iso(c.created_at)}
                for c in comments.limit(10)
            ],
        },
        "engagement": {
            "view_to_rating_rate": round(len(ratings) / total_views * 100, 2) if total_views else 0.0,
            "view_to_comment_rate": round(recipe.total_comments / total_views * 100, 2) if total_views else 0.0,
        },
    }


# --- View tracking ---

def track_recipe_view(db: Session, recipe_id: str, user: Optional[User], ip_address: Optional[str]) -> dict:
    """Record at most one view per (recipe, user) or, for anonymous callers,
    per (recipe, ip) each UTC day."""
    if db.get(Recipe, recipe_id) is None:
        raise NotFound("Recipe not found")

    today = start_of_day(utcnow())
    q = db.query(RecipeView).filter(RecipeView.recipe_id == recipe_id, RecipeView.viewed_at >= today)
    if user is not None:
        q = q.filter(RecipeView.user_id == user.id)
    else:
        q = q.filter(RecipeView.user_id.is_(None), RecipeView.ip_address == ip_address)
    if q.first() is not None:
        return {"recorded": False, "message": "View already recorded today"}

    db.add(RecipeView(recipe_id=recipe_id, user_id=user.id if user else None, ip_address=ip_address))
    db.commit()
    return {"recorded": True, "message": "View recorded"}
