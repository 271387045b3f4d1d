"""In-app notifications plus push/email fan-out, preferences and push tokens."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ..core.clock import utcnow
from ..core.pagination import PageParams, paginate
from ..errors import DeliveryError, NotFound
from ..models import (
    Notification,
    NotificationPreference,
    PushToken,
    Recipe,
    Role,
    User,
)
from . import email as email_client
from . import push as push_client

logger = logging.getLogger("recipehub.notifications")

EVENTS = ("recipe_approved", "recipe_rejected", "new_comment", "high_rating", "new_submission")
PREFERENCE_FIELDS = (
    "web_enabled", "push_enabled", "email_enabled",
    *(f"push_{e}" for e in EVENTS),
    *(f"email_{e}" for e in EVENTS),
)
STALE_TOKEN_DAYS = 30


# --- Preferences ---

def get_preferences(db: Session, user_id: str) -> NotificationPreference:
    prefs = db.query(NotificationPreference).filter(NotificationPreference.user_id == user_id).first()
    if prefs is None:
        prefs = NotificationPreference(user_id=user_id)
        db.add(prefs)
        db.commit()
        db.refresh(prefs)
    return prefs


def update_preferences(db: Session, user_id: str, updates: dict) -> NotificationPreference:
    prefs = get_preferences(db, user_id)
    for key, value in updates.items():
        if key in PREFERENCE_FIELDS and value is not None:
            setattr(prefs, key, bool(value))
    db.commit()
    db.refresh(prefs)
    return prefs


def _channel_allows(prefs: NotificationPreference, channel: str, event: Optional[str]) -> bool:
    if not getattr(prefs, f"{channel}_enabled"):
        return False
    if event not in EVENTS:
        return False
    return bool(getattr(prefs, f"{channel}_{event}"))


# --- Creation / delivery ---

def create_notification(
    db: Session,
    *,
    user_id: str,
    type: str,
    title: str,
    description: str,
    priority: str = "MEDIUM",
    action_type: Optional[str] = None,
    action_url: Optional[str] = None,
    recipe_id: Optional[str] = None,
    comment_id: Optional[str] = None,
    rating_id: Optional[str] = None,
    actor_user_id: Optional[str] = None,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        description=description,
        priority=priority,
        action_type=action_type,
        action_url=action_url,
        recipe_id=recipe_id,
        comment_id=comment_id,
        rating_id=rating_id,
        actor_user_id=actor_user_id,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)

    prefs = get_preferences(db, user_id)
    if _channel_allows(prefs, "push", action_type):
        _deliver_push(db, notification)
    if _channel_allows(prefs, "email", action_type):
        _deliver_email(db, notification)
    return notification


def _deliver_push(db: Session, notification: Notification) -> None:
    tokens = db.query(PushToken).filter(
        PushToken.user_id == notification.user_id, PushToken.is_active.is_(True)
    ).all()
    if not tokens:
        return
    try:
        result = push_client.send_push(
            [t.token for t in tokens],
            title=notification.title,
            body=notification.description,
            data={
                "notification_id": notification.id,
                "type": notification.type,
                "action_url": notification.action_url,
                "priority": notification.priority,
            },
        )
    except DeliveryError as e:
        logger.warning(f"Push delivery failed for notification {notification.id}: {e}")
        return

    if result.dead_tokens:
        db.query(PushToken).filter(PushToken.token.in_(result.dead_tokens)).update(
            {PushToken.is_active: False}, synchronize_session=False
        )
        db.commit()
        logger.info(f"Deactivated {len(result.dead_tokens)} dead push token(s)")


def _deliver_email(db: Session, notification: Notification) -> None:
    user = db.get(User, notification.user_id)
    if user is None:
        return
    try:
        email_client.send_notification_email(
            user.email, notification.title, notification.description, notification.action_url
        )
    except DeliveryError as e:
        logger.warning(f"Email delivery failed for notification {notification.id}: {e}")


# --- Event helpers ---

def notify_recipe_approved(db: Session, recipe: Recipe, admin_id: str) -> Notification:
    return create_notification(
        db,
        user_id=recipe.author_id,
        type="SUCCESS",
        title="Recipe Approved!",
        description=f'Your recipe "{recipe.title}" has been approved and is now live.',
        priority="HIGH",
        recipe_id=recipe.id,
        actor_user_id=admin_id,
        action_type="recipe_approved",
        action_url=f"/recipe/{recipe.id}",
    )


def notify_recipe_rejected(db: Session, recipe: Recipe, admin_id: str, reason: str) -> Notification:
    return create_notification(
        db,
        user_id=recipe.author_id,
        type="ERROR",
        title="Recipe Rejected",
        description=f'Your recipe "{recipe.title}" was rejected. Reason: {reason}',
        priority="HIGH",
        recipe_id=recipe.id,
        actor_user_id=admin_id,
        action_type="recipe_rejected",
        action_url="/my-recipes",
    )


def notify_new_comment(db: Session, recipe: Recipe, comment_id: str, commenter: User) -> Notification:
    return create_notification(
        db,
        user_id=recipe.author_id,
        type="INFO",
        title="New Comment",
        description=f'{commenter.full_name} commented on your recipe "{recipe.title}"',
        priority="MEDIUM",
        recipe_id=recipe.id,
        comment_id=comment_id,
        actor_user_id=commenter.id,
        action_type="new_comment",
        action_url=f"/recipe/{recipe.id}#comment-{comment_id}",
    )


def notify_high_rating(db: Session, recipe: Recipe, rating_id: str, rater: User) -> Notification:
    return create_notification(
        db,
        user_id=recipe.author_id,
        type="SUCCESS",
        title="5-Star Rating!",
        description=f'{rater.full_name} gave your recipe "{recipe.title}" 5 stars!',
        priority="LOW",
        recipe_id=recipe.id,
        rating_id=rating_id,
        actor_user_id=rater.id,
        action_type="high_rating",
        action_url=f"/recipe/{recipe.id}",
    )


def notify_new_recipe_submission(db: Session, recipe: Recipe, chef: User) -> list[Notification]:
    admins = db.query(User).filter(User.role == Role.ADMIN, User.is_banned.is_(False)).all()
    return [
        create_notification(
            db,
            user_id=admin.id,
            type="INFO",
            title="New Recipe Submitted",
            description=f'{chef.full_name} submitted "{recipe.title}" for approval',
            priority="HIGH",
            recipe_id=recipe.id,
            actor_user_id=chef.id,
            action_type="new_submission",
            action_url="/admin",
        )
        for admin in admins
        if admin.id != chef.id
    ]


# --- Queries ---

def unread_count(db: Session, user_id: str) -> int:
    return db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.is_read.is_(False),
        Notification.is_deleted.is_(False),
    ).count()


def list_notifications(
    db: Session,
    user_id: str,
    params: PageParams,
    unread: Optional[bool] = None,
    priority: Optional[str] = None,
    type: Optional[str] = None,
) -> dict:
    q = db.query(Notification).filter(
        Notification.user_id == user_id, Notification.is_deleted.is_(False)
    )
    if unread is not None:
        q = q.filter(Notification.is_read.is_(not unread))
    if priority:
        q = q.filter(Notification.priority == priority)
    if type:
        q = q.filter(Notification.type == type)

    items, meta = paginate(q.order_by(Notification.created_at.desc()), params)
    return {"notifications": items, "pagination": meta, "unread_count": unread_count(db, user_id)}


def _owned(db: Session, notification_id: str, user_id: str) -> Notification:
    n = db.get(Notification, notification_id)
    if n is None or n.user_id != user_id or n.is_deleted:
        raise NotFound("Notification not found")
    return n


def mark_read(db: Session, notification_id: str, user_id: str) -> Notification:
    n = _owned(db, notification_id, user_id)
    if not n.is_read:
        n.is_read = True
        n.read_at = utcnow()
        db.commit()
        db.refresh(n)
    return n


def mark_all_read(db: Session, user_id: str) -> int:
    count = db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.is_read.is_(False),
        Notification.is_deleted.is_(False),
    ).update({Notification.is_read: True, Notification.read_at: utcnow()}, synchronize_session=False)
    db.commit()
    return count


def delete_notification(db: Session, notification_id: str, user_id: str) -> None:
    n = _owned(db, notification_id, user_id)
    n.is_deleted = True
    db.commit()


def clear_all(db: Session, user_id: str) -> int:
    count = db.query(Notification).filter(
        Notification.user_id == user_id, Notification.is_deleted.is_(False)
    ).update({Notification.is_deleted: True}, synchronize_session=False)
    db.commit()
    return count


# --- Push tokens ---

def register_push_token(db: Session, user_id: str, token: str, browser: Optional[str] = None,
                        os: Optional[str] = None) -> PushToken:
    existing = db.query(PushToken).filter(PushToken.token == token).first()
    if existing:
        existing.user_id = user_id
        existing.browser = browser
        existing.os = os
        existing.is_active = True
        existing.last_used_at = utcnow()
        db.commit()
        db.refresh(existing)
        return existing

    row = PushToken(user_id=user_id, token=token, browser=browser, os=os)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def unregister_push_token(db: Session, user_id: str, token: str) -> None:
    row = db.query(PushToken).filter(PushToken.token == token).first()
    if row is None or row.user_id != user_id:
        raise NotFound("Token not found")
    db.delete(row)
    db.commit()


def cleanup_push_tokens(db: Session) -> int:
    cutoff = utcnow() - timedelta(days=STALE_TOKEN_DAYS)
    count = db.query(PushToken).filter(
        (PushToken.is_active.is_(False)) | (PushToken.last_used_at < cutoff)
    ).delete(synchronize_session=False)
    db.commit()
    return count
