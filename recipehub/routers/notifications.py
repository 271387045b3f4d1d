from typing import Literal, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..core.pagination import page_params
from ..core.responses import dump_all, ok
from ..db import get_db
from ..deps import get_current_user
from ..models import User
from ..schemas import NotificationOut, PreferencesOut, PreferencesUpdate, PushTokenIn, PushTokenUnregisterIn
from ..services import notification_service

router = APIRouter()


@router.get("")
def list_notifications(
    page: int = 1,
    limit: int = 20,
    unread: Optional[bool] = None,
    priority: Optional[Literal["LOW", "MEDIUM", "HIGH"]] = None,
    type: Optional[Literal["SUCCESS", "ERROR", "WARNING", "INFO"]] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = notification_service.list_notifications(
        db, user.id, page_params(page, limit), unread=unread, priority=priority, type=type
    )
    result["notifications"] = dump_all(NotificationOut, result["notifications"])
    return ok(result)


@router.get("/unread-count")
def unread_count(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return ok({"count": notification_service.unread_count(db, user.id)})


@router.put("/mark-all-read")
def mark_all_read(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    count = notification_service.mark_all_read(db, user.id)
    return ok({"updated_count": count}, "All notifications marked as read")


@router.get("/preferences")
def get_preferences(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return ok(PreferencesOut.model_validate(notification_service.get_preferences(db, user.id)))


@router.put("/preferences")
def update_preferences(
    body: PreferencesUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    prefs = notification_service.update_preferences(db, user.id, body.model_dump(exclude_none=True))
    return ok(PreferencesOut.model_validate(prefs), "Preferences updated")


@router.post("/fcm/register", status_code=status.HTTP_201_CREATED)
def register_push_token(
    body: PushTokenIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    row = notification_service.register_push_token(db, user.id, body.token, body.browser, body.os)
    return ok({"id": row.id, "is_active": row.is_active}, "Push token registered")


@router.delete("/fcm/unregister")
def unregister_push_token(
    body: PushTokenUnregisterIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    notification_service.unregister_push_token(db, user.id, body.token)
    return ok(message="Push token removed")


@router.put("/{notification_id}/read")
def mark_read(notification_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    n = notification_service.mark_read(db, notification_id, user.id)
    return ok(NotificationOut.model_validate(n), "Notification marked as read")


@router.delete("/{notification_id}")
def delete_notification(
    notification_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    notification_service.delete_notification(db, notification_id, user.id)
    return ok(message="Notification deleted")


@router.delete("")
def clear_all(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    count = notification_service.clear_all(db, user.id)
    return ok({"deleted_count": count}, "All notifications cleared")
