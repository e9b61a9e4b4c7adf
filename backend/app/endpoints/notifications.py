# app/endpoints/notifications.py
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.endpoints.deps import get_current_user
from app.models.user import User
from app.services import notification_service

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
def list_notifications(type: Optional[str] = None, read: Optional[bool] = None,
                       limit: int = notification_service.DEFAULT_LIMIT,
                       user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return notification_service.list_for_user(db, user, type, read, limit)


@router.get("/unread-count")
def unread_count(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"unread_count": notification_service.unread_count(db, user)}


@router.post("/{notification_id}/read")
def mark_read(notification_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    note = notification_service.mark_read(db, user, notification_id)
    return {"message": "Notification marked as read", "notification": notification_service.to_dict(note)}


@router.post("/read-all")
def mark_all_read(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    updated = notification_service.mark_all_read(db, user)
    return {"message": "All notifications marked as read", "updated": updated}


@router.delete("/{notification_id}")
def delete_notification(notification_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    notification_service.delete(db, user, notification_id)
    return {"message": "Notification deleted"}
