# app/services/notification_service.py
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.exceptions import NotFound, ValidationFailed
from app.models.enums import NotificationType, Role, UserStatus
from app.models.notification import Notification
from app.models.user import User

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
MAX_LIMIT = 100

# UI hints per type: (icon, colour)
TYPE_STYLES = {
    NotificationType.APPOINTMENT_ASSIGNED: ("user-check", "blue"),
    NotificationType.APPOINTMENT_CONFIRMED: ("check-circle", "green"),
    NotificationType.APPOINTMENT_REJECTED: ("x-circle", "red"),
    NotificationType.APPOINTMENT_RESCHEDULED: ("calendar", "orange"),
    NotificationType.APPOINTMENT_CANCELLED: ("calendar-x", "red"),
    NotificationType.APPOINTMENT_COMPLETED: ("clipboard-check", "green"),
    NotificationType.APPOINTMENT_REQUESTED: ("calendar-plus", "blue"),
    NotificationType.PRESCRIPTION_READY: ("pill", "purple"),
    NotificationType.FOLLOW_UP_REQUIRED: ("repeat", "orange"),
    NotificationType.SYSTEM: ("bell", "gray"),
}


def notify(db: Session, user_id: int, type_: NotificationType, title: str, message: str,
           data: Optional[dict] = None) -> Notification:
    """Queue a notification in the caller's transaction. The caller commits."""
    note = Notification(user_id=user_id, type=type_.value, title=title, message=message, data=data or {})
    db.add(note)
    return note


def to_dict(note: Notification) -> dict:
    icon, colour = TYPE_STYLES.get(NotificationType(note.type), ("bell", "gray"))
    return {
        "id": note.id,
        "type": note.type,
        "title": note.title,
        "message": note.message,
        "data": note.data or {},
        "read": note.read,
        "read_at": note.read_at.isoformat() if note.read_at else None,
        "created_at": note.created_at.isoformat() if note.created_at else None,
        "icon": icon,
        "color": colour,
    }


def unread_count(db: Session, user: User) -> int:
    return db.query(Notification).filter(Notification.user_id == user.id, Notification.read.is_(False)).count()


def list_for_user(db: Session, user: User, type_: Optional[str] = None, read: Optional[bool] = None,
                  limit: int = DEFAULT_LIMIT) -> dict:
    if limit < 1 or limit > MAX_LIMIT:
        raise ValidationFailed.field("limit", f"The limit must be between 1 and {MAX_LIMIT}.")
    query = db.query(Notification).filter(Notification.user_id == user.id)
    if type_:
        try:
            NotificationType(type_)
        except ValueError:
            raise ValidationFailed.field("type", f"Unknown notification type: {type_}")
        query = query.filter(Notification.type == type_)
    if read is not None:
        query = query.filter(Notification.read.is_(read))
    rows = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()
    return {"notifications": [to_dict(n) for n in rows], "unread_count": unread_count(db, user)}


def _own(db: Session, user: User, notification_id: int) -> Notification:
    note = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user.id)
        .first()
    )
    if note is None:
        raise NotFound("Notification not found")
    return note


def mark_read(db: Session, user: User, notification_id: int) -> Notification:
    note = _own(db, user, notification_id)
    note.mark_as_read()
    db.commit()
    db.refresh(note)
    return note


def mark_all_read(db: Session, user: User) -> int:
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == user.id, Notification.read.is_(False))
        .update({Notification.read: True, Notification.read_at: datetime.utcnow()}, synchronize_session=False)
    )
    db.commit()
    return updated


def delete(db: Session, user: User, notification_id: int):
    db.delete(_own(db, user, notification_id))
    db.commit()


def send_bulk(db: Session, sender: User, payload: dict) -> int:
    """Send one notification to every active user, or every active user of a role."""
    query = db.query(User).filter(User.status == UserStatus.ACTIVE.value)
    role = payload.get("role")
    if role:
        query = query.filter(User.role == Role(role).value)
    type_ = NotificationType(payload.get("type") or NotificationType.SYSTEM)
    count = 0
    for recipient in query.all():
        notify(db, recipient.id, type_, payload["title"], payload["message"],
               {**(payload.get("data") or {}), "sent_by": sender.id})
        count += 1
    db.commit()
    logger.info(f"📣 User {sender.id} sent '{payload['title']}' to {count} user(s)")
    return count
