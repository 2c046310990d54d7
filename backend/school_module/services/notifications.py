from typing import Any

from sqlalchemy.orm import Session

from ..config import settings
from ..models import Notification
from .common import commit_or_raise, get_or_404


def chat_action_link(user_id: int) -> str:
    # front-end pseudo-route that opens the conversation with user_id
    return f"action:chat:{user_id}"


def notify(db: Session, *, user_id: int, message: str, link: str | None = None) -> Notification:
    notification = Notification(user_id=user_id, message=message, link=link)
    db.add(notification)
    return notification


def notification_to_dict(notification: Notification) -> dict[str, Any]:
    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "message": notification.message,
        "link": notification.link,
        "is_read": notification.is_read,
        "created_at": notification.created_at,
    }


def list_notifications(db: Session, user_id: int) -> list[dict[str, Any]]:
    rows = (
        db.query(Notification)
        .filter(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(settings.notification_feed_limit)
        .all()
    )
    return [notification_to_dict(row) for row in rows]


def mark_notification_read(db: Session, notification_id: int) -> None:
    notification = get_or_404(db, Notification, notification_id, "Notification not found")
    notification.is_read = True
    commit_or_raise(db)


def clear_notifications(db: Session, user_id: int) -> int:
    deleted = db.query(Notification).filter(Notification.user_id == user_id).delete(synchronize_session=False)
    commit_or_raise(db)
    return deleted
