import logging
from datetime import datetime
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import case, func
from sqlalchemy.orm import Session

from ..config import settings
from ..models import ChatGroup, Lesson, Message, StudentTeacherLink, Subject, User, UserRole
from .common import commit_or_raise

logger = logging.getLogger(__name__)


def _count(db: Session, model, *criteria) -> int:
    return db.query(func.count()).select_from(model).filter(*criteria).scalar() or 0


def dashboard_stats(db: Session) -> dict[str, int]:
    return {
        "teachers": _count(db, User, User.role == UserRole.TEACHER),
        "students": _count(db, User, User.role == UserRole.STUDENT),
        "messages": _count(db, Message),
        "subjects": _count(db, Subject),
        "links": _count(db, StudentTeacherLink),
        "lessons": _count(db, Lesson),
        "active_users": _count(db, User, User.role == UserRole.STUDENT, User.login_count > 0),
    }


def usage_stats(db: Session) -> list[dict[str, Any]]:
    rows = (
        db.query(User)
        .filter(User.login_count > 0)
        .order_by(User.last_login.desc(), User.id)
        .all()
    )
    return [
        {
            "id": user.id,
            "name": user.name,
            "type": user.role,
            "login_count": user.login_count,
            "last_login": user.last_login,
        }
        for user in rows
    ]


def reset_stats(db: Session, *, code: str) -> None:
    if code != settings.dev_reset_code:
        logger.warning("Usage statistics reset refused: invalid code")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid code")
    db.query(User).update({User.login_count: 0, User.last_login: None}, synchronize_session=False)
    commit_or_raise(db)
    logger.info("Usage statistics reset")


def conversations(db: Session) -> list[dict[str, Any]]:
    """Every direct pair and every chat group that has messages, most recent first."""
    low = case((Message.sender_id < Message.receiver_id, Message.sender_id), else_=Message.receiver_id)
    high = case((Message.sender_id < Message.receiver_id, Message.receiver_id), else_=Message.sender_id)
    pairs = (
        db.query(low, high, func.count(Message.id), func.max(Message.sent_at))
        .filter(Message.group_id.is_(None))
        .group_by(low, high)
        .all()
    )
    user_ids = {user_id for pair in pairs for user_id in pair[:2]}
    users = {user.id: user for user in db.query(User).filter(User.id.in_(user_ids))} if user_ids else {}

    result = []
    for user1_id, user2_id, msg_count, last_message_at in pairs:
        user1, user2 = users.get(user1_id), users.get(user2_id)
        if not user1 or not user2:
            continue
        result.append(
            {
                "user1_id": user1.id,
                "user1_name": user1.name,
                "user1_type": user1.role,
                "user2_id": user2.id,
                "user2_name": user2.name,
                "user2_type": user2.role,
                "group_id": None,
                "group_name": None,
                "msg_count": msg_count,
                "last_message_at": last_message_at,
            }
        )

    group_rows = (
        db.query(ChatGroup.id, ChatGroup.name, func.count(Message.id), func.max(Message.sent_at))
        .join(Message, Message.group_id == ChatGroup.id)
        .group_by(ChatGroup.id, ChatGroup.name)
        .all()
    )
    for group_id, group_name, msg_count, last_message_at in group_rows:
        result.append(
            {
                "user1_id": None,
                "user1_name": None,
                "user1_type": None,
                "user2_id": None,
                "user2_name": None,
                "user2_type": None,
                "group_id": group_id,
                "group_name": group_name,
                "msg_count": msg_count,
                "last_message_at": last_message_at,
            }
        )

    result.sort(key=lambda item: item["last_message_at"] or datetime.min, reverse=True)
    return result


def inbox_summary(db: Session, admin_id: int | None = None) -> list[dict[str, Any]]:
    """Latest message and unread count per non-admin correspondent of an administrator."""
    admins = db.query(User).filter(User.role == UserRole.ADMIN)
    admin = admins.filter(User.id == admin_id).first() if admin_id else admins.order_by(User.id).first()
    if not admin:
        return []

    messages = (
        db.query(Message)
        .filter(
            Message.group_id.is_(None),
            (Message.sender_id == admin.id) | (Message.receiver_id == admin.id),
        )
        .order_by(Message.sent_at.desc(), Message.id.desc())
        .all()
    )
    other_ids = {m.receiver_id if m.sender_id == admin.id else m.sender_id for m in messages}
    others = {
        user.id: user
        for user in db.query(User).filter(User.id.in_(other_ids), User.role != UserRole.ADMIN)
    } if other_ids else {}

    summary: dict[int, dict[str, Any]] = {}
    for message in messages:
        other_id = message.receiver_id if message.sender_id == admin.id else message.sender_id
        other = others.get(other_id)
        if not other:
            continue
        if other_id not in summary:
            summary[other_id] = {
                "id": other.id,
                "name": other.name,
                "type": other.role,
                "last_message": message.message_text or message.file_name,
                "last_time": message.sent_at,
                "unread_count": 0,
            }
        if message.sender_id == other_id and message.read_at is None:
            summary[other_id]["unread_count"] += 1
    return list(summary.values())
