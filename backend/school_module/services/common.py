import logging
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import Message, User, UserRole

logger = logging.getLogger(__name__)


def commit_or_raise(db: Session, *, duplicate_detail: str = "Duplicate entry") -> None:
    """Commit the unit of work; integrity problems become 400, anything else 500."""
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning(f"Integrity error: {exc.orig}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=duplicate_detail) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(f"Database error: {exc}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc


def get_or_404(db: Session, model, ident, detail: str):
    obj = db.get(model, ident)
    if obj is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
    return obj


def get_user_or_404(db: Session, user_id: int, role: UserRole | None = None) -> User:
    user = db.get(User, user_id)
    if not user or (role is not None and user.role != role):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def user_to_dict(user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "username": user.username,
        "email": user.email,
        "type": user.role,
        "phone": user.phone,
        "avatar": user.avatar,
        "level_id": user.level_id,
        "group_id": user.group_id,
        "registration_number": user.registration_number,
        "created_at": user.created_at,
        "login_count": user.login_count,
        "last_login": user.last_login,
    }


def message_to_dict(message: Message) -> dict[str, Any]:
    return {
        "id": message.id,
        "sender_id": message.sender_id,
        "receiver_id": message.receiver_id,
        "group_id": message.group_id,
        "subject_id": message.subject_id,
        "message_text": message.message_text,
        "message_type": message.message_type,
        "file_path": message.file_path,
        "file_name": message.file_name,
        "file_size": message.file_size,
        "sent_at": message.sent_at,
        "read_at": message.read_at,
    }


def avatar_for(name: str) -> str:
    return name.strip()[:1] if name else ""
