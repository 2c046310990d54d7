import json
import logging
from datetime import datetime
from typing import Any

from fastapi import HTTPException, UploadFile, status
from sqlalchemy import case, func, or_
from sqlalchemy.orm import Session

from ..models import (
    ChatGroup,
    Group,
    GroupMember,
    Level,
    Message,
    MessageType,
    StudentTeacherLink,
    Subject,
    TeacherSubject,
    User,
    UserRole,
)
from ..storage import GENERAL, StoredFile, discard, save_upload
from .common import commit_or_raise, get_or_404, get_user_or_404, message_to_dict
from .identity import confirm_admin_password
from .notifications import chat_action_link, notify

logger = logging.getLogger(__name__)

ADMIN_MESSAGE_NOTICE = "You have a new message from the administration"
ADMIN_FILE_NOTICE = "The administration sent you a new file"
BROADCAST_NOTICE = "New broadcast from the administration"
ADMINISTRATION_LABEL = "Administration"


# --- contacts ---

def _direct_activity(db: Session, viewer_id: int) -> tuple[dict[int, int], dict[int, datetime]]:
    """Unread counts per sender and latest direct message time per counterpart."""
    unread_rows = (
        db.query(Message.sender_id, func.count(Message.id))
        .filter(Message.receiver_id == viewer_id, Message.group_id.is_(None), Message.read_at.is_(None))
        .group_by(Message.sender_id)
        .all()
    )
    counterpart = case((Message.sender_id == viewer_id, Message.receiver_id), else_=Message.sender_id)
    last_rows = (
        db.query(counterpart, func.max(Message.sent_at))
        .filter(
            Message.group_id.is_(None),
            or_(Message.sender_id == viewer_id, Message.receiver_id == viewer_id),
        )
        .group_by(counterpart)
        .all()
    )
    return dict(unread_rows), dict(last_rows)


def _contact(user: User, level_name: str | None, group_name: str | None) -> dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "avatar": user.avatar,
        "type": user.role,
        "level_name": level_name,
        "group_name": group_name,
    }


def _with_activity(db: Session, viewer_id: int, contacts: list[dict[str, Any]]) -> list[dict[str, Any]]:
    unread, last = _direct_activity(db, viewer_id)
    for contact in contacts:
        contact["unread_count"] = unread.get(contact["id"], 0)
        contact["last_msg_time"] = last.get(contact["id"])
    # contacts without any message sort last
    contacts.sort(key=lambda item: item["last_msg_time"] or datetime.min, reverse=True)
    return contacts


def teacher_contacts(db: Session, teacher_id: int) -> list[dict[str, Any]]:
    rows = (
        db.query(User, Level.name, Group.name)
        .join(StudentTeacherLink, StudentTeacherLink.student_id == User.id)
        .outerjoin(Level, User.level_id == Level.id)
        .outerjoin(Group, User.group_id == Group.id)
        .filter(StudentTeacherLink.teacher_id == teacher_id)
        .order_by(User.name)
        .all()
    )
    contacts = [_contact(user, level_name, group_name) for user, level_name, group_name in rows]
    admins = db.query(User).filter(User.role == UserRole.ADMIN).order_by(User.id).all()
    contacts.extend(_contact(admin, ADMINISTRATION_LABEL, None) for admin in admins)
    return _with_activity(db, teacher_id, contacts)


def student_contacts(db: Session, student_id: int) -> list[dict[str, Any]]:
    teachers = (
        db.query(User)
        .join(StudentTeacherLink, StudentTeacherLink.teacher_id == User.id)
        .filter(StudentTeacherLink.student_id == student_id)
        .order_by(User.name)
        .all()
    )
    subject_rows = []
    if teachers:
        subject_rows = (
            db.query(TeacherSubject.teacher_id, Subject.name)
            .join(Subject, Subject.id == TeacherSubject.subject_id)
            .filter(TeacherSubject.teacher_id.in_([teacher.id for teacher in teachers]))
            .order_by(Subject.id)
            .all()
        )
    subjects: dict[int, list[str]] = {}
    for teacher_id, subject_name in subject_rows:
        subjects.setdefault(teacher_id, []).append(subject_name)

    contacts = [
        _contact(teacher, ", ".join(subjects.get(teacher.id, [])) or None, None) for teacher in teachers
    ]
    return _with_activity(db, student_id, contacts)


# --- direct conversations ---

def conversation(db: Session, user1_id: int, user2_id: int) -> list[dict[str, Any]]:
    rows = (
        db.query(Message, User.name)
        .outerjoin(User, User.id == Message.sender_id)
        .filter(
            Message.group_id.is_(None),
            or_(
                (Message.sender_id == user1_id) & (Message.receiver_id == user2_id),
                (Message.sender_id == user2_id) & (Message.receiver_id == user1_id),
            ),
        )
        .order_by(Message.sent_at, Message.id)
        .all()
    )
    result = []
    for message, sender_name in rows:
        item = message_to_dict(message)
        item["sender_name"] = sender_name
        result.append(item)
    return result


def mark_read(db: Session, *, sender_id: int | None, reader_id: int | None, group_id: int | None = None) -> int:
    if group_id:
        # group messages carry no per-reader receipts
        return 0
    if sender_id is None or reader_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="sender_id and reader_id are required")
    updated = (
        db.query(Message)
        .filter(
            Message.sender_id == sender_id,
            Message.receiver_id == reader_id,
            Message.read_at.is_(None),
        )
        .update({Message.read_at: datetime.utcnow()}, synchronize_session=False)
    )
    commit_or_raise(db)
    return updated


# --- sending ---

def _require_single_target(receiver_id: int | None, group_id: int | None) -> None:
    if (receiver_id is None) == (group_id is None):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Exactly one of receiver_id or group_id is required",
        )


def _ensure_can_post(db: Session, group: ChatGroup, sender: User) -> None:
    if not group.only_admins_can_send or sender.role == UserRole.ADMIN:
        return
    member = db.get(GroupMember, (group.id, sender.id))
    if not member or not member.is_admin:
        logger.info(f"User {sender.id} refused: only admins can post in group {group.id}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only group admins can post in this group")


def _check_send(db: Session, sender_id: int, receiver_id: int | None, group_id: int | None) -> User:
    _require_single_target(receiver_id, group_id)
    sender = get_user_or_404(db, sender_id)
    if group_id is not None:
        group = get_or_404(db, ChatGroup, group_id, "Group not found")
        _ensure_can_post(db, group, sender)
    return sender


def _notify_if_from_admin(db: Session, sender: User, receiver_id: int | None, text: str) -> None:
    if receiver_id is None or sender.role != UserRole.ADMIN:
        return
    receiver = db.get(User, receiver_id)
    if receiver and receiver.role != UserRole.ADMIN:
        notify(db, user_id=receiver_id, message=text, link=chat_action_link(sender.id))


def send_text(
    db: Session,
    *,
    sender_id: int,
    message_text: str,
    receiver_id: int | None = None,
    group_id: int | None = None,
    subject_id: int | None = None,
) -> Message:
    sender = _check_send(db, sender_id, receiver_id, group_id)
    message = Message(
        sender_id=sender_id,
        receiver_id=receiver_id,
        group_id=group_id,
        subject_id=subject_id,
        message_text=message_text,
        message_type=MessageType.TEXT,
    )
    db.add(message)
    _notify_if_from_admin(db, sender, receiver_id, ADMIN_MESSAGE_NOTICE)
    commit_or_raise(db)
    return message


def _file_message(sender_id: int, stored: StoredFile, **target) -> Message:
    return Message(
        sender_id=sender_id,
        message_type=MessageType.FILE,
        file_path=stored.filename,
        file_name=stored.original_name,
        file_size=stored.size,
        **target,
    )


def send_file(
    db: Session,
    *,
    sender_id: int,
    upload: UploadFile | None,
    receiver_id: int | None = None,
    group_id: int | None = None,
    subject_id: int | None = None,
) -> Message:
    if upload is None or not upload.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file")
    sender = _check_send(db, sender_id, receiver_id, group_id)

    stored = save_upload(upload, GENERAL)
    message = _file_message(sender_id, stored, receiver_id=receiver_id, group_id=group_id, subject_id=subject_id)
    db.add(message)
    _notify_if_from_admin(db, sender, receiver_id, ADMIN_FILE_NOTICE)
    try:
        commit_or_raise(db)
    except HTTPException:
        discard(stored.path)
        raise
    return message


def parse_recipients(raw: str) -> list[int]:
    try:
        values = json.loads(raw)
        if not isinstance(values, list):
            raise ValueError("recipients must be a list")
        return list(dict.fromkeys(int(value) for value in values))
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid recipients list") from exc


def broadcast(
    db: Session,
    *,
    sender_id: int,
    recipients: list[int],
    message_text: str | None = None,
    upload: UploadFile | None = None,
) -> int:
    """Fan one text and/or one file out to every recipient; returns the recipient count."""
    sender = get_user_or_404(db, sender_id)
    if sender.role != UserRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only administrators can broadcast")

    text = (message_text or "").strip() or None
    has_file = upload is not None and bool(upload.filename)
    if not text and not has_file:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A message or a file is required")

    stored = save_upload(upload, GENERAL) if has_file else None
    for recipient_id in recipients:
        if text:
            db.add(Message(sender_id=sender_id, receiver_id=recipient_id, message_text=text))
        if stored:
            db.add(_file_message(sender_id, stored, receiver_id=recipient_id))
        notify(db, user_id=recipient_id, message=BROADCAST_NOTICE, link=chat_action_link(sender_id))
    try:
        commit_or_raise(db)
    except HTTPException:
        if stored:
            discard(stored.path)
        raise
    logger.info(f"Admin {sender_id} broadcast to {len(recipients)} recipient(s) (text={bool(text)}, file={has_file})")
    return len(recipients)


def delete_message(db: Session, *, message_id: int, password: str, admin_id: int | None = None) -> None:
    confirm_admin_password(db, password=password, admin_id=admin_id)
    db.delete(get_or_404(db, Message, message_id, "Message not found"))
    commit_or_raise(db)
    logger.info(f"Message {message_id} deleted by administrator")
