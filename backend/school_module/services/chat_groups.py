import logging
from datetime import datetime
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models import ChatGroup, GroupMember, Message, User
from ..schemas import MemberIn
from .common import commit_or_raise, get_or_404, message_to_dict
from .identity import confirm_admin_password

logger = logging.getLogger(__name__)


def _group_to_dict(group: ChatGroup) -> dict[str, Any]:
    return {
        "id": group.id,
        "name": group.name,
        "allow_private_chat": group.allow_private_chat,
        "only_admins_can_send": group.only_admins_can_send,
        "created_at": group.created_at,
    }


def list_chat_groups(db: Session) -> list[dict[str, Any]]:
    member_count = (
        db.query(GroupMember.group_id, func.count(GroupMember.user_id).label("member_count"))
        .group_by(GroupMember.group_id)
        .subquery()
    )
    rows = (
        db.query(ChatGroup, member_count.c.member_count)
        .outerjoin(member_count, member_count.c.group_id == ChatGroup.id)
        .order_by(ChatGroup.created_at.desc(), ChatGroup.id.desc())
        .all()
    )
    result = []
    for group, count in rows:
        item = _group_to_dict(group)
        item["member_count"] = count or 0
        result.append(item)
    return result


def list_members(db: Session, group_id: int) -> list[dict[str, Any]]:
    rows = (
        db.query(GroupMember, User)
        .join(User, User.id == GroupMember.user_id)
        .filter(GroupMember.group_id == group_id)
        .order_by(GroupMember.is_admin.desc(), User.name)
        .all()
    )
    return [
        {
            "id": member.user_id,
            "user_id": member.user_id,
            "name": user.name,
            "type": user.role,
            "avatar": user.avatar,
            "is_admin": member.is_admin,
        }
        for member, user in rows
    ]


def group_details(db: Session, group_id: int) -> dict[str, Any]:
    group = get_or_404(db, ChatGroup, group_id, "Group not found")
    details = _group_to_dict(group)
    details["members"] = list_members(db, group_id)
    return details


def _replace_members(db: Session, group: ChatGroup, members: list[MemberIn]) -> None:
    db.query(GroupMember).filter(GroupMember.group_id == group.id).delete(synchronize_session=False)
    unique = {member.user_id: member for member in members}
    for member in unique.values():
        db.add(GroupMember(group_id=group.id, user_id=member.user_id, is_admin=member.is_admin))


def create_chat_group(
    db: Session,
    *,
    name: str,
    allow_private: bool = False,
    only_admins_can_send: bool = False,
    members: list[MemberIn],
) -> ChatGroup:
    group = ChatGroup(name=name.strip(), allow_private_chat=allow_private, only_admins_can_send=only_admins_can_send)
    db.add(group)
    db.flush()
    _replace_members(db, group, members)
    commit_or_raise(db)
    logger.info(f"Chat group {group.id} created with {len(members)} member(s)")
    return group


def update_chat_group(
    db: Session,
    group_id: int,
    *,
    name: str,
    allow_private: bool = False,
    only_admins_can_send: bool = False,
    members: list[MemberIn],
) -> ChatGroup:
    group = get_or_404(db, ChatGroup, group_id, "Group not found")
    group.name = name.strip()
    group.allow_private_chat = allow_private
    group.only_admins_can_send = only_admins_can_send
    _replace_members(db, group, members)
    commit_or_raise(db)
    return group


def update_settings(db: Session, group_id: int, *, user_id: int, only_admins_can_send: bool) -> ChatGroup:
    group = get_or_404(db, ChatGroup, group_id, "Group not found")
    member = db.get(GroupMember, (group_id, user_id))
    if not member or not member.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized")
    group.only_admins_can_send = only_admins_can_send
    commit_or_raise(db)
    return group


def delete_chat_group(db: Session, *, group_id: int, password: str, admin_id: int | None = None) -> None:
    confirm_admin_password(db, password=password, admin_id=admin_id)
    group = get_or_404(db, ChatGroup, group_id, "Group not found")
    # members and messages go with the group through the relationship cascade
    db.delete(group)
    commit_or_raise(db)
    logger.info(f"Chat group {group_id} deleted")


def user_chat_groups(db: Session, user_id: int) -> list[dict[str, Any]]:
    rows = (
        db.query(ChatGroup, GroupMember.is_admin)
        .join(GroupMember, GroupMember.group_id == ChatGroup.id)
        .filter(GroupMember.user_id == user_id)
        .all()
    )
    group_ids = [group.id for group, _ in rows]
    unread: dict[int, int] = {}
    last: dict[int, datetime] = {}
    if group_ids:
        unread = dict(
            db.query(Message.group_id, func.count(Message.id))
            .filter(
                Message.group_id.in_(group_ids),
                Message.sender_id != user_id,
                Message.read_at.is_(None),
            )
            .group_by(Message.group_id)
            .all()
        )
        last = dict(
            db.query(Message.group_id, func.max(Message.sent_at))
            .filter(Message.group_id.in_(group_ids))
            .group_by(Message.group_id)
            .all()
        )

    result = []
    for group, is_admin in rows:
        item = _group_to_dict(group)
        item["my_role_admin"] = is_admin
        item["unread_count"] = unread.get(group.id, 0)
        item["last_msg_time"] = last.get(group.id)
        result.append(item)
    result.sort(key=lambda item: item["last_msg_time"] or datetime.min, reverse=True)
    return result


def group_messages(db: Session, group_id: int) -> list[dict[str, Any]]:
    rows = (
        db.query(Message, User.name, User.avatar)
        .outerjoin(User, User.id == Message.sender_id)
        .filter(Message.group_id == group_id)
        .order_by(Message.sent_at, Message.id)
        .all()
    )
    result = []
    for message, sender_name, sender_avatar in rows:
        item = message_to_dict(message)
        item["sender_name"] = sender_name
        item["sender_avatar"] = sender_avatar
        result.append(item)
    return result
