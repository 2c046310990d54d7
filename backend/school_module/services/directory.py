import logging
from datetime import datetime
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from ..models import (
    GroupMember,
    Group,
    Lesson,
    Level,
    PasswordReset,
    StudentTeacherLink,
    Subject,
    TeacherGroup,
    TeacherSubject,
    TeacherTeachingStudent,
    User,
    UserRole,
)
from ..security import generate_registration_number, hash_password
from .common import avatar_for, commit_or_raise, get_or_404, get_user_or_404, user_to_dict

logger = logging.getLogger(__name__)

DEFAULT_TEACHER_PASSWORD = "123456"
STILL_REFERENCED = "Still referenced"


# --- teachers & students ---

def list_teachers(db: Session) -> list[dict[str, Any]]:
    rows = db.query(User).filter(User.role == UserRole.TEACHER).order_by(User.name).all()
    return [user_to_dict(row) for row in rows]


def create_teacher(db: Session, *, name: str, username: str, phone: str | None = None) -> User:
    teacher = User(
        name=name.strip(),
        username=username.strip(),
        password_hash=hash_password(phone or DEFAULT_TEACHER_PASSWORD),
        role=UserRole.TEACHER,
        phone=phone,
        avatar=avatar_for(name),
    )
    db.add(teacher)
    commit_or_raise(db, duplicate_detail="Error: the name or username may already exist")
    logger.info(f"Teacher {teacher.id} created")
    return teacher


def list_students(db: Session) -> list[dict[str, Any]]:
    rows = (
        db.query(User, Level.name, Group.name)
        .outerjoin(Level, User.level_id == Level.id)
        .outerjoin(Group, User.group_id == Group.id)
        .filter(User.role == UserRole.STUDENT)
        .order_by(User.name)
        .all()
    )
    result = []
    for user, level_name, group_name in rows:
        item = user_to_dict(user)
        item["level_name"] = level_name
        item["group_name"] = group_name
        result.append(item)
    return result


def next_sequential_registration_number(db: Session, year: int | None = None) -> str:
    """Year prefix followed by a three digit counter taken from the newest student."""
    year = year or datetime.now().year
    last = (
        db.query(User)
        .filter(User.role == UserRole.STUDENT, User.registration_number.isnot(None))
        .order_by(User.id.desc())
        .first()
    )
    suffix = last.registration_number[-3:] if last else ""
    next_number = int(suffix) + 1 if suffix.isdigit() else 1
    return f"{year}{next_number:03d}"


def create_student(
    db: Session,
    *,
    name: str,
    username: str,
    level_id: int | None = None,
    group_id: int | None = None,
    password: str | None = None,
    sequential_registration: bool = False,
) -> User:
    if sequential_registration:
        registration_number = next_sequential_registration_number(db)
    else:
        registration_number = generate_registration_number()

    student = User(
        name=name.strip(),
        username=username.strip(),
        password_hash=hash_password(password or registration_number),
        role=UserRole.STUDENT,
        level_id=level_id or None,
        group_id=group_id or None,
        registration_number=registration_number,
        avatar=avatar_for(name),
    )
    db.add(student)
    commit_or_raise(db, duplicate_detail="Error: the username may already exist")
    logger.info(f"Student {student.id} created with registration number {registration_number}")
    return student


def update_user(db: Session, user_id: int, *, fields: dict[str, Any]) -> User:
    """Apply a partial update; ``fields`` only holds keys the client actually sent."""
    user = get_user_or_404(db, user_id)

    user.name = fields["name"].strip()
    user.username = fields["username"].strip()

    password = fields.get("password")
    phone = fields.get("phone")
    if user.role == UserRole.TEACHER and phone and phone != user.phone and not password:
        password = phone
    if password:
        user.password_hash = hash_password(password)

    if "phone" in fields:
        user.phone = phone
    if "level_id" in fields:
        user.level_id = fields["level_id"]
    if "group_id" in fields:
        user.group_id = fields["group_id"]

    commit_or_raise(db, duplicate_detail="Error: the username may already exist")
    return user


def delete_user(db: Session, user_id: int, *, commit: bool = True) -> None:
    """Remove a user and every relationship row that points at it; messages are kept."""
    user = get_user_or_404(db, user_id)
    db.query(StudentTeacherLink).filter(
        (StudentTeacherLink.student_id == user_id) | (StudentTeacherLink.teacher_id == user_id)
    ).delete(synchronize_session=False)
    db.query(TeacherSubject).filter(TeacherSubject.teacher_id == user_id).delete(synchronize_session=False)
    db.query(TeacherGroup).filter(TeacherGroup.teacher_id == user_id).delete(synchronize_session=False)
    db.query(TeacherTeachingStudent).filter(
        (TeacherTeachingStudent.teacher_id == user_id) | (TeacherTeachingStudent.student_id == user_id)
    ).delete(synchronize_session=False)
    db.query(GroupMember).filter(GroupMember.user_id == user_id).delete(synchronize_session=False)
    db.query(PasswordReset).filter(PasswordReset.user_id == user_id).delete(synchronize_session=False)
    db.delete(user)
    if commit:
        commit_or_raise(db)
        logger.info(f"User {user_id} deleted")


# --- levels, groups, subjects ---

def list_levels(db: Session) -> list[dict[str, Any]]:
    return [{"id": row.id, "name": row.name} for row in db.query(Level).order_by(Level.id).all()]


def create_level(db: Session, *, name: str) -> Level:
    level = Level(name=name.strip())
    db.add(level)
    commit_or_raise(db, duplicate_detail="Level name already exists")
    return level


def update_level(db: Session, level_id: int, *, name: str) -> Level:
    level = get_or_404(db, Level, level_id, "Level not found")
    level.name = name.strip()
    commit_or_raise(db, duplicate_detail="Level name already exists")
    return level


def delete_level(db: Session, level_id: int) -> None:
    db.delete(get_or_404(db, Level, level_id, "Level not found"))
    commit_or_raise(db, duplicate_detail=STILL_REFERENCED)


def list_groups(db: Session) -> list[dict[str, Any]]:
    rows = (
        db.query(Group, Level.name)
        .outerjoin(Level, Group.level_id == Level.id)
        .order_by(Group.id)
        .all()
    )
    return [
        {"id": group.id, "name": group.name, "level_id": group.level_id, "level_name": level_name}
        for group, level_name in rows
    ]


def create_group(db: Session, *, name: str, level_id: int) -> Group:
    get_or_404(db, Level, level_id, "Level not found")
    group = Group(name=name.strip(), level_id=level_id)
    db.add(group)
    commit_or_raise(db)
    return group


def update_group(db: Session, group_id: int, *, name: str, level_id: int) -> Group:
    group = get_or_404(db, Group, group_id, "Group not found")
    get_or_404(db, Level, level_id, "Level not found")
    group.name = name.strip()
    group.level_id = level_id
    commit_or_raise(db)
    return group


def delete_group(db: Session, group_id: int) -> None:
    db.delete(get_or_404(db, Group, group_id, "Group not found"))
    commit_or_raise(db, duplicate_detail=STILL_REFERENCED)


def list_subjects(db: Session) -> list[dict[str, Any]]:
    return [
        {"id": row.id, "name": row.name, "description": row.description}
        for row in db.query(Subject).order_by(Subject.id).all()
    ]


def create_subject(db: Session, *, name: str, description: str | None = None) -> Subject:
    subject = Subject(name=name.strip(), description=description)
    db.add(subject)
    commit_or_raise(db)
    return subject


def update_subject(db: Session, subject_id: int, *, name: str, description: str | None = None) -> Subject:
    subject = get_or_404(db, Subject, subject_id, "Subject not found")
    subject.name = name.strip()
    subject.description = description
    commit_or_raise(db)
    return subject


def delete_subject(db: Session, subject_id: int) -> None:
    db.delete(get_or_404(db, Subject, subject_id, "Subject not found"))
    commit_or_raise(db, duplicate_detail=STILL_REFERENCED)


# --- bulk delete ---

BULK_DELETE_TARGETS = {
    "student": (User, UserRole.STUDENT),
    "teacher": (User, UserRole.TEACHER),
    "level": (Level, None),
    "group": (Group, None),
    "subject": (Subject, None),
    "lesson": (Lesson, None),
}


def bulk_delete(db: Session, *, ids: list[int], entity_type: str) -> int:
    target = BULK_DELETE_TARGETS.get(entity_type)
    if not target or not ids:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid Request")

    model, role = target
    unique_ids = list(dict.fromkeys(ids))
    if model is User:
        rows = db.query(User).filter(User.id.in_(unique_ids), User.role == role).all()
        for row in rows:
            delete_user(db, row.id, commit=False)
    else:
        rows = db.query(model).filter(model.id.in_(unique_ids)).all()
        for row in rows:
            db.delete(row)
    commit_or_raise(db, duplicate_detail=STILL_REFERENCED)
    logger.info(f"Bulk deleted {len(rows)} {entity_type} row(s)")
    return len(rows)
