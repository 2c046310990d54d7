"""Lesson publishing, audience targeting and notification fan-out."""
import logging
from typing import Any

from fastapi import HTTPException, UploadFile, status
from sqlalchemy import and_, or_
from sqlalchemy.orm import Session, selectinload

from ..models import Lesson, LessonTarget, Subject, TargetType, User, UserRole
from ..storage import LESSON, discard, save_upload
from .common import commit_or_raise, get_or_404
from .notifications import notify

logger = logging.getLogger(__name__)

TARGET_KEYS = {
    TargetType.LEVEL: "target_levels",
    TargetType.GROUP: "target_groups",
    TargetType.STUDENT: "target_students",
}


def parse_id_list(raw: str | None) -> list[int]:
    """Comma separated ids as sent by the lesson form ("1,2, 3")."""
    if not raw:
        return []
    try:
        return list(dict.fromkeys(int(part) for part in raw.split(",") if part.strip()))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid id list: {raw}") from exc


def parse_flag(raw: str | bool | None) -> bool:
    if isinstance(raw, bool):
        return raw
    return (raw or "").strip().lower() in {"true", "1"}


def parse_optional_int(raw: str | None, name: str) -> int | None:
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{name} must be an integer") from exc


def lesson_file_link(filename: str) -> str:
    return f"/api/lessons/files/{filename}"


def _audience(
    db: Session, *, target_all: bool, levels: list[int], groups: list[int], students: list[int]
) -> list[int]:
    query = db.query(User.id).filter(User.role == UserRole.STUDENT)
    if not target_all:
        conditions = []
        if students:
            conditions.append(User.id.in_(students))
        if groups:
            conditions.append(User.group_id.in_(groups))
        if levels:
            conditions.append(User.level_id.in_(levels))
        if not conditions:
            return []
        query = query.filter(or_(*conditions))
    return [user_id for (user_id,) in query.order_by(User.id)]


def create_lesson(
    db: Session,
    *,
    teacher_id: int | None,
    title: str | None,
    upload: UploadFile | None,
    subject_id: int | None = None,
    description: str | None = None,
    target_all: bool = False,
    target_levels: list[int] | None = None,
    target_groups: list[int] | None = None,
    target_students: list[int] | None = None,
) -> tuple[Lesson, int]:
    """Store the lesson and notify its audience; returns the lesson and the notified count."""
    if upload is None or not upload.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A lesson file is required")
    if not teacher_id or not (title or "").strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="teacher_id and title are required")

    levels = target_levels or []
    groups = target_groups or []
    students = target_students or []

    stored = save_upload(upload, LESSON)
    lesson = Lesson(
        teacher_id=teacher_id,
        subject_id=subject_id,
        title=title.strip(),
        description=description,
        file_path=stored.filename,
        target_all=target_all,
    )
    if not target_all:
        for target_type, ids in ((TargetType.LEVEL, levels), (TargetType.GROUP, groups), (TargetType.STUDENT, students)):
            lesson.targets.extend(LessonTarget(target_type=target_type, target_id=target_id) for target_id in ids)
    db.add(lesson)

    audience = _audience(db, target_all=target_all, levels=levels, groups=groups, students=students)
    message = f"New lesson: {lesson.title}"
    for student_id in audience:
        notify(db, user_id=student_id, message=message, link=lesson_file_link(stored.filename))

    try:
        commit_or_raise(db)
    except HTTPException:
        discard(stored.path)
        raise
    logger.info(f"Lesson {lesson.id} published by teacher {teacher_id}, {len(audience)} student(s) notified")
    return lesson, len(audience)


def lesson_to_dict(lesson: Lesson) -> dict[str, Any]:
    targets: dict[str, list[str]] = {key: [] for key in TARGET_KEYS.values()}
    for target in sorted(lesson.targets, key=lambda item: item.id or 0):
        targets[TARGET_KEYS[target.target_type]].append(str(target.target_id))
    item = {
        "id": lesson.id,
        "teacher_id": lesson.teacher_id,
        "subject_id": lesson.subject_id,
        "title": lesson.title,
        "description": lesson.description,
        "file_path": lesson.file_path,
        "target_all": lesson.target_all,
        "created_at": lesson.created_at,
    }
    item.update({key: ",".join(values) or None for key, values in targets.items()})
    return item


def _targets(target_type: TargetType, target_id: int):
    return Lesson.targets.any(and_(LessonTarget.target_type == target_type, LessonTarget.target_id == target_id))


def list_lessons(
    db: Session,
    *,
    user_id: int | None = None,
    user_group: int | None = None,
    user_level: int | None = None,
) -> list[dict[str, Any]]:
    query = (
        db.query(Lesson, User.name, User.role, Subject.name)
        .outerjoin(User, User.id == Lesson.teacher_id)
        .outerjoin(Subject, Subject.id == Lesson.subject_id)
        .options(selectinload(Lesson.targets))
    )
    if user_id is not None:
        visible = [Lesson.target_all.is_(True), _targets(TargetType.STUDENT, user_id)]
        if user_group is not None:
            visible.append(_targets(TargetType.GROUP, user_group))
        if user_level is not None:
            visible.append(_targets(TargetType.LEVEL, user_level))
        query = query.filter(or_(*visible))

    result = []
    for lesson, teacher_name, teacher_role, subject_name in query.order_by(Lesson.created_at.desc(), Lesson.id.desc()):
        item = lesson_to_dict(lesson)
        item["teacher_name"] = teacher_name
        item["teacher_type"] = teacher_role
        item["subject_name"] = subject_name
        result.append(item)
    return result


def teacher_lessons(db: Session, teacher_id: int) -> list[dict[str, Any]]:
    rows = (
        db.query(Lesson, Subject.name)
        .outerjoin(Subject, Subject.id == Lesson.subject_id)
        .options(selectinload(Lesson.targets))
        .filter(Lesson.teacher_id == teacher_id)
        .order_by(Lesson.created_at.desc(), Lesson.id.desc())
        .all()
    )
    result = []
    for lesson, subject_name in rows:
        item = lesson_to_dict(lesson)
        item["subject_name"] = subject_name
        result.append(item)
    return result


def delete_lesson(db: Session, lesson_id: int) -> None:
    db.delete(get_or_404(db, Lesson, lesson_id, "Lesson not found"))
    commit_or_raise(db)
    logger.info(f"Lesson {lesson_id} deleted")
