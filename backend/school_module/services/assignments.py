import logging
from typing import Any

from sqlalchemy.orm import Session, aliased

from ..models import (
    Group,
    Level,
    StudentTeacherLink,
    Subject,
    TeacherGroup,
    TeacherSubject,
    TeacherTeachingStudent,
    User,
    UserRole,
)
from .common import commit_or_raise, get_user_or_404

logger = logging.getLogger(__name__)


def _replace_for_teacher(db: Session, model, teacher_id: int, column: str, ids: list[int]) -> int:
    """Swap the teacher's whole assignment set for ``ids`` in one transaction."""
    get_user_or_404(db, teacher_id, UserRole.TEACHER)
    db.query(model).filter(model.teacher_id == teacher_id).delete(synchronize_session=False)
    unique_ids = list(dict.fromkeys(ids))
    for item_id in unique_ids:
        db.add(model(teacher_id=teacher_id, **{column: item_id}))
    commit_or_raise(db)
    logger.info(f"Replaced {model.__tablename__} for teacher {teacher_id}: {len(unique_ids)} row(s)")
    return len(unique_ids)


def _remove_for_teacher(db: Session, model, teacher_id: int, column: str, item_id: int) -> int:
    removed = (
        db.query(model)
        .filter(model.teacher_id == teacher_id, getattr(model, column) == item_id)
        .delete(synchronize_session=False)
    )
    commit_or_raise(db)
    return removed


# --- teacher <-> subject ---

def list_teacher_subjects(db: Session) -> list[dict[str, Any]]:
    rows = (
        db.query(TeacherSubject, User.name, Subject.name)
        .join(User, User.id == TeacherSubject.teacher_id)
        .join(Subject, Subject.id == TeacherSubject.subject_id)
        .order_by(User.name, Subject.name)
        .all()
    )
    return [
        {
            "teacher_id": link.teacher_id,
            "subject_id": link.subject_id,
            "teacher_name": teacher_name,
            "subject_name": subject_name,
        }
        for link, teacher_name, subject_name in rows
    ]


def replace_teacher_subjects(db: Session, *, teacher_id: int, subject_ids: list[int]) -> int:
    return _replace_for_teacher(db, TeacherSubject, teacher_id, "subject_id", subject_ids)


def remove_teacher_subject(db: Session, *, teacher_id: int, subject_id: int) -> int:
    return _remove_for_teacher(db, TeacherSubject, teacher_id, "subject_id", subject_id)


# --- teacher <-> group ---

def list_teacher_groups(db: Session) -> list[dict[str, Any]]:
    rows = (
        db.query(TeacherGroup, User.name, Group.name, Level.name)
        .join(User, User.id == TeacherGroup.teacher_id)
        .join(Group, Group.id == TeacherGroup.group_id)
        .join(Level, Level.id == Group.level_id)
        .order_by(User.name, Level.name, Group.name)
        .all()
    )
    return [
        {
            "teacher_id": link.teacher_id,
            "group_id": link.group_id,
            "teacher_name": teacher_name,
            "group_name": group_name,
            "level_name": level_name,
        }
        for link, teacher_name, group_name, level_name in rows
    ]


def replace_teacher_groups(db: Session, *, teacher_id: int, group_ids: list[int]) -> int:
    return _replace_for_teacher(db, TeacherGroup, teacher_id, "group_id", group_ids)


def remove_teacher_group(db: Session, *, teacher_id: int, group_id: int) -> int:
    return _remove_for_teacher(db, TeacherGroup, teacher_id, "group_id", group_id)


# --- teacher <-> individual student ---

def _student_row(user: User, level_name: str | None, group_name: str | None) -> dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "level_id": user.level_id,
        "group_id": user.group_id,
        "registration_number": user.registration_number,
        "level_name": level_name,
        "group_name": group_name,
    }


def list_teaching_students(db: Session) -> list[dict[str, Any]]:
    rows = (
        db.query(TeacherTeachingStudent, User, Level.name, Group.name)
        .join(User, User.id == TeacherTeachingStudent.student_id)
        .outerjoin(Level, User.level_id == Level.id)
        .outerjoin(Group, User.group_id == Group.id)
        .order_by(TeacherTeachingStudent.teacher_id, User.name)
        .all()
    )
    result = []
    for link, student, level_name, group_name in rows:
        result.append(
            {
                "teacher_id": link.teacher_id,
                "student_id": link.student_id,
                "student_name": student.name,
                "level_id": student.level_id,
                "group_id": student.group_id,
                "level_name": level_name,
                "group_name": group_name,
            }
        )
    return result


def replace_teaching_students(db: Session, *, teacher_id: int, student_ids: list[int]) -> int:
    return _replace_for_teacher(db, TeacherTeachingStudent, teacher_id, "student_id", student_ids)


# --- student <-> teacher chat links ---

def list_links(db: Session) -> list[dict[str, Any]]:
    student = aliased(User)
    teacher = aliased(User)
    rows = (
        db.query(StudentTeacherLink, student.name, teacher.name)
        .join(student, student.id == StudentTeacherLink.student_id)
        .join(teacher, teacher.id == StudentTeacherLink.teacher_id)
        .order_by(teacher.name, student.name)
        .all()
    )
    return [
        {
            "student_id": link.student_id,
            "teacher_id": link.teacher_id,
            "student_name": student_name,
            "teacher_name": teacher_name,
        }
        for link, student_name, teacher_name in rows
    ]


def add_links(db: Session, *, teacher_id: int, student_ids: list[int]) -> int:
    """Additive: pairs that already exist are left alone."""
    existing = {
        student_id
        for (student_id,) in db.query(StudentTeacherLink.student_id).filter(
            StudentTeacherLink.teacher_id == teacher_id
        )
    }
    added = 0
    for student_id in dict.fromkeys(student_ids):
        if student_id in existing:
            continue
        db.add(StudentTeacherLink(student_id=student_id, teacher_id=teacher_id))
        added += 1
    commit_or_raise(db)
    return added


def remove_link(db: Session, *, student_id: int, teacher_id: int) -> int:
    removed = (
        db.query(StudentTeacherLink)
        .filter(StudentTeacherLink.student_id == student_id, StudentTeacherLink.teacher_id == teacher_id)
        .delete(synchronize_session=False)
    )
    commit_or_raise(db)
    return removed


# --- teaching scope ---

def teaching_scope(db: Session, teacher_id: int) -> dict[str, list[dict[str, Any]]]:
    """Groups assigned to the teacher, their levels, and every reachable student."""
    group_rows = (
        db.query(Group, Level.name)
        .join(TeacherGroup, TeacherGroup.group_id == Group.id)
        .join(Level, Level.id == Group.level_id)
        .filter(TeacherGroup.teacher_id == teacher_id)
        .order_by(Group.id)
        .all()
    )
    groups = [
        {"id": group.id, "name": group.name, "level_id": group.level_id, "level_name": level_name}
        for group, level_name in group_rows
    ]

    levels: dict[int, dict[str, Any]] = {}
    for group in groups:
        levels.setdefault(group["level_id"], {"id": group["level_id"], "name": group["level_name"]})

    student_query = (
        db.query(User, Level.name, Group.name)
        .outerjoin(Level, User.level_id == Level.id)
        .outerjoin(Group, User.group_id == Group.id)
        .filter(User.role == UserRole.STUDENT)
    )

    students: dict[int, dict[str, Any]] = {}
    group_ids = [group["id"] for group in groups]
    if group_ids:
        for user, level_name, group_name in student_query.filter(User.group_id.in_(group_ids)).order_by(User.id):
            students[user.id] = _student_row(user, level_name, group_name)

    individual = (
        student_query.join(TeacherTeachingStudent, TeacherTeachingStudent.student_id == User.id)
        .filter(TeacherTeachingStudent.teacher_id == teacher_id)
        .order_by(User.id)
    )
    for user, level_name, group_name in individual:
        students.setdefault(user.id, _student_row(user, level_name, group_name))

    return {"levels": list(levels.values()), "groups": groups, "students": list(students.values())}
