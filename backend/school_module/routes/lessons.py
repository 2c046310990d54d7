from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from ..database import get_db_session
from ..schemas import LessonCreatedResponse, SuccessResponse
from ..services import lessons
from ..storage import LESSON
from .chat import serve_stored_file

router = APIRouter(prefix="/api", tags=["Lessons"])


@router.post("/lessons", response_model=LessonCreatedResponse)
def publish_lesson(
    teacher_id: int | None = Form(None),
    title: str | None = Form(None),
    subject_id: int | None = Form(None),
    description: str | None = Form(None),
    target_all: str | None = Form(None),
    target_levels: str | None = Form(None),
    target_groups: str | None = Form(None),
    target_students: str | None = Form(None),
    file: UploadFile | None = File(None),
    db: Session = Depends(get_db_session),
):
    lesson, notified = lessons.create_lesson(
        db,
        teacher_id=teacher_id,
        title=title,
        upload=file,
        subject_id=subject_id,
        description=description,
        target_all=lessons.parse_flag(target_all),
        target_levels=lessons.parse_id_list(target_levels),
        target_groups=lessons.parse_id_list(target_groups),
        target_students=lessons.parse_id_list(target_students),
    )
    return LessonCreatedResponse(id=lesson.id, notified=notified)


@router.get("/lessons")
def get_lessons(
    user_id: str | None = None,
    user_group: str | None = None,
    user_level: str | None = None,
    db: Session = Depends(get_db_session),
):
    # the client sends empty strings for a viewer without group or level
    return lessons.list_lessons(
        db,
        user_id=lessons.parse_optional_int(user_id, "user_id"),
        user_group=lessons.parse_optional_int(user_group, "user_group"),
        user_level=lessons.parse_optional_int(user_level, "user_level"),
    )


@router.delete("/lessons/{lesson_id}", response_model=SuccessResponse)
def remove_lesson(lesson_id: int, db: Session = Depends(get_db_session)):
    lessons.delete_lesson(db, lesson_id)
    return SuccessResponse()


@router.get("/lessons/files/{filename}")
def lesson_file(filename: str):
    return serve_stored_file(LESSON, filename)


@router.get("/teachers/{teacher_id}/lessons")
def get_teacher_lessons(teacher_id: int, db: Session = Depends(get_db_session)):
    return lessons.teacher_lessons(db, teacher_id)
