from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db_session
from ..schemas import (
    CountResponse,
    LinkRequest,
    SuccessResponse,
    TeacherGroupsBulkRequest,
    TeacherStudentsBulkRequest,
    TeacherSubjectsBulkRequest,
)
from ..services import assignments

router = APIRouter(prefix="/api", tags=["Assignments"])


@router.get("/teacher-subjects")
def get_teacher_subjects(db: Session = Depends(get_db_session)):
    return assignments.list_teacher_subjects(db)


@router.post("/teacher-subjects/bulk", response_model=CountResponse)
def set_teacher_subjects(payload: TeacherSubjectsBulkRequest, db: Session = Depends(get_db_session)):
    count = assignments.replace_teacher_subjects(db, teacher_id=payload.teacher_id, subject_ids=payload.subject_ids)
    return CountResponse(count=count)


@router.delete("/teacher-subjects/{teacher_id}/{subject_id}", response_model=SuccessResponse)
def remove_teacher_subject(teacher_id: int, subject_id: int, db: Session = Depends(get_db_session)):
    assignments.remove_teacher_subject(db, teacher_id=teacher_id, subject_id=subject_id)
    return SuccessResponse()


@router.get("/teacher-groups")
def get_teacher_groups(db: Session = Depends(get_db_session)):
    return assignments.list_teacher_groups(db)


@router.post("/teacher-groups/bulk", response_model=CountResponse)
def set_teacher_groups(payload: TeacherGroupsBulkRequest, db: Session = Depends(get_db_session)):
    count = assignments.replace_teacher_groups(db, teacher_id=payload.teacher_id, group_ids=payload.group_ids)
    return CountResponse(count=count)


@router.delete("/teacher-groups/{teacher_id}/{group_id}", response_model=SuccessResponse)
def remove_teacher_group(teacher_id: int, group_id: int, db: Session = Depends(get_db_session)):
    assignments.remove_teacher_group(db, teacher_id=teacher_id, group_id=group_id)
    return SuccessResponse()


@router.get("/teacher-teaching-students")
def get_teaching_students(db: Session = Depends(get_db_session)):
    return assignments.list_teaching_students(db)


@router.post("/teacher-teaching-students/bulk", response_model=CountResponse)
def set_teaching_students(payload: TeacherStudentsBulkRequest, db: Session = Depends(get_db_session)):
    count = assignments.replace_teaching_students(db, teacher_id=payload.teacher_id, student_ids=payload.student_ids)
    return CountResponse(count=count)


@router.get("/teachers/{teacher_id}/scope")
def get_teaching_scope(teacher_id: int, db: Session = Depends(get_db_session)):
    return assignments.teaching_scope(db, teacher_id)


@router.get("/student-teacher-links")
def get_links(db: Session = Depends(get_db_session)):
    return assignments.list_links(db)


@router.post("/student-teacher-links/bulk", response_model=CountResponse)
def add_links(payload: TeacherStudentsBulkRequest, db: Session = Depends(get_db_session)):
    count = assignments.add_links(db, teacher_id=payload.teacher_id, student_ids=payload.student_ids)
    return CountResponse(count=count)


@router.delete("/student-teacher-links", response_model=SuccessResponse)
def remove_link(payload: LinkRequest, db: Session = Depends(get_db_session)):
    assignments.remove_link(db, student_id=payload.student_id, teacher_id=payload.teacher_id)
    return SuccessResponse()
