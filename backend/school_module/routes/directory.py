from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from ..database import get_db_session
from ..schemas import (
    CreatedResponse,
    GroupRequest,
    ImportResponse,
    LevelRequest,
    StudentCreateRequest,
    StudentCreateResponse,
    SubjectRequest,
    SuccessResponse,
    TeacherCreateRequest,
    UserUpdateRequest,
)
from ..services import directory, imports

router = APIRouter(prefix="/api", tags=["Directory"])


# --- teachers ---

@router.get("/teachers/all")
def get_teachers(db: Session = Depends(get_db_session)):
    return directory.list_teachers(db)


@router.post("/teachers", response_model=CreatedResponse)
def add_teacher(payload: TeacherCreateRequest, db: Session = Depends(get_db_session)):
    teacher = directory.create_teacher(db, name=payload.name, username=payload.username, phone=payload.phone)
    return CreatedResponse(id=teacher.id)


@router.post("/teachers/import", response_model=ImportResponse)
def import_teachers(file: UploadFile | None = File(None), db: Session = Depends(get_db_session)):
    return ImportResponse(imported=imports.import_teachers(db, file))


# --- students ---

@router.get("/students/all")
def get_students(db: Session = Depends(get_db_session)):
    return directory.list_students(db)


@router.post("/students", response_model=StudentCreateResponse)
def add_student(payload: StudentCreateRequest, db: Session = Depends(get_db_session)):
    student = directory.create_student(
        db,
        name=payload.name,
        username=payload.username,
        level_id=payload.level_id,
        group_id=payload.group_id,
        password=payload.password,
        sequential_registration=payload.sequential_registration,
    )
    return StudentCreateResponse(id=student.id, registration_number=student.registration_number)


@router.post("/students/import", response_model=ImportResponse)
def import_students(file: UploadFile | None = File(None), db: Session = Depends(get_db_session)):
    return ImportResponse(imported=imports.import_students(db, file))


# --- users ---

@router.put("/users/{user_id}", response_model=SuccessResponse)
def update_user(user_id: int, payload: UserUpdateRequest, db: Session = Depends(get_db_session)):
    directory.update_user(db, user_id, fields=payload.model_dump(exclude_unset=True))
    return SuccessResponse()


@router.delete("/users/{user_id}", response_model=SuccessResponse)
def delete_user(user_id: int, db: Session = Depends(get_db_session)):
    directory.delete_user(db, user_id)
    return SuccessResponse()


# --- levels ---

@router.get("/levels")
def get_levels(db: Session = Depends(get_db_session)):
    return directory.list_levels(db)


@router.post("/levels", response_model=CreatedResponse)
def add_level(payload: LevelRequest, db: Session = Depends(get_db_session)):
    return CreatedResponse(id=directory.create_level(db, name=payload.name).id)


@router.put("/levels/{level_id}", response_model=SuccessResponse)
def edit_level(level_id: int, payload: LevelRequest, db: Session = Depends(get_db_session)):
    directory.update_level(db, level_id, name=payload.name)
    return SuccessResponse()


@router.delete("/levels/{level_id}", response_model=SuccessResponse)
def remove_level(level_id: int, db: Session = Depends(get_db_session)):
    directory.delete_level(db, level_id)
    return SuccessResponse()


# --- groups ---

@router.get("/groups")
def get_groups(db: Session = Depends(get_db_session)):
    return directory.list_groups(db)


@router.post("/groups", response_model=CreatedResponse)
def add_group(payload: GroupRequest, db: Session = Depends(get_db_session)):
    return CreatedResponse(id=directory.create_group(db, name=payload.name, level_id=payload.level_id).id)


@router.put("/groups/{group_id}", response_model=SuccessResponse)
def edit_group(group_id: int, payload: GroupRequest, db: Session = Depends(get_db_session)):
    directory.update_group(db, group_id, name=payload.name, level_id=payload.level_id)
    return SuccessResponse()


@router.delete("/groups/{group_id}", response_model=SuccessResponse)
def remove_group(group_id: int, db: Session = Depends(get_db_session)):
    directory.delete_group(db, group_id)
    return SuccessResponse()


# --- subjects ---

@router.get("/subjects")
def get_subjects(db: Session = Depends(get_db_session)):
    return directory.list_subjects(db)


@router.post("/subjects", response_model=CreatedResponse)
def add_subject(payload: SubjectRequest, db: Session = Depends(get_db_session)):
    subject = directory.create_subject(db, name=payload.name, description=payload.description)
    return CreatedResponse(id=subject.id)


@router.put("/subjects/{subject_id}", response_model=SuccessResponse)
def edit_subject(subject_id: int, payload: SubjectRequest, db: Session = Depends(get_db_session)):
    directory.update_subject(db, subject_id, name=payload.name, description=payload.description)
    return SuccessResponse()


@router.delete("/subjects/{subject_id}", response_model=SuccessResponse)
def remove_subject(subject_id: int, db: Session = Depends(get_db_session)):
    directory.delete_subject(db, subject_id)
    return SuccessResponse()
