from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import FileResponse, PlainTextResponse
from sqlalchemy.orm import Session

from ..database import get_db_session
from ..schemas import (
    ChatGroupDeleteRequest,
    ChatGroupRequest,
    ChatGroupSettingsRequest,
    CountResponse,
    CreatedResponse,
    MarkReadRequest,
    SendMessageRequest,
    SuccessResponse,
)
from ..services import chat_groups, messaging
from ..storage import GENERAL, resolve_stored_file

router = APIRouter(prefix="/api", tags=["Chat"])


def serve_stored_file(category: str, filename: str):
    path = resolve_stored_file(category, filename)
    if not path:
        return PlainTextResponse("Not found", status_code=404)
    return FileResponse(path)


# --- contacts & direct conversations ---

@router.get("/teacher/{teacher_id}/linked-students")
def linked_students(teacher_id: int, db: Session = Depends(get_db_session)):
    return messaging.teacher_contacts(db, teacher_id)


@router.get("/student/{student_id}/linked-teachers")
def linked_teachers(student_id: int, db: Session = Depends(get_db_session)):
    return messaging.student_contacts(db, student_id)


@router.get("/conversation/{user1_id}/{user2_id}")
def get_conversation(user1_id: int, user2_id: int, db: Session = Depends(get_db_session)):
    return messaging.conversation(db, user1_id, user2_id)


@router.post("/conversation/mark-read", response_model=CountResponse)
def mark_read(payload: MarkReadRequest, db: Session = Depends(get_db_session)):
    updated = messaging.mark_read(
        db,
        sender_id=payload.sender_id,
        reader_id=payload.reader_id,
        group_id=payload.group_id,
    )
    return CountResponse(count=updated)


@router.post("/message/send", response_model=CreatedResponse)
def send_message(payload: SendMessageRequest, db: Session = Depends(get_db_session)):
    message = messaging.send_text(
        db,
        sender_id=payload.sender_id,
        receiver_id=payload.receiver_id,
        group_id=payload.group_id,
        subject_id=payload.subject_id,
        message_text=payload.message_text,
    )
    return CreatedResponse(id=message.id)


@router.post("/message/upload", response_model=CreatedResponse)
def upload_message_file(
    sender_id: int = Form(...),
    receiver_id: int | None = Form(None),
    group_id: int | None = Form(None),
    subject_id: int | None = Form(None),
    file: UploadFile | None = File(None),
    db: Session = Depends(get_db_session),
):
    message = messaging.send_file(
        db,
        sender_id=sender_id,
        upload=file,
        receiver_id=receiver_id,
        group_id=group_id,
        subject_id=subject_id,
    )
    return CreatedResponse(id=message.id)


@router.get("/chat/files/{filename}")
def chat_file(filename: str):
    return serve_stored_file(GENERAL, filename)


# --- chat groups ---

@router.get("/chat-groups")
def get_chat_groups(db: Session = Depends(get_db_session)):
    return chat_groups.list_chat_groups(db)


@router.post("/chat-groups", response_model=CreatedResponse)
def add_chat_group(payload: ChatGroupRequest, db: Session = Depends(get_db_session)):
    group = chat_groups.create_chat_group(
        db,
        name=payload.name,
        allow_private=payload.allow_private,
        only_admins_can_send=payload.only_admins_can_send,
        members=payload.members,
    )
    return CreatedResponse(id=group.id)


@router.post("/chat-groups/delete", response_model=SuccessResponse)
def remove_chat_group(payload: ChatGroupDeleteRequest, db: Session = Depends(get_db_session)):
    chat_groups.delete_chat_group(db, group_id=payload.id, password=payload.password, admin_id=payload.admin_id)
    return SuccessResponse()


@router.get("/chat-groups/{group_id}/details")
def get_chat_group_details(group_id: int, db: Session = Depends(get_db_session)):
    return chat_groups.group_details(db, group_id)


@router.get("/chat-groups/{group_id}/members")
def get_chat_group_members(group_id: int, db: Session = Depends(get_db_session)):
    return chat_groups.list_members(db, group_id)


@router.put("/chat-groups/{group_id}", response_model=SuccessResponse)
def edit_chat_group(group_id: int, payload: ChatGroupRequest, db: Session = Depends(get_db_session)):
    chat_groups.update_chat_group(
        db,
        group_id,
        name=payload.name,
        allow_private=payload.allow_private,
        only_admins_can_send=payload.only_admins_can_send,
        members=payload.members,
    )
    return SuccessResponse()


@router.post("/chat-groups/{group_id}/settings", response_model=SuccessResponse)
def edit_chat_group_settings(group_id: int, payload: ChatGroupSettingsRequest, db: Session = Depends(get_db_session)):
    chat_groups.update_settings(
        db,
        group_id,
        user_id=payload.user_id,
        only_admins_can_send=payload.only_admins_can_send,
    )
    return SuccessResponse()


@router.get("/chat-groups/{group_id}/messages")
def get_chat_group_messages(group_id: int, db: Session = Depends(get_db_session)):
    return chat_groups.group_messages(db, group_id)


@router.get("/user/{user_id}/chat-groups")
def get_user_chat_groups(user_id: int, db: Session = Depends(get_db_session)):
    return chat_groups.user_chat_groups(db, user_id)
