from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from ..database import get_db_session
from ..schemas import (
    BroadcastResponse,
    BulkDeleteRequest,
    CountResponse,
    MessageDeleteRequest,
    ResetStatsRequest,
    SuccessResponse,
)
from ..services import admin, directory, messaging

router = APIRouter(prefix="/api", tags=["Admin"])


@router.post("/admin/broadcast", response_model=BroadcastResponse)
def broadcast(
    sender_id: int = Form(...),
    recipients: str = Form("[]"),
    message_text: str | None = Form(None),
    file: UploadFile | None = File(None),
    db: Session = Depends(get_db_session),
):
    count = messaging.broadcast(
        db,
        sender_id=sender_id,
        recipients=messaging.parse_recipients(recipients),
        message_text=message_text,
        upload=file,
    )
    return BroadcastResponse(recipients=count)


@router.post("/admin/message/delete", response_model=SuccessResponse)
def delete_message(payload: MessageDeleteRequest, db: Session = Depends(get_db_session)):
    messaging.delete_message(db, message_id=payload.id, password=payload.password, admin_id=payload.admin_id)
    return SuccessResponse()


@router.get("/admin/stats")
def get_stats(db: Session = Depends(get_db_session)):
    return admin.dashboard_stats(db)


@router.get("/admin/usage-stats")
def get_usage_stats(db: Session = Depends(get_db_session)):
    return admin.usage_stats(db)


@router.post("/admin/reset-stats", response_model=SuccessResponse)
def reset_usage_stats(payload: ResetStatsRequest, db: Session = Depends(get_db_session)):
    admin.reset_stats(db, code=payload.code)
    return SuccessResponse()


@router.get("/admin/conversations")
def get_conversations(db: Session = Depends(get_db_session)):
    return admin.conversations(db)


@router.get("/admin/inbox-summary")
def get_inbox_summary(admin_id: int | None = None, db: Session = Depends(get_db_session)):
    return admin.inbox_summary(db, admin_id)


@router.post("/bulk-delete", response_model=CountResponse)
def bulk_delete(payload: BulkDeleteRequest, db: Session = Depends(get_db_session)):
    return CountResponse(count=directory.bulk_delete(db, ids=payload.ids, entity_type=payload.type))
