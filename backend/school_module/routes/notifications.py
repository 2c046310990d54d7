from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db_session
from ..schemas import CountResponse, SuccessResponse
from ..services import notifications

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("/{user_id}")
def get_notifications(user_id: int, db: Session = Depends(get_db_session)):
    return notifications.list_notifications(db, user_id)


@router.post("/read/{notification_id}", response_model=SuccessResponse)
def read_notification(notification_id: int, db: Session = Depends(get_db_session)):
    notifications.mark_notification_read(db, notification_id)
    return SuccessResponse()


@router.post("/clear/{user_id}", response_model=CountResponse)
def clear_notifications(user_id: int, db: Session = Depends(get_db_session)):
    return CountResponse(count=notifications.clear_notifications(db, user_id))
