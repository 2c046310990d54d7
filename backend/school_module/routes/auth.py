from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..database import get_db_session
from ..middleware import get_current_user
from ..models import User
from ..schemas import (
    ChangeCredentialsRequest,
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    LoginRequest,
    LoginResponse,
    ResetPasswordRequest,
    SuccessResponse,
    UserOut,
)
from ..services.identity import (
    change_admin_credentials,
    issue_password_reset,
    login_user,
    redeem_password_reset,
)

router = APIRouter(prefix="/api", tags=["Auth"])


@router.post("/login", response_model=LoginResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db_session)):
    profile, token = login_user(
        db,
        username=payload.username,
        password=payload.password,
        user_type=payload.user_type,
    )
    return LoginResponse(user=profile, access_token=token)


@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(get_current_user)):
    return UserOut(id=current_user.id, username=current_user.username, name=current_user.name, role=current_user.role)


@router.post("/admin/change-credentials", response_model=SuccessResponse)
def change_credentials(payload: ChangeCredentialsRequest, db: Session = Depends(get_db_session)):
    change_admin_credentials(
        db,
        user_id=payload.id,
        old_password=payload.old_password,
        new_password=payload.new_password,
        new_email=payload.new_email,
    )
    return SuccessResponse()


@router.post("/auth/forgot-password", response_model=ForgotPasswordResponse)
def forgot_password(payload: ForgotPasswordRequest, request: Request, db: Session = Depends(get_db_session)):
    link = issue_password_reset(db, email=payload.email, base_url=str(request.base_url))
    return ForgotPasswordResponse(message="A reset link has been sent", link=link)


@router.post("/auth/reset-password", response_model=SuccessResponse)
def reset_password(payload: ResetPasswordRequest, db: Session = Depends(get_db_session)):
    redeem_password_reset(db, token=payload.token, new_password=payload.new_password)
    return SuccessResponse()
