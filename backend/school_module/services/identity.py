import logging
from datetime import datetime
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from ..config import settings
from ..mailer import send_password_reset
from ..models import PasswordReset, Subject, TeacherSubject, User, UserRole
from ..security import (
    create_access_token,
    generate_reset_token,
    hash_password,
    reset_token_expiration,
    verify_password,
)
from .common import avatar_for, commit_or_raise, user_to_dict

logger = logging.getLogger(__name__)


def _profile(db: Session, user: User) -> dict[str, Any]:
    profile = user_to_dict(user)
    if user.role == UserRole.TEACHER:
        names = (
            db.query(Subject.name)
            .join(TeacherSubject, TeacherSubject.subject_id == Subject.id)
            .filter(TeacherSubject.teacher_id == user.id)
            .order_by(Subject.id)
            .all()
        )
        profile["subjects"] = ", ".join(name for (name,) in names)
    elif user.role == UserRole.STUDENT:
        profile["level_name"] = user.level.name if user.level else None
        profile["group_name"] = user.group.name if user.group else None
    return profile


def login_user(db: Session, *, username: str, password: str, user_type: UserRole | None = None) -> tuple[dict, str]:
    user = db.query(User).filter(User.username == username.strip()).first()
    if not user:
        logger.info(f"Login failed: unknown username {username!r}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User not found")

    if user_type and user.role != UserRole.ADMIN and user.role != user_type:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Please choose the correct account type (teacher/student) on the home screen",
        )

    if not verify_password(password, user.password_hash):
        logger.info(f"Login failed: wrong password for user {user.id}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Incorrect password")

    db.query(User).filter(User.id == user.id).update(
        {User.login_count: User.login_count + 1, User.last_login: datetime.utcnow()},
        synchronize_session=False,
    )
    commit_or_raise(db)
    db.refresh(user)

    logger.info(f"User {user.id} ({user.role.value}) logged in, count={user.login_count}")
    token = create_access_token(subject=str(user.id), role=user.role.value)
    return _profile(db, user), token


def change_admin_credentials(
    db: Session,
    *,
    user_id: int,
    old_password: str,
    new_password: str | None = None,
    new_email: str | None = None,
) -> User:
    user = db.query(User).filter(User.id == user_id, User.role == UserRole.ADMIN).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if not verify_password(old_password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Old password is incorrect")

    if new_email:
        user.email = new_email.strip()
    if new_password:
        user.password_hash = hash_password(new_password)
    commit_or_raise(db)
    logger.info(f"Admin {user.id} updated credentials (password={'yes' if new_password else 'no'})")
    return user


def issue_password_reset(db: Session, *, email: str, base_url: str) -> str:
    user = db.query(User).filter(User.email == email.strip(), User.role == UserRole.ADMIN).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Email is not registered")

    token = generate_reset_token()
    db.add(PasswordReset(token=token, user_id=user.id, expires_at=reset_token_expiration()))
    commit_or_raise(db)

    link = f"{base_url.rstrip('/')}/admin?reset={token}"
    send_password_reset(user.email, link)
    logger.info(f"Password reset issued for admin {user.id}")
    return link


def redeem_password_reset(db: Session, *, token: str, new_password: str) -> None:
    reset = db.get(PasswordReset, token)
    if not reset or datetime.utcnow() > reset.expires_at:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired link")

    user = db.get(User, reset.user_id)
    if user:
        user.password_hash = hash_password(new_password)
    db.delete(reset)
    commit_or_raise(db)
    logger.info(f"Password reset redeemed for user {reset.user_id}")


def confirm_admin_password(db: Session, *, password: str, admin_id: int | None = None) -> User:
    """Step-up check before destructive admin actions."""
    query = db.query(User).filter(User.role == UserRole.ADMIN)
    if admin_id is not None:
        admin = query.filter(User.id == admin_id).first()
    else:
        admin = query.filter(User.username == settings.default_admin_username).first()
    if not admin or not verify_password(password, admin.password_hash):
        logger.warning(f"Step-up confirmation failed (admin_id={admin_id})")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Wrong password")
    return admin


def seed_default_admin(db: Session) -> None:
    admin = db.query(User).filter(User.username == settings.default_admin_username).first()
    if admin:
        admin.name = settings.default_admin_name
        db.commit()
        return

    db.add(
        User(
            name=settings.default_admin_name,
            username=settings.default_admin_username,
            password_hash=hash_password(settings.default_admin_password),
            email=settings.default_admin_email,
            role=UserRole.ADMIN,
            avatar=avatar_for(settings.default_admin_name),
        )
    )
    db.commit()
    logger.info("Admin account created.")
