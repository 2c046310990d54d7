import logging
from datetime import date, datetime

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db_session
from .models import User
from .security import AuthError, decode_access_token

logger = logging.getLogger(__name__)

LICENSE_NOTICE = """
<div style="font-family:sans-serif;text-align:center;padding:50px">
    <h1>The trial version has expired</h1>
    <p>Please contact the developer to activate the full version.</p>
    <p>Code: EXP-OVER</p>
</div>
"""


def _parse_token(auth_header: str | None) -> str:
    if not auth_header:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing Authorization header")
    parts = auth_header.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid auth scheme")
    return parts[1].strip()


def get_current_user(
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> User:
    token = _parse_token(authorization)
    try:
        payload = decode_access_token(token)
    except AuthError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload") from exc

    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid user")
    return user


def license_expired(today: date | None = None) -> bool:
    expiry = datetime.strptime(settings.license_expiry, "%Y-%m-%d").date()
    return (today or date.today()) > expiry


async def license_gate(request: Request, call_next):
    if license_expired():
        logger.warning(f"License expired on {settings.license_expiry}, refusing {request.url.path}")
        return HTMLResponse(content=LICENSE_NOTICE, status_code=status.HTTP_402_PAYMENT_REQUIRED)
    return await call_next(request)
