"""
Session-cookie authentication.

The cookie holds a signed, timestamped ``{"uid": ...}`` payload; tokens older
than SESSION_MAX_AGE_DAYS are rejected server-side even if the browser kept
the cookie.
"""
from typing import Optional

from fastapi import Depends, HTTPException, Request, Response
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from .config import settings
from .db import get_db
from .models import User, UserRole

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
session_signer = URLSafeTimedSerializer(settings.SECRET_KEY, salt="hotel-booking-session")

SESSION_MAX_AGE_SECONDS = settings.SESSION_MAX_AGE_DAYS * 24 * 60 * 60


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def set_session(response: Response, user_id: int) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=session_signer.dumps({"uid": user_id}),
        max_age=SESSION_MAX_AGE_SECONDS,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.ENVIRONMENT == "production",
    )


def clear_session(response: Response) -> None:
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")


def get_current_user_id(request: Request) -> Optional[int]:
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not token:
        return None
    try:
        payload = session_signer.loads(token, max_age=SESSION_MAX_AGE_SECONDS)
    except (SignatureExpired, BadSignature):
        return None
    uid = payload.get("uid") if isinstance(payload, dict) else None
    return uid if isinstance(uid, int) else None


def get_optional_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    user_id = get_current_user_id(request)
    return db.get(User, user_id) if user_id else None


def require_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    """401 unless the request carries a valid session for an existing account."""
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def require_role(*roles: UserRole):
    allowed = {UserRole(r).value for r in roles}

    def dependency(user: User = Depends(require_user)) -> User:
        if user.role not in allowed:
            raise HTTPException(status_code=403, detail="Insufficient privileges")
        return user

    return dependency


require_admin = require_role(UserRole.ADMIN)


def ensure_self_or_admin(user: User, owner_id: int, resource: str = "resource") -> None:
    if user.id != owner_id and not user.is_admin:
        raise HTTPException(status_code=403, detail=f"Not allowed to access this {resource}")
