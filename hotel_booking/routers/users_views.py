import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..exceptions import ConflictError, ResourceNotFoundError
from ..models import User, UserRole
from ..schemas import UserCreateIn, UserOut, UserUpdateIn
from ..security import ensure_self_or_admin, hash_password, require_admin, require_user
from ..services.lifecycle import refresh_room_status

logger = logging.getLogger(__name__)

router = APIRouter(prefix=f"{settings.API_PREFIX}/users", tags=["users"])


def _get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise ResourceNotFoundError("User", user_id)
    return user


def _ensure_email_free(db: Session, email: str, exclude_id: Optional[int] = None) -> None:
    q = db.query(User).filter(User.email == email)
    if exclude_id is not None:
        q = q.filter(User.id != exclude_id)
    if q.first():
        raise ConflictError("Email already registered")


@router.get("", response_model=List[UserOut])
def list_users(db: Session = Depends(get_db), admin: User = Depends(require_admin), role: Optional[UserRole] = None):
    q = db.query(User)
    if role:
        q = q.filter(User.role == UserRole(role).value)
    return q.order_by(User.id.asc()).all()


@router.get("/{user_id}", response_model=UserOut)
def get_user(user_id: int, db: Session = Depends(get_db), current: User = Depends(require_user)):
    ensure_self_or_admin(current, user_id, "user")
    return _get_user(db, user_id)


@router.post("", response_model=UserOut, status_code=201)
def create_user(payload: UserCreateIn, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    _ensure_email_free(db, payload.email)
    user = User(
        name=payload.name.strip(),
        email=payload.email,
        hashed_password=hash_password(payload.password),
        role=UserRole(payload.role).value,
        phone=(payload.phone or "").strip() or None,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Admin %s created user %s (%s)", admin.id, user.id, user.role)
    return user


@router.put("/{user_id}", response_model=UserOut)
@router.patch("/{user_id}", response_model=UserOut)
def update_user(user_id: int, payload: UserUpdateIn, db: Session = Depends(get_db), current: User = Depends(require_user)):
    ensure_self_or_admin(current, user_id, "user")
    user = _get_user(db, user_id)
    if payload.role is not None and UserRole(payload.role).value != user.role:
        if not current.is_admin:
            raise HTTPException(status_code=403, detail="Only admins can change roles")
        user.role = UserRole(payload.role).value
    if payload.email is not None and payload.email != user.email:
        _ensure_email_free(db, payload.email, exclude_id=user.id)
        user.email = payload.email
    if payload.name is not None:
        user.name = payload.name.strip()
    if payload.phone is not None:
        user.phone = payload.phone.strip() or None
    if payload.password is not None:
        user.hashed_password = hash_password(payload.password)
    db.commit()
    db.refresh(user)
    return user


@router.delete("/{user_id}", status_code=204)
def delete_user(user_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    user = _get_user(db, user_id)
    if user.id == admin.id:
        raise ConflictError("Admins cannot delete their own account")
    rooms = {b.room_id: b.room for b in user.bookings}
    # bookings and their payments go with the user
    db.delete(user)
    for room in rooms.values():
        refresh_room_status(db, room)
    db.commit()
    logger.info("Admin %s deleted user %s", admin.id, user_id)
    return Response(status_code=204)
