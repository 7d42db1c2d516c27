import logging

from fastapi import APIRouter, Depends, Request, Response, HTTPException
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..exceptions import ConflictError
from ..limiter import limiter
from ..models import User, UserRole
from ..schemas import LoginIn, RegisterIn, UserOut
from ..security import hash_password, verify_password, set_session, clear_session, require_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix=f"{settings.API_PREFIX}/auth", tags=["auth"])


@router.post("/register", response_model=UserOut, status_code=201)
@limiter.limit(settings.RATE_LIMIT_AUTH)
def register(request: Request, payload: RegisterIn, response: Response, db: Session = Depends(get_db)):
    if db.query(User).filter(User.email == payload.email).first():
        raise ConflictError("Email already registered")
    user = User(
        name=payload.name.strip(),
        email=payload.email,
        hashed_password=hash_password(payload.password),
        role=UserRole.CUSTOMER.value,
        phone=(payload.phone or "").strip() or None,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    set_session(response, user.id)
    logger.info("Registered user %s", user.id)
    return user


@router.post("/login", response_model=UserOut)
@limiter.limit(settings.RATE_LIMIT_AUTH)
def login(request: Request, payload: LoginIn, response: Response, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == payload.email.strip().lower()).first()
    if not user or not verify_password(payload.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    set_session(response, user.id)
    return user


@router.post("/logout")
def logout(response: Response):
    clear_session(response)
    return {"ok": True}


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(require_user)):
    return user
