import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..models import Booking, BookingStatus, User
from ..schemas import AutoCheckoutOut, BookingCreateIn, BookingOut, BookingUpdateIn, CancelIn
from ..security import ensure_self_or_admin, require_admin, require_user
from ..services import bookings as booking_service
from ..services.auto_checkout import run_auto_checkout
from ..services.payment_gateway import MockPaymentGateway, get_payment_gateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix=f"{settings.API_PREFIX}/bookings", tags=["bookings"])


def _visible_booking(db: Session, booking_id: int, user: User) -> Booking:
    booking = booking_service.get_booking(db, booking_id)
    ensure_self_or_admin(user, booking.user_id, "booking")
    return booking


@router.get("", response_model=List[BookingOut])
def list_bookings(
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
    status: Optional[BookingStatus] = None,
    room_id: Optional[int] = Query(None, alias="roomId"),
    user_id: Optional[int] = Query(None, alias="userId"),
):
    # Complete elapsed stays before listing so statuses are up to date
    try:
        run_auto_checkout(db)
    except SQLAlchemyError:
        logger.exception("Auto-checkout failed; listing current statuses")
        db.rollback()
    q = db.query(Booking)
    if not user.is_admin:
        q = q.filter(Booking.user_id == user.id)
    elif user_id:
        q = q.filter(Booking.user_id == user_id)
    if status:
        q = q.filter(Booking.status == BookingStatus(status))
    if room_id:
        q = q.filter(Booking.room_id == room_id)
    return q.order_by(Booking.check_in_date.desc(), Booking.id.desc()).all()


@router.post("/complete-elapsed", response_model=AutoCheckoutOut)
def complete_elapsed(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return AutoCheckoutOut(completed=run_auto_checkout(db))


@router.get("/{booking_id}", response_model=BookingOut)
def get_booking(booking_id: int, db: Session = Depends(get_db), user: User = Depends(require_user)):
    return _visible_booking(db, booking_id, user)


@router.post("", response_model=BookingOut, status_code=201)
def create_booking(payload: BookingCreateIn, db: Session = Depends(get_db), user: User = Depends(require_user)):
    if not user.is_admin and payload.total_price is not None:
        raise HTTPException(status_code=403, detail="Only admins can override the price")
    if not user.is_admin and payload.user_id not in (None, user.id):
        raise HTTPException(status_code=403, detail="Cannot book on behalf of another user")
    return booking_service.create_booking(
        db,
        user_id=payload.user_id or user.id,
        room_id=payload.room_id,
        check_in=payload.check_in_date,
        check_out=payload.check_out_date,
        guest_count=payload.guest_count,
        special_requests=payload.special_requests,
        price_override=payload.total_price,
    )


@router.put("/{booking_id}", response_model=BookingOut)
@router.patch("/{booking_id}", response_model=BookingOut)
def update_booking(
    booking_id: int,
    payload: BookingUpdateIn,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
    gateway: MockPaymentGateway = Depends(get_payment_gateway),
):
    booking = _visible_booking(db, booking_id, user)
    if not user.is_admin:
        if payload.total_price is not None:
            raise HTTPException(status_code=403, detail="Only admins can override the price")
        if payload.status is not None and BookingStatus(payload.status) not in (BookingStatus.CANCELLED, booking.status):
            raise HTTPException(status_code=403, detail="Guests can only cancel their bookings")
    return booking_service.update_booking(
        db,
        booking,
        gateway,
        by_admin=user.is_admin,
        room_id=payload.room_id,
        check_in=payload.check_in_date,
        check_out=payload.check_out_date,
        guest_count=payload.guest_count,
        special_requests=payload.special_requests,
        price_override=payload.total_price,
        status=payload.status,
        cancellation_reason=payload.cancellation_reason,
    )


@router.delete("/{booking_id}", response_model=BookingOut)
def delete_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
    gateway: MockPaymentGateway = Depends(get_payment_gateway),
):
    """Bookings are never removed; deleting one cancels it."""
    booking = _visible_booking(db, booking_id, user)
    return booking_service.cancel_booking(db, booking, gateway, by_admin=user.is_admin)


@router.post("/{booking_id}/cancel", response_model=BookingOut)
def cancel_booking(
    booking_id: int,
    payload: Optional[CancelIn] = Body(None),
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
    gateway: MockPaymentGateway = Depends(get_payment_gateway),
):
    booking = _visible_booking(db, booking_id, user)
    reason = payload.reason if payload else None
    booking = booking_service.cancel_booking(db, booking, gateway, reason=reason, by_admin=user.is_admin)
    logger.info("Booking %s cancelled by user %s", booking.id, user.id)
    return booking


@router.post("/{booking_id}/complete", response_model=BookingOut)
def complete_booking(booking_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    booking = booking_service.get_booking(db, booking_id)
    return booking_service.complete_booking(db, booking)
