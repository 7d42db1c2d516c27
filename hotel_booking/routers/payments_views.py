import logging
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Response
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..models import Payment, PaymentStatus, User
from ..schemas import PaymentCreateIn, PaymentOut, PaymentStatusIn, PaymentUpdateIn, RefundIn
from ..security import ensure_self_or_admin, require_admin, require_user
from ..services import payments as payment_service
from ..services.bookings import get_booking
from ..services.mail import send_booking_confirmation_email
from ..services.payment_gateway import MockPaymentGateway, get_payment_gateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix=f"{settings.API_PREFIX}/payments", tags=["payments"])


@router.get("", response_model=List[PaymentOut])
def list_payments(db: Session = Depends(get_db), admin: User = Depends(require_admin), status: Optional[PaymentStatus] = None):
    q = db.query(Payment)
    if status:
        q = q.filter(Payment.status == PaymentStatus(status))
    return q.order_by(Payment.id.desc()).all()


@router.get("/booking/{booking_id}", response_model=List[PaymentOut])
def payments_for_booking(booking_id: int, db: Session = Depends(get_db), user: User = Depends(require_user)):
    booking = get_booking(db, booking_id)
    ensure_self_or_admin(user, booking.user_id, "booking")
    return [booking.payment] if booking.payment else []


@router.get("/{payment_id}", response_model=PaymentOut)
def get_payment(payment_id: int, db: Session = Depends(get_db), user: User = Depends(require_user)):
    payment = payment_service.get_payment(db, payment_id)
    ensure_self_or_admin(user, payment.booking.user_id, "payment")
    return payment


@router.post("", response_model=PaymentOut, status_code=201)
def create_payment(
    payload: PaymentCreateIn,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
    gateway: MockPaymentGateway = Depends(get_payment_gateway),
):
    booking = get_booking(db, payload.booking_id)
    ensure_self_or_admin(user, booking.user_id, "booking")
    payment = payment_service.process_payment(
        db,
        booking,
        gateway,
        amount=payload.amount,
        method=payload.method,
        currency=payload.currency,
        card_number=payload.card_number,
    )
    guest = booking.user
    background_tasks.add_task(
        send_booking_confirmation_email,
        guest.email,
        guest.name,
        booking.id,
        booking.room.room_number,
        booking.check_in_date.isoformat(),
        booking.check_out_date.isoformat(),
        f"{payment.amount:.2f}",
    )
    return payment


@router.put("/{payment_id}", response_model=PaymentOut)
@router.patch("/{payment_id}", response_model=PaymentOut)
def update_payment(payment_id: int, payload: PaymentUpdateIn, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    payment = payment_service.get_payment(db, payment_id)
    return payment_service.update_payment(
        db,
        payment,
        method=payload.method,
        transaction_id=payload.transaction_id,
        amount=payload.amount,
    )


@router.patch("/{payment_id}/status", response_model=PaymentOut)
def update_payment_status(payment_id: int, payload: PaymentStatusIn, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    payment = payment_service.get_payment(db, payment_id)
    return payment_service.update_payment_status(db, payment, payload.status, transaction_id=payload.transaction_id)


@router.delete("/{payment_id}", status_code=204)
def delete_payment(payment_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    payment = payment_service.get_payment(db, payment_id)
    payment_service.delete_payment(db, payment)
    logger.info("Payment %s deleted by admin %s", payment_id, admin.id)
    return Response(status_code=204)


@router.post("/{payment_id}/refund", response_model=PaymentOut)
def refund_payment(
    payment_id: int,
    payload: Optional[RefundIn] = Body(None),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
    gateway: MockPaymentGateway = Depends(get_payment_gateway),
):
    payment = payment_service.get_payment(db, payment_id)
    return payment_service.refund_payment(db, payment, gateway, reason=payload.reason if payload else None)
