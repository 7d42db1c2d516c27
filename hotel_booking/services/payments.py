import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..exceptions import ConflictError, PaymentProcessingError, ResourceNotFoundError, ValidationError
from ..models import Booking, BookingStatus, Payment, PaymentMethod, PaymentStatus
from .availability import ACTIVE_STATUSES
from .bookings import _confirm
from .lifecycle import apply_transition, refresh_room_status
from .payment_gateway import ChargeRequest, MockPaymentGateway, new_transaction_id
from .pricing import CENTS

logger = logging.getLogger(__name__)

# Refunds go through refund_payment(); everything else here mirrors gateway callbacks
CALLBACK_TRANSITIONS = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.COMPLETED, PaymentStatus.FAILED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.PENDING}),
}


def _money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENTS)


def get_payment(db: Session, payment_id: int) -> Payment:
    payment = db.get(Payment, payment_id)
    if not payment:
        raise ResourceNotFoundError("Payment", payment_id)
    return payment


def _ensure_transaction_id_free(db: Session, transaction_id: str, payment_id: int) -> None:
    clash = db.query(Payment.id).filter(Payment.transaction_id == transaction_id, Payment.id != payment_id).first()
    if clash:
        raise ConflictError(f"Transaction {transaction_id} is already recorded on payment {clash.id}")


def process_payment(
    db: Session,
    booking: Booking,
    gateway: MockPaymentGateway,
    *,
    amount: Decimal,
    method: PaymentMethod,
    currency: Optional[str] = None,
    card_number: Optional[str] = None,
) -> Payment:
    """
    Charge a pending booking through the gateway.

    On success the payment is completed and the booking confirmed. On a
    decline the payment is stored as failed, the booking stays pending and a
    PaymentProcessingError is raised. A failed payment is reused on retry.
    """
    if booking.status != BookingStatus.PENDING:
        raise ConflictError(
            f"Booking {booking.id} is {BookingStatus(booking.status).value}; only pending bookings can be paid"
        )
    existing = booking.payment
    if existing and existing.status in (PaymentStatus.COMPLETED, PaymentStatus.REFUNDED):
        raise ConflictError(f"Booking {booking.id} already has a {PaymentStatus(existing.status).value} payment")

    currency = (currency or settings.CURRENCY).upper()
    errors = []
    if currency != settings.CURRENCY:
        errors.append({"field": "currency", "message": f"Only {settings.CURRENCY} is accepted"})
    if _money(amount) != _money(booking.total_price):
        errors.append({"field": "amount", "message": f"Amount must equal the booking total ({_money(booking.total_price)})"})
    if errors:
        raise ValidationError("Invalid payment request", errors)

    try:
        payment = existing or Payment(booking=booking)
        payment.amount = _money(amount)
        payment.currency = currency
        payment.method = PaymentMethod(method)
        payment.status = PaymentStatus.PENDING
        payment.transaction_id = None
        payment.refund_reason = None
        db.add(payment)
        db.flush()

        result = gateway.charge(
            ChargeRequest(
                amount=payment.amount,
                currency=currency,
                method=payment.method,
                reference=f"booking-{booking.id}",
                card_number=card_number,
            )
        )
        if result.success:
            payment.status = PaymentStatus.COMPLETED
            payment.transaction_id = result.transaction_id
            _confirm(db, booking)
            db.commit()
            logger.info("Payment %s completed; booking %s confirmed", payment.id, booking.id)
            db.refresh(payment)
            return payment

        payment.status = PaymentStatus.FAILED
        db.commit()
        logger.warning("Payment %s for booking %s failed: %s", payment.id, booking.id, result.message)
    except Exception:
        db.rollback()
        raise
    raise PaymentProcessingError(
        f"Payment for booking {booking.id} failed: {result.message}",
        {"paymentId": payment.id, "status": PaymentStatus.FAILED.value},
    )


def refund_payment(db: Session, payment: Payment, gateway: MockPaymentGateway, reason: Optional[str] = None) -> Payment:
    """Refund a completed payment and cancel its booking if still active."""
    if payment.status != PaymentStatus.COMPLETED:
        raise ValidationError(
            "Only completed payments can be refunded",
            [{"field": "status", "message": f"Payment is {PaymentStatus(payment.status).value}"}],
        )
    reason = (reason or "").strip() or "Refund requested"
    try:
        result = gateway.refund(payment.transaction_id, payment.amount)
        if not result.success:
            raise PaymentProcessingError(f"Refund for payment {payment.id} failed: {result.message}")
        payment.status = PaymentStatus.REFUNDED
        payment.refund_reason = reason
        booking = payment.booking
        if booking.status in ACTIVE_STATUSES:
            apply_transition(booking, BookingStatus.CANCELLED, f"Refunded: {reason}")
            refresh_room_status(db, booking.room)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(payment)
    logger.info("Payment %s refunded (%s)", payment.id, reason)
    return payment


def update_payment_status(
    db: Session,
    payment: Payment,
    status: PaymentStatus,
    transaction_id: Optional[str] = None,
) -> Payment:
    """
    Apply a gateway callback. A completed payment always ends up with a
    transaction id: the one reported by the gateway, or a generated one, so
    it can be refunded later.
    """
    status = PaymentStatus(status)
    current = PaymentStatus(payment.status)
    if status == current:
        return payment
    if status not in CALLBACK_TRANSITIONS.get(current, frozenset()):
        hint = " Use the refund endpoint instead." if status == PaymentStatus.REFUNDED else ""
        raise ValidationError(
            f"Cannot change payment status from {current.value} to {status.value}.{hint}",
            [{"field": "status", "message": f"Transition {current.value} -> {status.value} is not allowed"}],
        )
    transaction_id = (transaction_id or "").strip() or None
    if transaction_id:
        _ensure_transaction_id_free(db, transaction_id, payment.id)
    try:
        payment.status = status
        if status == PaymentStatus.COMPLETED:
            payment.transaction_id = transaction_id or payment.transaction_id or new_transaction_id()
        elif transaction_id:
            payment.transaction_id = transaction_id
        booking = payment.booking
        if status == PaymentStatus.COMPLETED and booking.status != BookingStatus.CONFIRMED:
            # a callback cannot revive a cancelled or completed stay; the lifecycle rejects it
            _confirm(db, booking)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(payment)
    logger.info("Payment %s: %s -> %s", payment.id, current.value, status.value)
    return payment


def update_payment(
    db: Session,
    payment: Payment,
    *,
    method: Optional[PaymentMethod] = None,
    transaction_id: Optional[str] = None,
    amount: Optional[Decimal] = None,
) -> Payment:
    if amount is not None and payment.status in (PaymentStatus.COMPLETED, PaymentStatus.REFUNDED):
        raise ValidationError(
            "The amount of a settled payment cannot change",
            [{"field": "amount", "message": f"Payment is {PaymentStatus(payment.status).value}"}],
        )
    if method is not None:
        payment.method = PaymentMethod(method)
    if transaction_id is not None:
        transaction_id = transaction_id.strip() or None
        if transaction_id:
            _ensure_transaction_id_free(db, transaction_id, payment.id)
        payment.transaction_id = transaction_id
    if amount is not None:
        payment.amount = _money(amount)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(payment)
    return payment


def delete_payment(db: Session, payment: Payment) -> None:
    if payment.status == PaymentStatus.COMPLETED:
        raise ConflictError(f"Payment {payment.id} is completed; refund it instead of deleting")
    try:
        db.delete(payment)
        db.commit()
    except Exception:
        db.rollback()
        raise
