import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..exceptions import (
    BookingValidationError,
    PaymentProcessingError,
    ResourceNotFoundError,
    RoomUnavailableError,
)
from ..models import AvailabilityStatus, Booking, BookingStatus, PaymentStatus, Room, User
from .availability import find_conflicting_bookings, validate_stay
from .lifecycle import apply_transition, ensure_transition, refresh_room_status
from .payment_gateway import MockPaymentGateway
from .pricing import calculate_total_price

logger = logging.getLogger(__name__)


def get_booking(db: Session, booking_id: int) -> Booking:
    booking = db.get(Booking, booking_id)
    if not booking:
        raise ResourceNotFoundError("Booking", booking_id)
    return booking


def lock_room(db: Session, room_id: int) -> Room:
    """
    Load a room holding a row lock until the transaction ends, so concurrent
    check-then-insert sequences for the same room run one after another.
    SQLite ignores FOR UPDATE but already serialises writers.
    """
    room = db.query(Room).filter(Room.id == room_id).with_for_update().first()
    if not room:
        raise ResourceNotFoundError("Room", room_id)
    return room


def _ensure_room_can_host(
    db: Session,
    room: Room,
    check_in: date,
    check_out: date,
    guest_count: int,
    exclude_booking_id: Optional[int] = None,
) -> None:
    if room.availability_status == AvailabilityStatus.MAINTENANCE:
        raise RoomUnavailableError(f"Room {room.room_number} is under maintenance")
    if guest_count < 1:
        raise BookingValidationError(
            "At least one guest is required",
            [{"field": "guestCount", "message": "Guest count must be at least 1"}],
        )
    if guest_count > room.capacity:
        raise BookingValidationError(
            f"Room {room.room_number} holds {room.capacity} guests, requested {guest_count}",
            [{"field": "guestCount", "message": f"Must not exceed room capacity ({room.capacity})"}],
        )
    conflicts = find_conflicting_bookings(db, room.id, check_in, check_out, exclude_booking_id)
    if conflicts:
        raise RoomUnavailableError(
            f"Room {room.room_number} is already booked for the requested dates",
            [
                {"checkInDate": b.check_in_date.isoformat(), "checkOutDate": b.check_out_date.isoformat()}
                for b in conflicts
            ],
        )


def create_booking(
    db: Session,
    *,
    user_id: int,
    room_id: int,
    check_in: date,
    check_out: date,
    guest_count: int = 1,
    special_requests: Optional[str] = None,
    price_override: Optional[Decimal] = None,
) -> Booking:
    """Reserve a room. The availability check and the insert share one transaction."""
    validate_stay(check_in, check_out)
    if not db.get(User, user_id):
        raise ResourceNotFoundError("User", user_id)
    try:
        room = lock_room(db, room_id)
        _ensure_room_can_host(db, room, check_in, check_out, guest_count)
        booking = Booking(
            user_id=user_id,
            room_id=room.id,
            check_in_date=check_in,
            check_out_date=check_out,
            guest_count=guest_count,
            total_price=calculate_total_price(room.price_per_night, check_in, check_out, price_override),
            status=BookingStatus.PENDING,
            special_requests=(special_requests or "").strip() or None,
        )
        db.add(booking)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(booking)
    logger.info(
        "Booking %s created: room %s, %s -> %s, total %s",
        booking.id, room.room_number, check_in, check_out, booking.total_price,
    )
    return booking


def refund_due(booking: Booking, by_admin: bool, today: Optional[date] = None) -> bool:
    """Admins always refund; guests only when cancelling early enough."""
    if by_admin:
        return True
    today = today or date.today()
    return (booking.check_in_date - today).days >= settings.FREE_CANCELLATION_DAYS


def _confirm(db: Session, booking: Booking) -> None:
    apply_transition(booking, BookingStatus.CONFIRMED)
    refresh_room_status(db, booking.room)


def _cancel(
    db: Session,
    booking: Booking,
    reason: Optional[str],
    by_admin: bool,
    gateway: MockPaymentGateway,
    today: Optional[date] = None,
) -> None:
    ensure_transition(booking.status, BookingStatus.CANCELLED)
    payment = booking.payment
    if payment and payment.status == PaymentStatus.COMPLETED and refund_due(booking, by_admin, today):
        result = gateway.refund(payment.transaction_id, payment.amount)
        if not result.success:
            raise PaymentProcessingError(f"Refund for booking {booking.id} failed: {result.message}")
        payment.status = PaymentStatus.REFUNDED
        payment.refund_reason = (reason or "").strip() or "Booking cancelled"
        logger.info("Payment %s refunded on cancellation of booking %s", payment.id, booking.id)
    apply_transition(booking, BookingStatus.CANCELLED, reason)
    refresh_room_status(db, booking.room, today)


def _complete(db: Session, booking: Booking, today: Optional[date] = None) -> None:
    today = today or date.today()
    ensure_transition(booking.status, BookingStatus.COMPLETED)
    if booking.check_out_date > today:
        raise BookingValidationError(
            "Booking cannot be completed before its check-out date",
            [{"field": "checkOutDate", "message": f"Check-out is on {booking.check_out_date.isoformat()}"}],
        )
    apply_transition(booking, BookingStatus.COMPLETED)
    refresh_room_status(db, booking.room, today)


def confirm_booking(db: Session, booking: Booking) -> Booking:
    try:
        _confirm(db, booking)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(booking)
    return booking


def cancel_booking(
    db: Session,
    booking: Booking,
    gateway: MockPaymentGateway,
    reason: Optional[str] = None,
    by_admin: bool = False,
    today: Optional[date] = None,
) -> Booking:
    """Soft-cancel a booking, refunding its payment when the policy allows."""
    try:
        _cancel(db, booking, reason, by_admin, gateway, today)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(booking)
    return booking


def complete_booking(db: Session, booking: Booking, today: Optional[date] = None) -> Booking:
    try:
        _complete(db, booking, today)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(booking)
    return booking


def update_booking(
    db: Session,
    booking: Booking,
    gateway: MockPaymentGateway,
    *,
    by_admin: bool = False,
    room_id: Optional[int] = None,
    check_in: Optional[date] = None,
    check_out: Optional[date] = None,
    guest_count: Optional[int] = None,
    special_requests: Optional[str] = None,
    price_override: Optional[Decimal] = None,
    status: Optional[BookingStatus] = None,
    cancellation_reason: Optional[str] = None,
) -> Booking:
    """
    Apply a partial update. Stay details (room, dates, guests, price) may only
    change while the booking is pending; status changes follow the lifecycle.
    """
    reschedule = any(v is not None for v in (room_id, check_in, check_out, guest_count, price_override))
    try:
        if reschedule:
            if booking.status != BookingStatus.PENDING:
                raise BookingValidationError(
                    "Only pending bookings can be changed; cancel and book again instead",
                    [{"field": "status", "message": f"Booking is {BookingStatus(booking.status).value}"}],
                )
            new_in = check_in if check_in is not None else booking.check_in_date
            new_out = check_out if check_out is not None else booking.check_out_date
            new_guests = guest_count if guest_count is not None else booking.guest_count
            validate_stay(new_in, new_out)
            room = lock_room(db, room_id if room_id is not None else booking.room_id)
            _ensure_room_can_host(db, room, new_in, new_out, new_guests, exclude_booking_id=booking.id)
            stay_changed = (room.id, new_in, new_out) != (booking.room_id, booking.check_in_date, booking.check_out_date)
            booking.room = room
            booking.check_in_date = new_in
            booking.check_out_date = new_out
            booking.guest_count = new_guests
            # a guest-count-only change keeps the current total, including an admin override
            if price_override is not None or stay_changed:
                booking.total_price = calculate_total_price(room.price_per_night, new_in, new_out, price_override)

        if special_requests is not None:
            booking.special_requests = special_requests.strip() or None

        if status is not None and BookingStatus(status) != booking.status:
            status = BookingStatus(status)
            if status == BookingStatus.CANCELLED:
                _cancel(db, booking, cancellation_reason, by_admin, gateway)
            elif status == BookingStatus.COMPLETED:
                _complete(db, booking)
            elif status == BookingStatus.CONFIRMED:
                _confirm(db, booking)
            else:
                ensure_transition(booking.status, status)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(booking)
    return booking
