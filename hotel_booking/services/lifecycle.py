"""
Booking status lifecycle.

    pending   -> confirmed (payment succeeded) | cancelled
    confirmed -> completed (checkout date reached) | cancelled
    cancelled, completed: terminal
"""
import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ..exceptions import InvalidStatusTransitionError
from ..models import Booking, BookingStatus, Room, AvailabilityStatus

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in ALLOWED_TRANSITIONS.items() if not targets)


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return BookingStatus(target) in ALLOWED_TRANSITIONS[BookingStatus(current)]


def ensure_transition(current: BookingStatus, target: BookingStatus) -> None:
    if not can_transition(current, target):
        raise InvalidStatusTransitionError(BookingStatus(current).value, BookingStatus(target).value)


def apply_transition(booking: Booking, target: BookingStatus, reason: Optional[str] = None) -> Booking:
    """Move ``booking`` to ``target`` in memory; the caller commits."""
    target = BookingStatus(target)
    ensure_transition(booking.status, target)
    previous = booking.status
    booking.status = target
    if target == BookingStatus.CANCELLED:
        booking.cancellation_reason = (reason or "").strip() or None
    logger.info("Booking %s: %s -> %s", booking.id, BookingStatus(previous).value, target.value)
    return booking


def refresh_room_status(db: Session, room: Room, today: Optional[date] = None) -> AvailabilityStatus:
    """
    Recompute a room's derived availability flag.
    Maintenance is only ever set or cleared by an administrator.
    """
    if room.availability_status == AvailabilityStatus.MAINTENANCE:
        return room.availability_status
    today = today or date.today()
    # sessions are created with autoflush off; pending status changes must be visible
    db.flush()
    in_house = (
        db.query(Booking.id)
        .filter(
            Booking.room_id == room.id,
            Booking.status == BookingStatus.CONFIRMED,
            Booking.check_in_date <= today,
            Booking.check_out_date > today,
        )
        .first()
    )
    room.availability_status = AvailabilityStatus.OCCUPIED if in_house else AvailabilityStatus.AVAILABLE
    return room.availability_status
