from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..exceptions import BookingValidationError
from ..models import Booking, BookingStatus, Room, RoomType, AvailabilityStatus

# Bookings in these states hold their room for their date range
ACTIVE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


def ranges_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """Return True if half-open ranges [a_start, a_end) and [b_start, b_end) overlap."""
    return a_start < b_end and a_end > b_start


def validate_stay(check_in: Optional[date], check_out: Optional[date]) -> None:
    """Reject missing, zero-night and inverted date ranges."""
    errors = []
    if check_in is None:
        errors.append({"field": "checkInDate", "message": "Check-in date is required"})
    if check_out is None:
        errors.append({"field": "checkOutDate", "message": "Check-out date is required"})
    if errors:
        raise BookingValidationError("Check-in and check-out dates are required", errors)
    if check_out <= check_in:
        raise BookingValidationError(
            "Check-out date must be after check-in date",
            [
                {"field": "checkInDate", "message": "Check-in date must be before check-out date"},
                {"field": "checkOutDate", "message": "Check-out date must be after check-in date"},
            ],
        )


def find_conflicting_bookings(
    db: Session,
    room_id: int,
    check_in: date,
    check_out: date,
    exclude_booking_id: Optional[int] = None,
) -> List[Booking]:
    validate_stay(check_in, check_out)
    q = db.query(Booking).filter(
        Booking.room_id == room_id,
        Booking.status.in_(ACTIVE_STATUSES),
        Booking.check_in_date < check_out,
        Booking.check_out_date > check_in,
    )
    if exclude_booking_id is not None:
        q = q.filter(Booking.id != exclude_booking_id)
    return q.order_by(Booking.check_in_date.asc()).all()


def is_room_available(
    db: Session,
    room_id: int,
    check_in: date,
    check_out: date,
    exclude_booking_id: Optional[int] = None,
) -> bool:
    return not find_conflicting_bookings(db, room_id, check_in, check_out, exclude_booking_id)


def _has_amenities(room: Room, required: Iterable[str]) -> bool:
    have = {a.strip().lower() for a in (room.amenities or [])}
    return all(r.strip().lower() in have for r in required)


def search_available_rooms(
    db: Session,
    check_in: date,
    check_out: date,
    guests: Optional[int] = None,
    room_type: Optional[RoomType] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    amenities: Optional[List[str]] = None,
) -> List[Room]:
    """
    Rooms free for the whole stay, cheapest first.
    Rooms under maintenance are never offered. Amenity matching is
    case-insensitive and every requested amenity must be present.
    """
    validate_stay(check_in, check_out)
    busy_room_ids = select(Booking.room_id).where(
        Booking.status.in_(ACTIVE_STATUSES),
        Booking.check_in_date < check_out,
        Booking.check_out_date > check_in,
    )
    q = db.query(Room).filter(
        Room.availability_status != AvailabilityStatus.MAINTENANCE,
        Room.id.not_in(busy_room_ids),
    )
    if guests:
        q = q.filter(Room.capacity >= guests)
    if room_type:
        q = q.filter(Room.room_type == room_type)
    if min_price is not None:
        q = q.filter(Room.price_per_night >= min_price)
    if max_price is not None:
        q = q.filter(Room.price_per_night <= max_price)
    rooms = q.order_by(Room.price_per_night.asc(), Room.room_number.asc()).all()
    if amenities:
        rooms = [r for r in rooms if _has_amenities(r, amenities)]
    return rooms
