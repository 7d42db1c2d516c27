import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ..models import Booking, BookingStatus
from .lifecycle import apply_transition, refresh_room_status

logger = logging.getLogger(__name__)


def run_auto_checkout(db: Session, today: Optional[date] = None) -> int:
    """
    Mark confirmed bookings as completed once their check-out date has passed.
    Pending bookings are left alone: an unpaid stay never completes.
    Returns the number of bookings completed.
    """
    today = today or date.today()
    elapsed = (
        db.query(Booking)
        .filter(
            Booking.check_out_date < today,
            Booking.status == BookingStatus.CONFIRMED,
        )
        .all()
    )
    if not elapsed:
        return 0
    # one lifecycle transition per booking, then one flag refresh per touched room
    rooms = {}
    for booking in elapsed:
        apply_transition(booking, BookingStatus.COMPLETED)
        rooms[booking.room_id] = booking.room
    for room in rooms.values():
        refresh_room_status(db, room, today)
    db.commit()
    logger.info("Auto-checkout completed %d booking(s)", len(elapsed))
    return len(elapsed)
