import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..exceptions import ConflictError, ResourceNotFoundError, ValidationError
from ..models import AvailabilityStatus, Booking, Room, RoomType, User
from ..schemas import RoomAvailabilityOut, RoomCreateIn, RoomOut, RoomUpdateIn
from ..security import require_admin
from ..services.availability import find_conflicting_bookings, search_available_rooms
from ..services.lifecycle import refresh_room_status

logger = logging.getLogger(__name__)

router = APIRouter(prefix=f"{settings.API_PREFIX}/rooms", tags=["rooms"])


def _get_room(db: Session, room_id: int) -> Room:
    room = db.get(Room, room_id)
    if not room:
        raise ResourceNotFoundError("Room", room_id)
    return room


def _ensure_room_number_free(db: Session, room_number: str, exclude_id: Optional[int] = None) -> None:
    q = db.query(Room).filter(Room.room_number == room_number)
    if exclude_id is not None:
        q = q.filter(Room.id != exclude_id)
    if q.first():
        raise ConflictError(f"Room number {room_number} already exists")


def _clean_list(values: List[str]) -> List[str]:
    return [v.strip() for v in values if v and v.strip()]


@router.get("", response_model=List[RoomOut])
def list_rooms(
    db: Session = Depends(get_db),
    room_type: Optional[RoomType] = Query(None, alias="roomType"),
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    capacity: Optional[int] = Query(None, ge=1),
    status: Optional[AvailabilityStatus] = None,
):
    q = db.query(Room)
    if room_type:
        q = q.filter(Room.room_type == RoomType(room_type))
    if min_price is not None:
        q = q.filter(Room.price_per_night >= min_price)
    if max_price is not None:
        q = q.filter(Room.price_per_night <= max_price)
    if capacity:
        q = q.filter(Room.capacity >= capacity)
    if status:
        q = q.filter(Room.availability_status == AvailabilityStatus(status))
    return q.order_by(Room.room_number.asc()).all()


@router.get("/search", response_model=List[RoomOut])
def search_rooms(
    db: Session = Depends(get_db),
    check_in: date = Query(..., alias="checkInDate"),
    check_out: date = Query(..., alias="checkOutDate"),
    guests: Optional[int] = Query(None, ge=1),
    room_type: Optional[RoomType] = Query(None, alias="roomType"),
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    amenities: Optional[str] = Query(None, description="Comma-separated amenity names"),
):
    required = _clean_list(amenities.split(",")) if amenities else None
    return search_available_rooms(
        db,
        check_in,
        check_out,
        guests=guests,
        room_type=RoomType(room_type) if room_type else None,
        min_price=min_price,
        max_price=max_price,
        amenities=required,
    )


@router.get("/{room_id}", response_model=RoomOut)
def get_room(room_id: int, db: Session = Depends(get_db)):
    return _get_room(db, room_id)


@router.get("/{room_id}/availability", response_model=RoomAvailabilityOut)
def room_availability(
    room_id: int,
    db: Session = Depends(get_db),
    check_in: date = Query(..., alias="checkInDate"),
    check_out: date = Query(..., alias="checkOutDate"),
):
    room = _get_room(db, room_id)
    conflicts = find_conflicting_bookings(db, room.id, check_in, check_out)
    return RoomAvailabilityOut(
        room_id=room.id,
        check_in_date=check_in,
        check_out_date=check_out,
        available=not conflicts and room.availability_status != AvailabilityStatus.MAINTENANCE,
        conflicts=[{"check_in_date": b.check_in_date, "check_out_date": b.check_out_date} for b in conflicts],
    )


@router.post("", response_model=RoomOut, status_code=201)
def create_room(payload: RoomCreateIn, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    room_number = payload.room_number.strip()
    _ensure_room_number_free(db, room_number)
    room = Room(
        room_number=room_number,
        room_type=RoomType(payload.room_type),
        price_per_night=payload.price_per_night,
        capacity=payload.capacity,
        description=(payload.description or "").strip() or None,
        amenities=_clean_list(payload.amenities),
        photos=_clean_list(payload.photos),
        availability_status=AvailabilityStatus.AVAILABLE,
    )
    db.add(room)
    db.commit()
    db.refresh(room)
    logger.info("Room %s created by admin %s", room.room_number, admin.id)
    return room


@router.put("/{room_id}", response_model=RoomOut)
@router.patch("/{room_id}", response_model=RoomOut)
def update_room(room_id: int, payload: RoomUpdateIn, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    room = _get_room(db, room_id)
    if payload.room_number is not None and payload.room_number.strip() != room.room_number:
        _ensure_room_number_free(db, payload.room_number.strip(), exclude_id=room.id)
        room.room_number = payload.room_number.strip()
    if payload.room_type is not None:
        room.room_type = RoomType(payload.room_type)
    if payload.price_per_night is not None:
        room.price_per_night = payload.price_per_night
    if payload.capacity is not None:
        room.capacity = payload.capacity
    if payload.description is not None:
        room.description = payload.description.strip() or None
    if payload.amenities is not None:
        room.amenities = _clean_list(payload.amenities)
    if payload.photos is not None:
        room.photos = _clean_list(payload.photos)
    if payload.availability_status is not None:
        status = AvailabilityStatus(payload.availability_status)
        if status == AvailabilityStatus.OCCUPIED:
            raise ValidationError(
                "Occupancy is derived from confirmed bookings",
                [{"field": "availabilityStatus", "message": "Set 'available' or 'maintenance'"}],
            )
        room.availability_status = status
        if status == AvailabilityStatus.AVAILABLE:
            refresh_room_status(db, room)
    db.commit()
    db.refresh(room)
    return room


@router.delete("/{room_id}", status_code=204)
def delete_room(room_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    room = _get_room(db, room_id)
    if db.query(Booking.id).filter(Booking.room_id == room.id).first():
        raise ConflictError(
            f"Room {room.room_number} has bookings; set it to maintenance instead of deleting it"
        )
    db.delete(room)
    db.commit()
    logger.info("Room %s deleted by admin %s", room_id, admin.id)
    return Response(status_code=204)
