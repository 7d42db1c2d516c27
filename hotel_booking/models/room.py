from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import Integer, String, Numeric, Text, JSON, Enum, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..db import Base

class RoomType(str, PyEnum):
    SINGLE = "single"
    DOUBLE = "double"
    SUITE = "suite"
    DELUXE = "deluxe"

class AvailabilityStatus(str, PyEnum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    MAINTENANCE = "maintenance"

class Room(Base):
    __tablename__ = "rooms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    room_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)
    room_type: Mapped[RoomType] = mapped_column(Enum(RoomType), default=RoomType.SINGLE, nullable=False, index=True)
    price_per_night: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    description: Mapped[str | None] = mapped_column(Text)
    amenities: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    # Photo URLs, in display order
    photos: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    availability_status: Mapped[AvailabilityStatus] = mapped_column(
        Enum(AvailabilityStatus), default=AvailabilityStatus.AVAILABLE, nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    bookings: Mapped[list["Booking"]] = relationship(back_populates="room")
