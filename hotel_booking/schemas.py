"""
Request/response models.

Python attributes are snake_case; JSON on the wire is camelCase. Input
accepts either spelling.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .models import (
    AvailabilityStatus,
    BookingStatus,
    PaymentMethod,
    PaymentStatus,
    RoomType,
    UserRole,
)


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        use_enum_values=True,
    )


# ==== Users & Auth ====

class UserOut(ApiModel):
    id: int
    name: str
    email: str
    role: UserRole
    phone: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RegisterIn(ApiModel):
    name: str = Field(min_length=1, max_length=200)
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=8, max_length=128)
    phone: Optional[str] = Field(default=None, max_length=20)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("Invalid email address")
        return v


class UserCreateIn(RegisterIn):
    role: UserRole = UserRole.CUSTOMER


class UserUpdateIn(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    email: Optional[str] = Field(default=None, min_length=3, max_length=255)
    password: Optional[str] = Field(default=None, min_length=8, max_length=128)
    phone: Optional[str] = Field(default=None, max_length=20)
    role: Optional[UserRole] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("Invalid email address")
        return v


class LoginIn(ApiModel):
    email: str
    password: str


# ==== Rooms ====

class RoomOut(ApiModel):
    id: int
    room_number: str
    room_type: RoomType
    price_per_night: float
    capacity: int
    description: Optional[str] = None
    amenities: List[str] = []
    photos: List[str] = []
    availability_status: AvailabilityStatus


class RoomCreateIn(ApiModel):
    room_number: str = Field(min_length=1, max_length=20)
    room_type: RoomType = RoomType.SINGLE
    price_per_night: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    capacity: int = Field(default=2, ge=1)
    description: Optional[str] = None
    amenities: List[str] = []
    photos: List[str] = []


class RoomUpdateIn(ApiModel):
    room_number: Optional[str] = Field(default=None, min_length=1, max_length=20)
    room_type: Optional[RoomType] = None
    price_per_night: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    capacity: Optional[int] = Field(default=None, ge=1)
    description: Optional[str] = None
    amenities: Optional[List[str]] = None
    photos: Optional[List[str]] = None
    availability_status: Optional[AvailabilityStatus] = None


class ConflictOut(ApiModel):
    check_in_date: date
    check_out_date: date


class RoomAvailabilityOut(ApiModel):
    room_id: int
    check_in_date: date
    check_out_date: date
    available: bool
    conflicts: List[ConflictOut] = []


# ==== Bookings ====

class PaymentSummaryOut(ApiModel):
    id: int
    amount: float
    currency: str
    status: PaymentStatus


class BookingOut(ApiModel):
    id: int
    user_id: int
    room_id: int
    check_in_date: date
    check_out_date: date
    guest_count: int
    total_price: float
    status: BookingStatus
    special_requests: Optional[str] = None
    cancellation_reason: Optional[str] = None
    payment: Optional[PaymentSummaryOut] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BookingCreateIn(ApiModel):
    room_id: int
    check_in_date: date
    check_out_date: date
    guest_count: int = Field(default=1, ge=1)
    special_requests: Optional[str] = Field(default=None, max_length=2000)
    # admin only
    total_price: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    user_id: Optional[int] = None


class BookingUpdateIn(ApiModel):
    room_id: Optional[int] = None
    check_in_date: Optional[date] = None
    check_out_date: Optional[date] = None
    guest_count: Optional[int] = Field(default=None, ge=1)
    special_requests: Optional[str] = Field(default=None, max_length=2000)
    status: Optional[BookingStatus] = None
    cancellation_reason: Optional[str] = Field(default=None, max_length=2000)
    # admin only
    total_price: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)


class CancelIn(ApiModel):
    reason: Optional[str] = Field(default=None, max_length=2000)


class AutoCheckoutOut(ApiModel):
    completed: int


# ==== Payments ====

class PaymentOut(ApiModel):
    id: int
    booking_id: int
    amount: float
    currency: str
    method: PaymentMethod
    transaction_id: Optional[str] = None
    status: PaymentStatus
    refund_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PaymentCreateIn(ApiModel):
    booking_id: int
    amount: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    method: PaymentMethod = PaymentMethod.CREDIT_CARD
    currency: Optional[str] = Field(default=None, min_length=3, max_length=8)
    card_number: Optional[str] = Field(default=None, max_length=32)

    @field_validator("method", mode="before")
    @classmethod
    def normalize_method(cls, v):
        # "Credit Card" -> "credit_card"
        if isinstance(v, str):
            return v.strip().lower().replace(" ", "_")
        return v


class PaymentUpdateIn(ApiModel):
    method: Optional[PaymentMethod] = None
    transaction_id: Optional[str] = Field(default=None, max_length=64)
    amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)


class PaymentStatusIn(ApiModel):
    status: PaymentStatus
    # gateway reference reported with the callback
    transaction_id: Optional[str] = Field(default=None, max_length=64)


class RefundIn(ApiModel):
    reason: Optional[str] = Field(default=None, max_length=2000)
