from .user import User, UserRole
from .room import Room, RoomType, AvailabilityStatus
from .booking import Booking, BookingStatus
from .payment import Payment, PaymentStatus, PaymentMethod
