"""Domain errors raised by the services and mapped to HTTP responses in ``main``."""
from typing import Any


class HotelBookingError(Exception):
    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        error: dict[str, Any] = {"code": self.code}
        if self.details is not None:
            error["details"] = self.details
        return {"message": self.message, "error": error}


class ResourceNotFoundError(HotelBookingError):
    status_code = 404
    code = "RESOURCE_NOT_FOUND"

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(f"{resource} with ID {resource_id} not found")
        self.resource = resource
        self.resource_id = resource_id


class ValidationError(HotelBookingError):
    """``details`` is a list of ``{"field": ..., "message": ...}`` entries."""

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, errors: list[dict] | None = None):
        super().__init__(message, errors)


class BookingValidationError(ValidationError):
    code = "BOOKING_VALIDATION_ERROR"


class InvalidStatusTransitionError(ValidationError):
    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Cannot change booking status from {current} to {target}",
            [{"field": "status", "message": f"Transition {current} -> {target} is not allowed"}],
        )
        self.current = current
        self.target = target


class ConflictError(HotelBookingError):
    status_code = 409
    code = "CONFLICT"


class RoomUnavailableError(ConflictError):
    code = "ROOM_UNAVAILABLE"


class PaymentProcessingError(HotelBookingError):
    status_code = 400
    code = "PAYMENT_ERROR"
