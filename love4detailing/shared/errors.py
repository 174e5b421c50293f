"""Domain exceptions rendered as {"error": ..., "details": ...} by the API"""

from typing import Optional


class DomainError(Exception):
    """Base for errors a caller can act on; carries the HTTP status to answer with"""

    status_code = 400

    def __init__(self, message: str, details: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class NotFoundError(DomainError):
    status_code = 404


class ConflictError(DomainError):
    status_code = 409


# Schedule management


class ScheduleError(DomainError):
    pass


class SlotNotFoundError(ScheduleError, NotFoundError):
    def __init__(self, slot_id: str):
        super().__init__("Slot not found", details=f"No slot with id {slot_id}")


class SlotHasBookingsError(ScheduleError, ConflictError):
    def __init__(self, current_bookings: int):
        super().__init__(
            "Slot has bookings and cannot be deleted",
            details=f"{current_bookings} booking(s) hold this slot; block it with action 'block_slot' instead",
        )


class SlotOverlapError(ScheduleError, ConflictError):
    pass


# Bookings


class BookingError(DomainError):
    pass


class MissingFieldsError(BookingError):
    def __init__(self, fields: list[str]):
        super().__init__(f"Missing required fields: {', '.join(fields)}")
        self.fields = fields


class SlotUnavailableError(BookingError, ConflictError):
    def __init__(self, details: Optional[str] = None):
        super().__init__("Slot is no longer available", details=details)


class BookingNotFoundError(BookingError, NotFoundError):
    def __init__(self, booking_id: str):
        super().__init__("Booking not found", details=f"No booking with id {booking_id}")


class InvalidStatusTransitionError(BookingError, ConflictError):
    def __init__(self, current: str, requested: str):
        super().__init__(
            "Invalid status transition",
            details=f"Cannot move a booking from '{current}' to '{requested}'",
        )
