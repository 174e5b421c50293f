"""Booking domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...shared.validators import normalize_registration

REQUIRED_BOOKING_FIELDS = ("customer_email", "customer_name", "slot_id", "service_id", "vehicle_size")


class BookingData(BaseModel):
    """
    Booking form payload. Required fields are declared optional so that a
    missing one is reported with the full list of what is missing.
    """

    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    slot_id: Optional[str] = None
    service_id: Optional[str] = None
    vehicle_size: Optional[str] = None
    vehicle_registration: Optional[str] = None
    vehicle_make: Optional[str] = None
    vehicle_model: Optional[str] = None
    vehicle_year: Optional[int] = Field(None, ge=1900, le=2100)
    vehicle_color: Optional[str] = None
    service_address: Optional[str] = None
    special_instructions: Optional[str] = None
    payment_method: Optional[str] = None

    @field_validator("vehicle_registration")
    @classmethod
    def validate_registration(cls, v):
        return normalize_registration(v) or None

    def missing_fields(self) -> list[str]:
        missing = []
        for name in REQUIRED_BOOKING_FIELDS:
            value = getattr(self, name)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(name)
        return missing

    def has_vehicle_details(self) -> bool:
        return bool(self.vehicle_registration and self.vehicle_make and self.vehicle_model)


class CreateBookingRequest(BaseModel):
    bookingData: BookingData


class CancelBookingRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v):
        if not v.strip():
            raise ValueError("Cancellation reason is required")
        return v.strip()


class RescheduleBookingRequest(BaseModel):
    new_slot_id: str = Field(..., min_length=1)
    reason: Optional[str] = Field(None, max_length=500)


class BookingStatusUpdate(BaseModel):
    status: Literal["confirmed", "in_progress", "completed", "cancelled"]
    reason: Optional[str] = Field(None, max_length=500)


class BookingResponse(BaseModel):
    id: str
    booking_reference: str
    status: str
    payment_status: str
    slot_id: str
    user_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    customer_name: str
    customer_email: str
    total_price_pence: int
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    reschedule_count: int = 0
    rescheduled_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BookableSlot(BaseModel):
    slot_id: str
    slot_date: date
    start_time: str
    end_time: str
    duration_minutes: int
    spaces_left: int
