"""Booking router - public booking flow and admin status management"""

import logging
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ... import config
from ...auth import get_current_user, get_optional_user, require_admin
from ...database import get_db
from ...models import User
from ...rate_limiter import create_rate_limiter
from ...shared.errors import DomainError
from ..accounts.auth_admin import SupabaseAuthAdminClient, get_auth_admin_client
from .schemas import (
    BookingResponse,
    BookingStatusUpdate,
    CancelBookingRequest,
    CreateBookingRequest,
    RescheduleBookingRequest,
)
from .service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bookings", tags=["Bookings"])
admin_router = APIRouter(prefix="/api/admin/bookings", tags=["Admin Bookings"])

booking_rate_limit = create_rate_limiter(
    limit=config.BOOKING_RATE_LIMIT,
    window_seconds=config.BOOKING_RATE_WINDOW_SECONDS,
    key_prefix="booking_create",
)


def get_booking_service(
    db: Session = Depends(get_db),
    auth_admin: SupabaseAuthAdminClient = Depends(get_auth_admin_client),
) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db, auth_admin)


@router.post("/enhanced/create", status_code=201)
async def create_booking(
    data: CreateBookingRequest,
    background_tasks: BackgroundTasks,
    _: None = Depends(booking_rate_limit),
    current_user: Optional[User] = Depends(get_optional_user),
    service: BookingService = Depends(get_booking_service),
):
    """Create a booking for a slot (guests welcome)"""
    try:
        result = await service.create_booking(data.bookingData, current_user, background_tasks)
    except DomainError:
        raise
    except Exception as e:
        logger.exception(f"❌ Booking creation failed: {e}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "details": str(e),
                "timestamp": datetime.utcnow().isoformat(),
            },
        )
    return JSONResponse(status_code=201, content={"data": result})


@router.get("/available-slots")
async def get_available_slots(
    date_: date = Query(..., alias="date"),
    service: BookingService = Depends(get_booking_service),
):
    """Bookable slots for a date"""
    return {"data": [s.model_dump(mode="json") for s in service.list_bookable_slots(date_)]}


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: str,
    data: CancelBookingRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Cancel a booking and release its slot"""
    return service.cancel_booking(booking_id, data.reason, current_user, background_tasks)


@router.post("/{booking_id}/reschedule", response_model=BookingResponse)
async def reschedule_booking(
    booking_id: str,
    data: RescheduleBookingRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Move a booking to another slot"""
    return service.reschedule_booking(booking_id, data.new_slot_id, data.reason, current_user, background_tasks)


@admin_router.patch("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: str,
    data: BookingStatusUpdate,
    background_tasks: BackgroundTasks,
    admin: User = Depends(require_admin),
    service: BookingService = Depends(get_booking_service),
):
    """Move a booking through its lifecycle"""
    return service.update_status(booking_id, data.status, data.reason, admin, background_tasks)
