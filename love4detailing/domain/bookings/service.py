"""Booking service - booking creation, cancellation and status changes"""

import logging
import secrets
import string
import time
from datetime import date, datetime
from typing import Optional

from fastapi import BackgroundTasks
from sqlalchemy import text
from sqlalchemy.orm import Session

from ... import config
from ...email_service import queue_booking_cancellation, queue_booking_confirmation, queue_booking_rescheduled
from ...models import VEHICLE_SIZES, Booking, User, Vehicle
from ...shared.errors import (
    BookingError,
    BookingNotFoundError,
    InvalidStatusTransitionError,
    MissingFieldsError,
    NotFoundError,
    SlotUnavailableError,
)
from ...shared.validators import truncate, validate_email
from ..accounts.auth_admin import SupabaseAuthAdminClient
from ..accounts.service import AccountService
from ..rewards.service import RewardsService
from .pricing import PricingResolver
from .repository import BookingRepository
from .schemas import BookableSlot, BookingData

logger = logging.getLogger(__name__)

REFERENCE_ALPHABET = string.digits + string.ascii_uppercase
REFERENCE_ATTEMPTS = 5

# Admin-driven status transitions
ALLOWED_TRANSITIONS = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"in_progress", "cancelled"},
    "in_progress": {"completed"},
}
FINAL_STATUSES = {"cancelled", "completed"}
RESCHEDULABLE_STATUSES = {"pending", "confirmed"}


def generate_booking_reference(prefix: Optional[str] = None) -> str:
    """
    Prefix + last 8 digits of epoch milliseconds + 4 random base36 characters,
    e.g. L4D12345678X9QZ.
    """
    prefix = config.BOOKING_REFERENCE_PREFIX if prefix is None else prefix
    millis = str(int(time.time() * 1000))[-8:].rjust(8, "0")
    suffix = "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(4))
    return f"{prefix}{millis}{suffix}"[: config.BOOKING_REFERENCE_MAX_LENGTH]


def booking_email_data(booking: Booking, vehicle: Optional[Vehicle] = None, **extra) -> dict:
    slot = booking.slot
    vehicle = vehicle or booking.vehicle
    data = {
        "booking_reference": booking.booking_reference,
        "customer_name": booking.customer_name,
        "customer_email": booking.customer_email,
        "customer_phone": booking.customer_phone,
        "booking_date": slot.slot_date.strftime("%A %d %B %Y"),
        "booking_time": f"{slot.start_time.strftime('%H:%M')} - {slot.end_time.strftime('%H:%M')}",
        "vehicle_description": (
            f"{vehicle.make} {vehicle.model} ({vehicle.registration})" if vehicle else None
        ),
        "service_location": booking.service_location,
        "notes": booking.notes,
        "total_price_pence": booking.total_price_pence,
        "payment_method": booking.payment_method,
        "admin_email": config.ADMIN_EMAIL,
        "admin_phone": config.ADMIN_PHONE,
    }
    data.update(extra)
    return data


class BookingService:
    """Service layer for booking business logic"""

    def __init__(self, db: Session, auth_admin: Optional[SupabaseAuthAdminClient] = None):
        self.db = db
        self.repo = BookingRepository()
        self.auth_admin = auth_admin or SupabaseAuthAdminClient()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def _validate(self, data: BookingData) -> None:
        missing = data.missing_fields()
        if missing:
            raise MissingFieldsError(missing)
        try:
            validate_email(data.customer_email)
        except ValueError as e:
            raise BookingError("Invalid email format", details=str(e)) from e
        if data.vehicle_size not in VEHICLE_SIZES:
            raise BookingError(
                "Invalid vehicle size", details=f"Expected one of: {', '.join(VEHICLE_SIZES)}"
            )

    def _check_connection(self) -> None:
        try:
            self.db.execute(text("SELECT 1"))
        except Exception as e:
            logger.error(f"❌ Database connectivity check failed: {e}")
            raise BookingError("Database connection failed", details=str(e), status_code=503) from e

    def _unique_reference(self) -> str:
        for _ in range(REFERENCE_ATTEMPTS):
            reference = generate_booking_reference()
            if not self.repo.reference_exists(self.db, reference):
                return reference
        raise BookingError("Could not allocate a booking reference", status_code=500)

    def _persist_booking(self, data: BookingData, user_id: Optional[str]) -> tuple[Booking, Optional[Vehicle]]:
        """
        Claim capacity, store the vehicle and insert the booking as one
        transaction. Any failure rolls all of it back.
        """
        try:
            slot = self.repo.get_slot(self.db, data.slot_id)
            if slot is None:
                raise NotFoundError("Slot not found", details=f"No slot with id {data.slot_id}")
            if slot.slot_date < date.today():
                raise BookingError("Cannot book a slot in the past", details=str(slot.slot_date))
            if self.repo.get_service(self.db, data.service_id) is None:
                raise NotFoundError("Service not found", details=f"No service with id {data.service_id}")

            claimed = self.repo.claim_slot(
                self.db, slot.id, close_after_claim=config.SLOT_CAPACITY_POLICY == "close"
            )
            if not claimed:
                raise SlotUnavailableError(details=f"Slot {slot.id} is full or blocked")
            self.db.expire(slot)

            vehicle = None
            if data.has_vehicle_details():
                vehicle = self.repo.get_or_create_vehicle(
                    self.db,
                    data.vehicle_registration,
                    user_id=user_id,
                    make=truncate(data.vehicle_make, 100),
                    model=truncate(data.vehicle_model, 100),
                    year=data.vehicle_year or datetime.utcnow().year,
                    color=truncate(data.vehicle_color, 50),
                    size=data.vehicle_size,
                    size_confirmed=True,
                )

            price = PricingResolver(self.db).resolve_price(data.service_id, data.vehicle_size)
            now = datetime.utcnow()
            booking = self.repo.create_booking(
                self.db,
                booking_reference=self._unique_reference(),
                user_id=user_id,
                vehicle_id=vehicle.id if vehicle else None,
                slot_id=slot.id,
                service_id=data.service_id,
                customer_name=truncate(data.customer_name, 100),
                customer_email=truncate(data.customer_email.lower(), 100),
                customer_phone=truncate(data.customer_phone, 20),
                service_location=truncate(data.service_address, 255),
                notes=truncate(data.special_instructions, 1000),
                payment_method=data.payment_method or "cash",
                status="confirmed",
                payment_status="pending",
                service_price_pence=price,
                total_price_pence=price,
                confirmed_at=now,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"✅ Booking {booking.booking_reference} created for slot {booking.slot_id} ({price}p)"
        )
        return booking, vehicle

    async def create_booking(
        self,
        data: BookingData,
        current_user: Optional[User],
        background_tasks: BackgroundTasks,
    ) -> dict:
        """
        Create a booking. Only validation and the booking transaction itself
        can fail the request; account linking, points and email are each
        isolated and reported as flags.
        """
        self._validate(data)
        self._check_connection()

        user_id = None
        if current_user and current_user.email and current_user.email.lower() == data.customer_email.lower():
            user_id = current_user.id

        booking, vehicle = self._persist_booking(data, user_id)

        result = {
            "booking_id": booking.id,
            "booking_reference": booking.booking_reference,
            "status": booking.status,
            "total_price_pence": booking.total_price_pence,
            "message": "Booking created successfully",
        }

        account_created = False
        if booking.user_id is None:
            try:
                outcome = await AccountService(self.db, self.auth_admin).reconcile(booking, vehicle)
                result["user_id"] = outcome.user_id
                account_created = outcome.account_created
                if outcome.account_created:
                    result["account_created"] = True
                if outcome.existing_user_linked:
                    result["existing_user_linked"] = True
            except Exception as e:
                logger.error(f"❌ Account linking failed for {booking.booking_reference}: {e}")
        else:
            result["user_id"] = booking.user_id

        if booking.user_id:
            try:
                award = RewardsService(self.db).award_booking_points(
                    booking.user_id, booking.customer_email, booking, booking.total_price_pence
                )
                result["points_awarded"] = award.points_awarded
                result["new_tier"] = award.new_tier
            except Exception as e:
                logger.error(f"❌ Reward points failed for {booking.booking_reference}: {e}")

        try:
            queue_booking_confirmation(
                background_tasks,
                booking_email_data(booking, vehicle, account_created=account_created),
            )
            result["email_triggered"] = True
        except Exception as e:
            logger.error(f"❌ Confirmation email not queued for {booking.booking_reference}: {e}")
            result["email_error"] = str(e)

        return result

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def get_booking(self, booking_id: str) -> Booking:
        booking = self.repo.get_booking(self.db, booking_id)
        if not booking:
            raise BookingNotFoundError(booking_id)
        return booking

    def _cancel(self, booking: Booking, reason: Optional[str]) -> None:
        booking.status = "cancelled"
        booking.cancelled_at = datetime.utcnow()
        booking.cancellation_reason = reason
        if not self.repo.release_slot(self.db, booking.slot_id):
            logger.warning(f"⚠️ Slot {booking.slot_id} had no capacity to release for {booking.booking_reference}")

    def _queue_cancellation_email(self, booking: Booking, reason: Optional[str], background_tasks) -> None:
        try:
            queue_booking_cancellation(background_tasks, booking_email_data(booking, reason=reason))
        except Exception as e:
            logger.error(f"❌ Cancellation email not queued for {booking.booking_reference}: {e}")

    def cancel_booking(
        self, booking_id: str, reason: str, user: User, background_tasks: BackgroundTasks
    ) -> Booking:
        """Customer or admin cancellation; the capacity release commits with the status change"""
        booking = self.get_booking(booking_id)
        if user.role != "admin" and booking.user_id != user.id:
            # Same answer as a missing booking, so other ids stay hidden
            raise BookingNotFoundError(booking_id)
        if booking.status in FINAL_STATUSES:
            raise BookingError(
                f"Booking is already {booking.status}",
                details="Only pending, confirmed or in-progress bookings can be cancelled",
            )

        try:
            self._cancel(booking, reason)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(booking)

        logger.info(f"🚫 Booking {booking.booking_reference} cancelled by {user.email}: {reason}")
        self._queue_cancellation_email(booking, reason, background_tasks)
        return booking

    def update_status(
        self, booking_id: str, new_status: str, reason: Optional[str], admin: User, background_tasks: BackgroundTasks
    ) -> Booking:
        booking = self.get_booking(booking_id)
        if new_status not in ALLOWED_TRANSITIONS.get(booking.status, set()):
            raise InvalidStatusTransitionError(booking.status, new_status)

        now = datetime.utcnow()
        try:
            if new_status == "cancelled":
                self._cancel(booking, reason)
            else:
                booking.status = new_status
                if new_status == "confirmed":
                    booking.confirmed_at = now
                elif new_status == "completed":
                    booking.completed_at = now
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(booking)

        logger.info(f"📋 Booking {booking.booking_reference} -> {new_status} by {admin.email}")
        if new_status == "cancelled":
            self._queue_cancellation_email(booking, reason, background_tasks)
        return booking

    def reschedule_booking(
        self,
        booking_id: str,
        new_slot_id: str,
        reason: Optional[str],
        user: User,
        background_tasks: BackgroundTasks,
    ) -> Booking:
        """
        Move a booking to another slot. The claim on the new slot and the
        release of the old one commit together, so capacity is never held
        twice or lost when the target turns out to be full.
        """
        booking = self.get_booking(booking_id)
        if user.role != "admin" and booking.user_id != user.id:
            raise BookingNotFoundError(booking_id)
        if booking.status not in RESCHEDULABLE_STATUSES:
            raise BookingError(
                f"Booking cannot be rescheduled - current status: {booking.status}",
                details="Only pending or confirmed bookings can move to another slot",
            )
        if booking.slot_id == new_slot_id:
            raise BookingError("Booking is already in that slot")
        if booking.reschedule_count >= config.MAX_RESCHEDULES_PER_BOOKING:
            raise BookingError(
                "Maximum reschedule limit reached",
                details=f"A booking can be moved {config.MAX_RESCHEDULES_PER_BOOKING} times",
            )

        previous = booking.slot
        previous_date = previous.slot_date.strftime("%A %d %B %Y")
        previous_time = f"{previous.start_time.strftime('%H:%M')} - {previous.end_time.strftime('%H:%M')}"
        old_slot_id = booking.slot_id

        try:
            target = self.repo.get_slot(self.db, new_slot_id)
            if target is None:
                raise NotFoundError("Slot not found", details=f"No slot with id {new_slot_id}")
            if target.slot_date < date.today():
                raise BookingError("Cannot move a booking into the past", details=str(target.slot_date))

            claimed = self.repo.claim_slot(
                self.db, target.id, close_after_claim=config.SLOT_CAPACITY_POLICY == "close"
            )
            if not claimed:
                raise SlotUnavailableError(details=f"Slot {target.id} is full or blocked")
            if not self.repo.release_slot(self.db, old_slot_id):
                logger.warning(f"⚠️ Slot {old_slot_id} had no capacity to release for {booking.booking_reference}")

            booking.slot_id = target.id
            booking.reschedule_count += 1
            booking.rescheduled_at = datetime.utcnow()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(booking)

        logger.info(
            f"🔄 Booking {booking.booking_reference} moved {old_slot_id} -> {booking.slot_id} by {user.email}"
        )
        try:
            queue_booking_rescheduled(
                background_tasks,
                booking_email_data(
                    booking, previous_date=previous_date, previous_time=previous_time, reason=reason
                ),
            )
        except Exception as e:
            logger.error(f"❌ Reschedule email not queued for {booking.booking_reference}: {e}")
        return booking

    def list_bookable_slots(self, slot_date: date) -> list[BookableSlot]:
        if slot_date < date.today():
            return []
        return [
            BookableSlot(
                slot_id=s.id,
                slot_date=s.slot_date,
                start_time=s.start_time.strftime("%H:%M:%S"),
                end_time=s.end_time.strftime("%H:%M:%S"),
                duration_minutes=s.duration_minutes,
                spaces_left=s.max_bookings - s.current_bookings,
            )
            for s in self.repo.get_bookable_slots(self.db, slot_date)
        ]
