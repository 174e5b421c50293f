"""Booking repository - Database operations for bookings, vehicles and slot capacity"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import and_, case, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models import (
    BLOCK_REASON_FULLY_BOOKED,
    BLOCK_REASON_NON_WORKING_DAY,
    AvailableSlot,
    Booking,
    NonWorkingDay,
    Service,
    Vehicle,
)


class BookingRepository:
    """Repository for booking database operations; callers own the commit"""

    @staticmethod
    def get_slot(db: Session, slot_id: str) -> Optional[AvailableSlot]:
        return db.query(AvailableSlot).filter(AvailableSlot.id == slot_id).first()

    @staticmethod
    def get_service(db: Session, service_id: str) -> Optional[Service]:
        return db.query(Service).filter(Service.id == service_id).first()

    @staticmethod
    def claim_slot(db: Session, slot_id: str, close_after_claim: bool = False) -> bool:
        """
        Take one unit of capacity in a single guarded UPDATE.

        The WHERE clause makes concurrent claims safe: once the slot is full or
        blocked no further row matches. The claim that fills the slot (or any
        claim when close_after_claim is set) marks it blocked as fully_booked.
        Returns False when nothing was claimed.
        """
        fills_slot = AvailableSlot.current_bookings + 1 >= AvailableSlot.max_bookings
        if close_after_claim:
            is_blocked = True
            block_reason = BLOCK_REASON_FULLY_BOOKED
        else:
            is_blocked = case((fills_slot, True), else_=False)
            block_reason = case((fills_slot, BLOCK_REASON_FULLY_BOOKED), else_=AvailableSlot.block_reason)

        stmt = (
            update(AvailableSlot)
            .where(
                AvailableSlot.id == slot_id,
                AvailableSlot.is_blocked.is_(False),
                AvailableSlot.current_bookings < AvailableSlot.max_bookings,
            )
            .values(
                current_bookings=AvailableSlot.current_bookings + 1,
                is_blocked=is_blocked,
                block_reason=block_reason,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = db.execute(stmt)
        return result.rowcount == 1

    @staticmethod
    def release_slot(db: Session, slot_id: str) -> bool:
        """
        Give back one unit of capacity; never drops below zero. A full slot
        reopens unless its date is marked non-working, in which case it is
        re-tagged as non-working and stays closed.
        """
        was_full = AvailableSlot.block_reason == BLOCK_REASON_FULLY_BOOKED
        day_closed = select(NonWorkingDay.day_date).where(NonWorkingDay.day_date == AvailableSlot.slot_date).exists()
        reopens = and_(was_full, ~day_closed)
        stmt = (
            update(AvailableSlot)
            .where(AvailableSlot.id == slot_id, AvailableSlot.current_bookings > 0)
            .values(
                current_bookings=AvailableSlot.current_bookings - 1,
                is_blocked=case((reopens, False), else_=AvailableSlot.is_blocked),
                block_reason=case(
                    (reopens, None),
                    (was_full, BLOCK_REASON_NON_WORKING_DAY),
                    else_=AvailableSlot.block_reason,
                ),
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = db.execute(stmt)
        return result.rowcount == 1

    @staticmethod
    def find_vehicle(db: Session, registration: str) -> Optional[Vehicle]:
        return db.query(Vehicle).filter(Vehicle.registration == registration).first()

    @staticmethod
    def get_or_create_vehicle(db: Session, registration: str, **vehicle_data) -> Vehicle:
        """
        Vehicles are deduplicated by registration. The insert runs in a
        savepoint so a concurrent insert of the same plate re-reads the winner
        instead of aborting the surrounding booking transaction.
        """
        vehicle = BookingRepository.find_vehicle(db, registration)
        if vehicle:
            return vehicle

        try:
            with db.begin_nested():
                vehicle = Vehicle(registration=registration, **vehicle_data)
                db.add(vehicle)
                db.flush()
        except IntegrityError:
            vehicle = BookingRepository.find_vehicle(db, registration)
            if vehicle is None:
                raise
        return vehicle

    @staticmethod
    def reference_exists(db: Session, reference: str) -> bool:
        return db.query(Booking.id).filter(Booking.booking_reference == reference).first() is not None

    @staticmethod
    def create_booking(db: Session, **booking_data) -> Booking:
        booking = Booking(**booking_data)
        db.add(booking)
        db.flush()
        return booking

    @staticmethod
    def get_booking(db: Session, booking_id: str) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.id == booking_id).first()

    @staticmethod
    def get_bookable_slots(db: Session, slot_date: date) -> list[AvailableSlot]:
        return (
            db.query(AvailableSlot)
            .filter(
                AvailableSlot.slot_date == slot_date,
                AvailableSlot.is_blocked.is_(False),
                AvailableSlot.current_bookings < AvailableSlot.max_bookings,
            )
            .order_by(AvailableSlot.start_time)
            .all()
        )
