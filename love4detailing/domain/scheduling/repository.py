"""Schedule repository - Database operations for available slots"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import case, func, or_
from sqlalchemy.orm import Session

from ...models import (
    BLOCK_REASON_FULLY_BOOKED,
    BLOCK_REASON_NON_WORKING_DAY,
    AvailableSlot,
    NonWorkingDay,
    ScheduleChange,
)


class ScheduleRepository:
    """Repository for slot database operations; callers own the commit"""

    @staticmethod
    def get_slots_between(db: Session, start: date, end: date) -> list[AvailableSlot]:
        """Slots with start <= slot_date <= end, in calendar order"""
        return (
            db.query(AvailableSlot)
            .filter(AvailableSlot.slot_date >= start, AvailableSlot.slot_date <= end)
            .order_by(AvailableSlot.slot_date, AvailableSlot.start_time)
            .all()
        )

    @staticmethod
    def get_slots_for_date(db: Session, slot_date: date) -> list[AvailableSlot]:
        return (
            db.query(AvailableSlot)
            .filter(AvailableSlot.slot_date == slot_date)
            .order_by(AvailableSlot.start_time)
            .all()
        )

    @staticmethod
    def get_slot(db: Session, slot_id: str) -> Optional[AvailableSlot]:
        return db.query(AvailableSlot).filter(AvailableSlot.id == slot_id).first()

    @staticmethod
    def count_slots_for_date(db: Session, slot_date: date) -> int:
        return (
            db.query(func.count(AvailableSlot.id))
            .filter(AvailableSlot.slot_date == slot_date)
            .scalar()
        )

    @staticmethod
    def add_slot(db: Session, **slot_data) -> AvailableSlot:
        slot = AvailableSlot(**slot_data)
        db.add(slot)
        db.flush()
        return slot

    @staticmethod
    def delete_slot(db: Session, slot: AvailableSlot) -> None:
        db.delete(slot)
        db.flush()

    @staticmethod
    def is_non_working(db: Session, day: date) -> bool:
        return db.query(NonWorkingDay.day_date).filter(NonWorkingDay.day_date == day).first() is not None

    @staticmethod
    def get_non_working_between(db: Session, start: date, end: date) -> set[date]:
        rows = (
            db.query(NonWorkingDay.day_date)
            .filter(NonWorkingDay.day_date >= start, NonWorkingDay.day_date <= end)
            .all()
        )
        return {row[0] for row in rows}

    @staticmethod
    def mark_non_working(db: Session, day: date, marked_by: Optional[str] = None) -> None:
        if not ScheduleRepository.is_non_working(db, day):
            db.add(NonWorkingDay(day_date=day, marked_by=marked_by))
            db.flush()

    @staticmethod
    def clear_non_working(db: Session, day: date) -> None:
        db.query(NonWorkingDay).filter(NonWorkingDay.day_date == day).delete(synchronize_session=False)

    @staticmethod
    def close_day(db: Session, slot_date: date) -> int:
        """
        Soft-block the day's slots as non-working. Open and fully booked slots
        are re-tagged so a later cancellation cannot reopen them; admin blocks
        are kept. Bookings are untouched.
        """
        updated = (
            db.query(AvailableSlot)
            .filter(
                AvailableSlot.slot_date == slot_date,
                or_(
                    AvailableSlot.is_blocked.is_(False),
                    AvailableSlot.block_reason == BLOCK_REASON_FULLY_BOOKED,
                ),
            )
            .update(
                {
                    AvailableSlot.is_blocked: True,
                    AvailableSlot.block_reason: BLOCK_REASON_NON_WORKING_DAY,
                    AvailableSlot.updated_at: datetime.utcnow(),
                },
                synchronize_session=False,
            )
        )
        db.expire_all()
        return updated

    @staticmethod
    def open_day(db: Session, slot_date: date) -> int:
        """Lift the non-working block; slots that are full go back to fully_booked"""
        is_full = AvailableSlot.current_bookings >= AvailableSlot.max_bookings
        updated = (
            db.query(AvailableSlot)
            .filter(
                AvailableSlot.slot_date == slot_date,
                AvailableSlot.block_reason == BLOCK_REASON_NON_WORKING_DAY,
            )
            .update(
                {
                    AvailableSlot.is_blocked: case((is_full, True), else_=False),
                    AvailableSlot.block_reason: case((is_full, BLOCK_REASON_FULLY_BOOKED), else_=None),
                    AvailableSlot.updated_at: datetime.utcnow(),
                },
                synchronize_session=False,
            )
        )
        db.expire_all()
        return updated

    @staticmethod
    def log_change(
        db: Session,
        action: str,
        slot_date: date,
        entity_id: Optional[str] = None,
        changed_by: Optional[str] = None,
    ) -> ScheduleChange:
        change = ScheduleChange(
            action=action, slot_date=slot_date, entity_id=entity_id, changed_by=changed_by
        )
        db.add(change)
        return change

    @staticmethod
    def has_changes_since(db: Session, since: datetime, start: date, end: date) -> bool:
        """Any slot touched, or any schedule change logged, for the date range after `since`"""
        slot_hit = (
            db.query(AvailableSlot.id)
            .filter(
                AvailableSlot.slot_date >= start,
                AvailableSlot.slot_date <= end,
                or_(AvailableSlot.updated_at > since, AvailableSlot.created_at > since),
            )
            .first()
        )
        if slot_hit:
            return True
        change_hit = (
            db.query(ScheduleChange.id)
            .filter(
                ScheduleChange.slot_date >= start,
                ScheduleChange.slot_date <= end,
                ScheduleChange.changed_at > since,
            )
            .first()
        )
        return change_hit is not None
