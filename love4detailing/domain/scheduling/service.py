"""Schedule service - working days, slot management and week aggregation"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ... import config
from ...models import (
    BLOCK_REASON_ADMIN,
    BLOCK_REASON_FULLY_BOOKED,
    BLOCK_REASON_NON_WORKING_DAY,
    AvailableSlot,
    Booking,
    User,
)
from ...shared.errors import ConflictError, ScheduleError, SlotHasBookingsError, SlotNotFoundError, SlotOverlapError
from ...shared.validators import parse_clock_time
from .repository import ScheduleRepository
from .schemas import (
    ActionResult,
    AddSlotRequest,
    BlockSlotRequest,
    CheckUpdatesResponse,
    DayOverview,
    DaySlot,
    DeleteSlotRequest,
    ScheduleAction,
    ToggleWorkingDayRequest,
)

logger = logging.getLogger(__name__)


def week_start_for(day: date) -> date:
    """Monday of the week containing `day`"""
    return day - timedelta(days=day.weekday())


def add_minutes(start, minutes: int):
    """Wall-clock end time; returns None when the result would cross midnight"""
    start_dt = datetime.combine(date.min, start)
    end_dt = start_dt + timedelta(minutes=minutes)
    if end_dt.date() != date.min:
        return None
    return end_dt.time()


def slot_to_schema(slot: AvailableSlot) -> DaySlot:
    return DaySlot(
        slot_id=slot.id,
        slot_date=slot.slot_date,
        start_time=slot.start_time.strftime("%H:%M:%S"),
        end_time=slot.end_time.strftime("%H:%M:%S"),
        duration_minutes=slot.duration_minutes,
        max_bookings=slot.max_bookings,
        current_bookings=slot.current_bookings,
        is_available=slot.is_available,
        is_blocked=slot.is_blocked,
        block_reason=slot.block_reason,
    )


def summarize_day(day: date, slots: list[AvailableSlot], non_working: bool = False) -> DayOverview:
    """
    Aggregate one date. A date marked non-working reports no slots; otherwise
    slots soft-blocked as non-working do not count, and an effective slot is
    booked when it holds any booking, otherwise available.
    """
    if non_working:
        slots = []
    effective = [s for s in slots if s.block_reason != BLOCK_REASON_NON_WORKING_DAY]
    total = len(effective)
    booked = sum(1 for s in effective if s.current_bookings > 0)
    return DayOverview(
        day_date=day,
        day_name=day.strftime("%A"),
        is_working_day=total > 0,
        total_slots=total,
        available_slots=total - booked,
        booked_slots=booked,
    )


def generate_day_slots(db: Session, slot_date: date) -> list[AvailableSlot]:
    """
    Create the default day template for a date that has no slots yet.
    Flushes but does not commit. Returns the created slots (empty if the date
    already had slots, including when another writer got there first, or is
    marked non-working).
    """
    repo = ScheduleRepository()
    if repo.is_non_working(db, slot_date):
        return []
    if repo.count_slots_for_date(db, slot_date) > 0:
        return []

    created = []
    try:
        with db.begin_nested():
            for start_str in config.DEFAULT_SLOT_TIMES:
                start = parse_clock_time(start_str.strip())
                end = add_minutes(start, config.DEFAULT_SLOT_DURATION_MINUTES)
                if end is None:
                    logger.warning(f"⚠️ Skipping template slot {start_str}: crosses midnight")
                    continue
                created.append(
                    repo.add_slot(
                        db,
                        slot_date=slot_date,
                        start_time=start,
                        end_time=end,
                        max_bookings=config.DEFAULT_SLOT_MAX_BOOKINGS,
                        current_bookings=0,
                        is_blocked=False,
                        day_of_week=slot_date.isoweekday(),
                    )
                )
    except IntegrityError:
        logger.info(f"ℹ️ Slots for {slot_date} were generated concurrently, keeping existing rows")
        return []

    logger.info(f"🗓️ Generated {len(created)} default slots for {slot_date}")
    return created


class ScheduleService:
    """Service layer for the admin schedule"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ScheduleRepository()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_week_overview(self, week_start: Optional[date] = None) -> list[DayOverview]:
        start = week_start or week_start_for(date.today())
        end = start + timedelta(days=6)
        slots = self.repo.get_slots_between(self.db, start, end)
        closed = self.repo.get_non_working_between(self.db, start, end)

        by_day: dict[date, list[AvailableSlot]] = {start + timedelta(days=i): [] for i in range(7)}
        for slot in slots:
            by_day[slot.slot_date].append(slot)

        return [summarize_day(day, day_slots, day in closed) for day, day_slots in by_day.items()]

    def get_day_slots(self, slot_date: date) -> list[DaySlot]:
        return [slot_to_schema(s) for s in self.repo.get_slots_for_date(self.db, slot_date)]

    def check_updates(self, last_sync_ms: int, week_start: Optional[date] = None) -> CheckUpdatesResponse:
        start = week_start or week_start_for(date.today())
        end = start + timedelta(days=6)
        # Stored timestamps are naive UTC
        since = datetime.fromtimestamp(last_sync_ms / 1000, tz=timezone.utc).replace(tzinfo=None)
        has_updates = self.repo.has_changes_since(self.db, since, start, end)
        server_time = int(datetime.now(tz=timezone.utc).timestamp() * 1000)
        return CheckUpdatesResponse(hasUpdates=has_updates, serverTime=server_time)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def handle_action(self, request, admin: User) -> ActionResult:
        handler = getattr(self, ACTION_HANDLERS[ScheduleAction(request.action)])
        try:
            result = handler(request, admin)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"✅ Schedule action {request.action} by {admin.email}: {result.message}")
        return result

    def toggle_working_day(self, request: ToggleWorkingDayRequest, admin: User) -> ActionResult:
        day = request.date
        if request.is_working:
            self.repo.clear_non_working(self.db, day)
            if self.repo.count_slots_for_date(self.db, day) == 0:
                created = generate_day_slots(self.db, day)
                affected = len(created)
                message = f"{day} is now a working day ({affected} slots created)"
            else:
                affected = self.repo.open_day(self.db, day)
                message = f"{day} is now a working day ({affected} slots reopened)"
        else:
            self.repo.mark_non_working(self.db, day, marked_by=admin.id)
            affected = self.repo.close_day(self.db, day)
            message = f"{day} is now a non-working day ({affected} slots closed)"

        self.repo.log_change(
            self.db,
            "working_day_on" if request.is_working else "working_day_off",
            day,
            changed_by=admin.id,
        )
        return ActionResult(message=message, affected_slots=affected)

    def add_slot(self, request: AddSlotRequest, admin: User) -> ActionResult:
        if self.repo.is_non_working(self.db, request.slot_date):
            raise ConflictError(
                f"{request.slot_date} is a non-working day",
                details="Turn the day back on with action 'toggle_working_day' first",
            )
        start = parse_clock_time(request.start_time)
        end = add_minutes(start, request.duration_minutes)
        if end is None:
            raise ScheduleError(
                "Slot cannot cross midnight",
                details=f"{request.start_time} + {request.duration_minutes} minutes ends the next day",
            )

        for other in self.repo.get_slots_for_date(self.db, request.slot_date):
            if start < other.end_time and other.start_time < end:
                raise SlotOverlapError(
                    "Slot overlaps an existing slot",
                    details=(
                        f"Existing slot {other.start_time.strftime('%H:%M')}-"
                        f"{other.end_time.strftime('%H:%M')} on {request.slot_date}"
                    ),
                )

        slot = self.repo.add_slot(
            self.db,
            slot_date=request.slot_date,
            start_time=start,
            end_time=end,
            max_bookings=request.max_bookings,
            current_bookings=0,
            is_blocked=False,
            day_of_week=request.slot_date.isoweekday(),
        )
        self.repo.log_change(self.db, "add_slot", request.slot_date, slot.id, admin.id)
        return ActionResult(
            message=f"Slot added {start.strftime('%H:%M')}-{end.strftime('%H:%M')} on {request.slot_date}",
            slot_id=slot.id,
        )

    def delete_slot(self, request: DeleteSlotRequest, admin: User) -> ActionResult:
        slot = self.repo.get_slot(self.db, request.slot_id)
        if not slot:
            raise SlotNotFoundError(request.slot_id)
        if slot.current_bookings > 0:
            raise SlotHasBookingsError(slot.current_bookings)
        if self.db.query(Booking.id).filter(Booking.slot_id == slot.id).first():
            raise ConflictError(
                "Slot has booking history and cannot be deleted",
                details="Block it with action 'block_slot' instead",
            )

        slot_date = slot.slot_date
        self.repo.delete_slot(self.db, slot)
        if self.repo.count_slots_for_date(self.db, slot_date) == 0:
            # An emptied day stays closed; slot generation must not refill it
            self.repo.mark_non_working(self.db, slot_date, marked_by=admin.id)
        self.repo.log_change(self.db, "delete_slot", slot_date, request.slot_id, admin.id)
        return ActionResult(message="Slot deleted", slot_id=request.slot_id)

    def block_slot(self, request: BlockSlotRequest, admin: User) -> ActionResult:
        slot = self.repo.get_slot(self.db, request.slot_id)
        if not slot:
            raise SlotNotFoundError(request.slot_id)

        if request.is_blocked:
            slot.is_blocked = True
            slot.block_reason = BLOCK_REASON_ADMIN
            message = "Slot blocked"
        elif slot.current_bookings >= slot.max_bookings:
            # A full slot stays closed whatever the admin asks
            slot.is_blocked = True
            slot.block_reason = BLOCK_REASON_FULLY_BOOKED
            message = "Slot is fully booked and remains closed"
        elif self.repo.is_non_working(self.db, slot.slot_date):
            slot.is_blocked = True
            slot.block_reason = BLOCK_REASON_NON_WORKING_DAY
            message = "Slot is on a non-working day and remains closed"
        else:
            slot.is_blocked = False
            slot.block_reason = None
            message = "Slot unblocked"

        self.db.flush()
        self.repo.log_change(self.db, "block_slot", slot.slot_date, slot.id, admin.id)
        return ActionResult(message=message, slot_id=slot.id)


ACTION_HANDLERS: dict[ScheduleAction, str] = {
    ScheduleAction.TOGGLE_WORKING_DAY: "toggle_working_day",
    ScheduleAction.ADD_SLOT: "add_slot",
    ScheduleAction.DELETE_SLOT: "delete_slot",
    ScheduleAction.BLOCK_SLOT: "block_slot",
}

_missing = set(ScheduleAction) - set(ACTION_HANDLERS)
if _missing:
    raise RuntimeError(f"Schedule actions without a handler: {sorted(a.value for a in _missing)}")
