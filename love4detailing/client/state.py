"""Client-side schedule state"""

from dataclasses import dataclass, field, fields
from datetime import date, timedelta
from typing import Optional


def _from_dict(cls, data: dict):
    names = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in names})


@dataclass(frozen=True)
class DayOverview:
    day_date: str
    day_name: str
    is_working_day: bool
    total_slots: int = 0
    available_slots: int = 0
    booked_slots: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> "DayOverview":
        return _from_dict(cls, data)


@dataclass(frozen=True)
class DaySlot:
    slot_id: str
    start_time: str
    end_time: str
    duration_minutes: int
    max_bookings: int = 1
    current_bookings: int = 0
    is_available: bool = True
    slot_date: Optional[str] = None
    is_blocked: bool = False
    block_reason: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "DaySlot":
        return _from_dict(cls, data)


@dataclass
class MutationState:
    is_loading: bool = False
    error: Optional[str] = None
    last_updated: Optional[int] = None


def current_week_start(today: Optional[date] = None) -> str:
    today = today or date.today()
    return (today - timedelta(days=today.weekday())).isoformat()


@dataclass
class ScheduleState:
    week_overview: list[DayOverview] = field(default_factory=list)
    day_slots: list[DaySlot] = field(default_factory=list)
    selected_date: Optional[str] = None
    current_week_start: str = field(default_factory=current_week_start)
    # epoch milliseconds of the last successful load
    last_sync: int = 0

    def day_index(self, day_date: str) -> Optional[int]:
        for i, day in enumerate(self.week_overview):
            if day.day_date == day_date:
                return i
        return None

    def slot_index(self, slot_id: str) -> Optional[int]:
        for i, slot in enumerate(self.day_slots):
            if slot.slot_id == slot_id:
                return i
        return None

    def insert_slot_sorted(self, slot: DaySlot) -> None:
        self.day_slots.append(slot)
        self.day_slots.sort(key=lambda s: s.start_time)
