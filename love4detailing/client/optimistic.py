"""
Optimistic updates for schedule mutations.

Each update captures whatever it replaces when applied, so rollback puts
back the exact original objects rather than a recomputed copy.
"""

from dataclasses import dataclass, replace
from typing import ClassVar, Optional, Union

from .state import DayOverview, DaySlot, ScheduleState


@dataclass
class WorkingDayToggle:
    kind: ClassVar[str] = "toggle_working_day"

    day_date: str
    is_working: bool
    original: Optional[DayOverview] = None

    def apply(self, state: ScheduleState) -> None:
        index = state.day_index(self.day_date)
        if index is None:
            return
        self.original = state.week_overview[index]
        if self.is_working:
            updated = replace(self.original, is_working_day=True)
        else:
            updated = replace(
                self.original, is_working_day=False, total_slots=0, available_slots=0, booked_slots=0
            )
        state.week_overview[index] = updated

    def rollback(self, state: ScheduleState) -> None:
        if self.original is None:
            return
        index = state.day_index(self.day_date)
        if index is not None:
            state.week_overview[index] = self.original

    def settle(self, state: ScheduleState) -> None:
        pass


@dataclass
class SlotInsertion:
    kind: ClassVar[str] = "add_slot"

    slot: DaySlot

    def apply(self, state: ScheduleState) -> None:
        state.insert_slot_sorted(self.slot)

    def rollback(self, state: ScheduleState) -> None:
        index = state.slot_index(self.slot.slot_id)
        if index is not None:
            del state.day_slots[index]

    def settle(self, state: ScheduleState) -> None:
        # A successful refresh already replaced the temporary row
        self.rollback(state)


@dataclass
class SlotRemoval:
    kind: ClassVar[str] = "delete_slot"

    slot_id: str
    original: Optional[DaySlot] = None

    def apply(self, state: ScheduleState) -> None:
        index = state.slot_index(self.slot_id)
        if index is None:
            return
        self.original = state.day_slots.pop(index)

    def rollback(self, state: ScheduleState) -> None:
        if self.original is None or state.slot_index(self.slot_id) is not None:
            return
        state.insert_slot_sorted(self.original)

    def settle(self, state: ScheduleState) -> None:
        pass


OptimisticUpdate = Union[WorkingDayToggle, SlotInsertion, SlotRemoval]
