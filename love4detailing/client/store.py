"""
Schedule store for the admin calendar.

Holds the viewed week's overview and the selected day's slots, and runs
every mutation through the same sequence:

1. apply the optimistic update and mark the mutation key loading
2. call the API
3. on success refresh the affected views, then clear the loading flag
4. on failure restore the pre-image, record the error and re-raise

The store does not serialize calls. Callers gate their controls on
is_loading(key).
"""

import asyncio
import itertools
import logging
import time
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

from .api import ScheduleApiClient, ScheduleApiError
from .optimistic import OptimisticUpdate, SlotInsertion, SlotRemoval, WorkingDayToggle
from .state import DayOverview, DaySlot, MutationState, ScheduleState

logger = logging.getLogger(__name__)

WEEK_OVERVIEW_KEY = "loadWeekOverview"
DAY_SLOTS_KEY = "loadDaySlots"

Listener = Callable[[ScheduleState], None]


def normalize_clock(value: str) -> str:
    """Accept HH:MM or HH:MM:SS and return HH:MM:SS, the format the API returns"""
    fmt = "%H:%M:%S" if value.count(":") == 2 else "%H:%M"
    return datetime.strptime(value, fmt).strftime("%H:%M:%S")


def end_time_for(start_time: str, duration_minutes: int) -> str:
    """End of a slot on the same day; raises ScheduleApiError when it would reach midnight"""
    start = datetime.strptime(normalize_clock(start_time), "%H:%M:%S")
    end = start + timedelta(minutes=duration_minutes)
    if end.date() != start.date():
        raise ScheduleApiError("Slot cannot cross midnight")
    return end.strftime("%H:%M:%S")


class ScheduleStore:
    def __init__(self, api: ScheduleApiClient, clock: Callable[[], float] = time.time):
        self.api = api
        self.state = ScheduleState()
        self.mutations: dict[str, MutationState] = {}
        self.optimistic_updates: dict[str, OptimisticUpdate] = {}
        self._clock = clock
        self._listeners: list[Listener] = []
        self._counter = itertools.count(1)

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called after every state change; returns an unsubscribe function"""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self.state)
            except Exception as e:
                logger.error(f"❌ Schedule store listener failed: {e}")

    # ------------------------------------------------------------------
    # Mutation state
    # ------------------------------------------------------------------

    def _start(self, key: str) -> None:
        self.mutations[key] = MutationState(is_loading=True)

    def _finish(self, key: str, error: Optional[str] = None) -> None:
        self.mutations[key] = MutationState(is_loading=False, error=error, last_updated=self._now_ms())

    def get_mutation_state(self, key: str) -> Optional[MutationState]:
        return self.mutations.get(key)

    def is_loading(self, key: Optional[str] = None) -> bool:
        if key is not None:
            mutation = self.mutations.get(key)
            return bool(mutation and mutation.is_loading)
        return any(m.is_loading for m in self.mutations.values())

    def errors(self) -> list[str]:
        """Every recorded error message, for banner display"""
        return [m.error for m in self.mutations.values() if m.error]

    def clear_error(self, key: str) -> None:
        mutation = self.mutations.get(key)
        if mutation and mutation.error:
            self.mutations[key] = MutationState(last_updated=mutation.last_updated)
            self._notify()

    # ------------------------------------------------------------------
    # Loads
    # ------------------------------------------------------------------

    async def _load(self, key: str, fetch: Callable[[], Awaitable], store_result: Callable, failure: str):
        self._start(key)
        self._notify()
        try:
            result = await fetch()
        except Exception as e:
            message = str(e) or failure
            logger.warning(f"⚠️ {failure}: {message}")
            self._finish(key, message)
            self._notify()
            if isinstance(e, ScheduleApiError):
                raise
            raise ScheduleApiError(message) from e

        store_result(result)
        self.state.last_sync = self._now_ms()
        self._finish(key)
        self._notify()

    async def load_week_overview(self, week_start: Optional[str] = None) -> None:
        start = week_start or self.state.current_week_start

        def store_result(days):
            self.state.week_overview = [DayOverview.from_dict(d) for d in days]
            self.state.current_week_start = start

        await self._load(
            WEEK_OVERVIEW_KEY,
            lambda: self.api.get_week_overview(start),
            store_result,
            "Failed to load week overview",
        )

    async def load_day_slots(self, date: str) -> None:
        def store_result(slots):
            self.state.day_slots = [DaySlot.from_dict(s) for s in slots]

        await self._load(
            DAY_SLOTS_KEY, lambda: self.api.get_day_slots(date), store_result, "Failed to load day slots"
        )

    def set_selected_date(self, date: Optional[str]) -> None:
        self.state.selected_date = date
        self._notify()

    async def refresh_data(self) -> None:
        """Reload the week and, when a day is selected, its slots. Raises on the first failure."""
        loads = [self.load_week_overview()]
        if self.state.selected_date:
            loads.append(self.load_day_slots(self.state.selected_date))
        await asyncio.gather(*loads)

    async def _selective_refresh(self, day: Optional[str]) -> None:
        loads = [self.load_week_overview()]
        if day:
            loads.append(self.load_day_slots(day))
        results = await asyncio.gather(*loads, return_exceptions=True)
        for result in results:
            # Already recorded under the load keys; the mutation itself succeeded
            if isinstance(result, Exception):
                logger.warning(f"⚠️ Refresh after mutation failed: {result}")

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def _mutate(
        self,
        key: str,
        update: Optional[OptimisticUpdate],
        call: Callable[[], Awaitable],
        refresh_day: Callable[[], Optional[str]],
        failure: str,
    ) -> None:
        # Per call, so overlapping calls on one key keep their own pre-images
        update_key = f"{key}#{next(self._counter)}"
        self._start(key)
        if update is not None:
            update.apply(self.state)
            self.optimistic_updates[update_key] = update
        self._notify()

        try:
            await call()
        except Exception as e:
            if update is not None:
                update.rollback(self.state)
            self.optimistic_updates.pop(update_key, None)
            message = str(e) or failure
            logger.warning(f"⚠️ {failure}: {message}")
            self._finish(key, message)
            self._notify()
            if isinstance(e, ScheduleApiError):
                raise
            raise ScheduleApiError(message) from e

        await self._selective_refresh(refresh_day())
        if update is not None:
            update.settle(self.state)
        self.optimistic_updates.pop(update_key, None)
        self._finish(key)
        self._notify()

    async def toggle_working_day(self, date: str, is_working: bool) -> None:
        await self._mutate(
            f"toggle_{date}",
            WorkingDayToggle(date, is_working),
            lambda: self.api.toggle_working_day(date, is_working),
            lambda: date if self.state.selected_date == date else None,
            "Failed to toggle working day",
        )

    async def add_slot(
        self, slot_date: str, start_time: str, duration_minutes: int, max_bookings: int = 1
    ) -> None:
        n = next(self._counter)
        start = normalize_clock(start_time)
        end = end_time_for(start, duration_minutes)
        update = None
        if self.state.selected_date == slot_date:
            update = SlotInsertion(
                DaySlot(
                    slot_id=f"temp_{n}",
                    slot_date=slot_date,
                    start_time=start,
                    end_time=end,
                    duration_minutes=duration_minutes,
                    max_bookings=max_bookings,
                )
            )
        await self._mutate(
            f"add_slot_{n}",
            update,
            lambda: self.api.add_slot(slot_date, start, duration_minutes, max_bookings),
            lambda: self.state.selected_date,
            "Failed to add slot",
        )

    async def delete_slot(self, slot_id: str) -> None:
        if self.state.slot_index(slot_id) is None:
            raise ScheduleApiError("Slot not found")
        await self._mutate(
            f"delete_slot_{slot_id}",
            SlotRemoval(slot_id),
            lambda: self.api.delete_slot(slot_id),
            lambda: self.state.selected_date,
            "Failed to delete slot",
        )
