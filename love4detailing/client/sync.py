"""
Background synchronization for the schedule store.

Two independent loops run while the manager is active:
- a background refresh every background_sync_interval seconds, skipped when
  the view has been idle for two intervals or a mutation is in flight
- a cheap check-updates poll that triggers a refresh when another admin
  changed the schedule

Navigation state (selected date, week start, last sync) is persisted on
every store change and restored on start when fresh enough.
"""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass, replace
from typing import Callable, Optional

from .api import ScheduleApiClient
from .persistence import FileStateStorage, StateStorage
from .state import ScheduleState
from .store import ScheduleStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncConfig:
    background_sync_interval: float = 30.0
    enable_background_sync: bool = True
    enable_state_persistence: bool = True
    enable_realtime_updates: bool = True
    persistence_key: str = "love4detailing_schedule_state"
    # Total attempts per background poll
    max_retries: int = 3
    retry_delay: float = 1.0
    realtime_check_interval: float = 10.0
    persistence_max_age: float = 3600.0


class ScheduleSyncManager:
    def __init__(
        self,
        store: ScheduleStore,
        api: Optional[ScheduleApiClient] = None,
        storage: Optional[StateStorage] = None,
        config: Optional[SyncConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.api = api or store.api
        self.storage = storage or FileStateStorage()
        self.config = config or SyncConfig()
        self._clock = clock
        self.is_active = False
        self.last_sync_timestamp = 0
        self.retry_count = 0
        self._tasks: list[asyncio.Task] = []
        self._unsubscribe: Optional[Callable[[], None]] = None

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def start(self) -> None:
        if self.is_active:
            logger.warning("ScheduleSyncManager is already active")
            return

        self.is_active = True
        await self._load_persisted_state()

        if self.config.enable_background_sync:
            self._tasks.append(asyncio.create_task(self._background_loop()))
        if self.config.enable_state_persistence:
            self._unsubscribe = self.store.subscribe(self._persist_state)
        if self.config.enable_realtime_updates:
            self._tasks.append(asyncio.create_task(self._realtime_loop()))

        logger.info(f"🔄 ScheduleSyncManager started with config: {self.config}")

    async def stop(self) -> None:
        if not self.is_active:
            return

        self.is_active = False
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("ScheduleSyncManager stopped")

    # ------------------------------------------------------------------
    # Background refresh
    # ------------------------------------------------------------------

    async def _background_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.background_sync_interval)
            await self.perform_background_sync()

    async def perform_background_sync(self, force: bool = False) -> bool:
        """
        Refresh the store, retrying with a fixed delay.

        Returns True when a refresh completed. Never raises; after the last
        failed attempt the retry counter resets and the next interval tries again.
        """
        if not self.is_active:
            return False

        state = self.store.state
        idle_ms = self._now_ms() - state.last_sync
        if not force and idle_ms > self.config.background_sync_interval * 2 * 1000:
            return False

        if self.store.is_loading():
            logger.info("Skipping background sync - mutations in progress")
            return False

        for attempt in range(1, self.config.max_retries + 1):
            try:
                await self.store.refresh_data()
            except Exception as e:
                self.retry_count = attempt
                if attempt < self.config.max_retries:
                    logger.warning(
                        f"⚠️ Background sync failed ({e}), retrying in {self.config.retry_delay}s "
                        f"(attempt {attempt}/{self.config.max_retries})"
                    )
                    await asyncio.sleep(self.config.retry_delay)
                    continue
                logger.error(f"❌ Background sync failed after {attempt} attempts: {e}")
                self.retry_count = 0
                return False

            self.last_sync_timestamp = self._now_ms()
            self.retry_count = 0
            logger.info("✅ Background sync completed")
            return True
        return False

    async def force_sync(self) -> bool:
        if not self.is_active:
            raise RuntimeError("ScheduleSyncManager is not active")
        return await self.perform_background_sync(force=True)

    # ------------------------------------------------------------------
    # Updates made by other admins
    # ------------------------------------------------------------------

    async def _realtime_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.realtime_check_interval)
            await self.check_for_updates()

    async def check_for_updates(self) -> bool:
        state = self.store.state
        try:
            if not await self.api.check_updates(state.last_sync, state.current_week_start):
                return False
            logger.info("Schedule changed on the server, refreshing")
            await self.store.refresh_data()
            return True
        except Exception as e:
            # Non-critical; the background refresh catches up
            logger.debug(f"Update check failed: {e}")
            return False

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _persist_state(self, state: ScheduleState) -> None:
        if not self.is_active:
            return
        snapshot = {
            "selectedDate": state.selected_date,
            "currentWeekStart": state.current_week_start,
            "lastSync": state.last_sync,
            "timestamp": self._now_ms(),
        }
        try:
            self.storage.set(self.config.persistence_key, snapshot)
        except Exception as e:
            logger.warning(f"⚠️ Failed to persist schedule state: {e}")

    async def _load_persisted_state(self) -> None:
        key = self.config.persistence_key
        try:
            saved = self.storage.get(key)
        except Exception as e:
            logger.warning(f"⚠️ Failed to load persisted schedule state: {e}")
            self.storage.remove(key)
            return
        if not saved:
            return

        timestamp = saved.get("timestamp")
        is_recent = bool(timestamp) and self._now_ms() - timestamp < self.config.persistence_max_age * 1000
        if not is_recent:
            self.storage.remove(key)
            return

        if saved.get("selectedDate"):
            self.store.set_selected_date(saved["selectedDate"])
        if saved.get("currentWeekStart"):
            try:
                await self.store.load_week_overview(saved["currentWeekStart"])
            except Exception as e:
                logger.warning(f"⚠️ Could not reload persisted week {saved['currentWeekStart']}: {e}")
        logger.info(f"Restored persisted schedule state: {saved}")

    # ------------------------------------------------------------------
    # Status and configuration
    # ------------------------------------------------------------------

    def get_sync_status(self) -> dict:
        return {
            "is_active": self.is_active,
            "last_sync_timestamp": self.last_sync_timestamp,
            "retry_count": self.retry_count,
            "config": asdict(self.config),
        }

    async def update_config(self, **changes) -> None:
        """Apply config changes, restarting the loops when running"""
        self.config = replace(self.config, **changes)
        if self.is_active:
            await self.stop()
            await self.start()
