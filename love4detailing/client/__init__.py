"""Admin schedule client: API wrapper, optimistic store and background sync"""

from .api import ScheduleApiClient, ScheduleApiError
from .persistence import FileStateStorage, MemoryStateStorage, StateStorage
from .store import ScheduleStore
from .sync import ScheduleSyncManager, SyncConfig

__all__ = [
    "FileStateStorage",
    "MemoryStateStorage",
    "ScheduleApiClient",
    "ScheduleApiError",
    "ScheduleStore",
    "ScheduleSyncManager",
    "StateStorage",
    "SyncConfig",
]
