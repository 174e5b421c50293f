"""Key/value storage for the schedule client's navigation state"""

import json
import logging
import os
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


class StateStorage:
    """Stores JSON-serializable dicts by key"""

    def get(self, key: str) -> Optional[dict]:
        raise NotImplementedError

    def set(self, key: str, value: dict) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError


class MemoryStateStorage(StateStorage):
    def __init__(self):
        self.items: dict[str, str] = {}

    def get(self, key: str) -> Optional[dict]:
        raw = self.items.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: dict) -> None:
        self.items[key] = json.dumps(value)

    def remove(self, key: str) -> None:
        self.items.pop(key, None)


class FileStateStorage(StateStorage):
    """One JSON file per key under a directory"""

    def __init__(self, directory: Union[str, Path, None] = None):
        self.directory = Path(
            directory or os.getenv("LOVE4DETAILING_STATE_DIR", Path.home() / ".love4detailing")
        )

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[dict]:
        path = self._path(key)
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    def set(self, key: str, value: dict) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(value), encoding="utf-8")
        os.replace(tmp, path)

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)
