"""
Client-side storage

Key/value stores standing in for the browser's durable and session storage,
plus the small records the checkout keeps there.
"""

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)

CART_STORAGE_KEY = "restaurant-cart"
INSTRUCTIONS_STORAGE_KEY = "restaurant-order-instructions"
DEBUG_LOG_STORAGE_KEY = "orderDebugLogs"
CSRF_STORAGE_KEY = "csrfToken"


class Storage:
    """Minimal key/value storage interface"""

    def get(self, key: str, default: Any = None) -> Any:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError

    def reload(self) -> None:
        """Pick up changes made by other writers; no-op for in-process stores"""


class MemoryStorage(Storage):
    """Short-lived storage that lasts as long as the process"""

    def __init__(self):
        self._data: dict[str, Any] = {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage(Storage):
    """
    Durable storage persisted to a single JSON file.

    Every write rewrites the file through a temporary sibling, so a crash
    mid-write leaves the previous contents intact. Write failures raise
    OSError and leave the in-memory view updated.
    """

    def __init__(self, path: Union[str, os.PathLike]):
        self.path = Path(path)
        self._data: dict[str, Any] = self._load()

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable storage file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Storage file {self.path} is not an object, ignoring it")
            return {}
        return data

    def reload(self) -> None:
        """Re-read the file, discarding the in-memory view"""
        self._data = self._load()

    def _flush(self) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(self._data, default=str), encoding="utf-8")
        os.replace(tmp_path, self.path)

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._flush()

    def remove(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._flush()


class InstructionsStore:
    """Special-instructions text kept between checkout visits"""

    def __init__(self, storage: Storage, key: str = INSTRUCTIONS_STORAGE_KEY):
        self.storage = storage
        self.key = key

    def get(self) -> str:
        value = self.storage.get(self.key)
        return value if isinstance(value, str) else ""

    def set(self, text: str) -> None:
        try:
            self.storage.set(self.key, text)
        except OSError as e:
            logger.warning(f"Could not save special instructions: {e}")

    def clear(self) -> None:
        try:
            self.storage.remove(self.key)
        except OSError as e:
            logger.warning(f"Could not clear special instructions: {e}")


class OrderDebugLog:
    """Bounded log of recent order-creation attempts, newest first"""

    def __init__(
        self,
        storage: Storage,
        max_entries: int = 5,
        key: str = DEBUG_LOG_STORAGE_KEY,
    ):
        self.storage = storage
        self.max_entries = max_entries
        self.key = key

    def entries(self) -> list[dict[str, Any]]:
        value = self.storage.get(self.key)
        return list(value) if isinstance(value, list) else []

    def record(self, message: str, data: Optional[dict[str, Any]] = None) -> None:
        entry = {
            "timestamp": datetime.now().isoformat(),
            "message": message,
            "data": data or {},
        }
        entries = [entry] + self.entries()
        try:
            self.storage.set(self.key, entries[: self.max_entries])
        except OSError as e:
            logger.warning(f"Could not write order debug log: {e}")

    def clear(self) -> None:
        try:
            self.storage.remove(self.key)
        except OSError as e:
            logger.warning(f"Could not clear order debug log: {e}")
