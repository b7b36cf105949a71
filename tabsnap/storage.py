"""Flat key-value backends for persisted snapshot records."""

import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable


class KeyValueBackend(ABC):
    """Abstract base class for a flat, enumerable key-value namespace."""

    @abstractmethod
    def get_all(self) -> Dict[str, Any]:
        """Return a copy of every stored item keyed by its storage key."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store value under key, replacing any existing value."""
        pass

    @abstractmethod
    def remove(self, keys: Iterable[str]) -> None:
        """Remove keys; missing keys are ignored."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove every item."""
        pass


class MemoryBackend(KeyValueBackend):
    """In-process backend, used by tests and when persistence is disabled."""

    def __init__(self):
        self._items: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def get_all(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._items)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._items[key] = value

    def remove(self, keys: Iterable[str]) -> None:
        with self._lock:
            for key in keys:
                self._items.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()


class JsonFileBackend(KeyValueBackend):
    """Backend persisting the whole namespace as one JSON object on disk.

    Every mutation rewrites the file through a temporary file and
    ``os.replace`` so a crash never leaves a half-written store behind.
    """

    def __init__(self, path: str):
        self.path = path
        self.logger = logging.getLogger("TabSnap.Storage")
        self._lock = threading.Lock()

        directory = os.path.dirname(os.path.abspath(path))
        if not os.path.exists(directory):
            os.makedirs(directory)

        self._items = self._load()

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except Exception as e:
            self.logger.error(f"Error loading snapshot store {self.path}: {e}")
            return {}

        if not isinstance(data, dict):
            self.logger.warning(
                f"Snapshot store {self.path} is not a JSON object, starting empty"
            )
            return {}
        return data

    def _flush(self) -> None:
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w") as f:
            json.dump(self._items, f)
        os.replace(tmp_path, self.path)

    def get_all(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._items)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._items[key] = value
            self._flush()

    def remove(self, keys: Iterable[str]) -> None:
        with self._lock:
            removed = False
            for key in keys:
                if key in self._items:
                    del self._items[key]
                    removed = True
            if removed:
                self._flush()

    def clear(self) -> None:
        with self._lock:
            self._items = {}
            self._flush()
