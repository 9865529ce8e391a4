"""
Preference Store - Durable Key-Value Persistence

Holds saved searches, voice history, weight presets, recent searches and
the last used voice language. Values must be JSON-serialisable.

Each ``update`` call is a read-modify-write of one key; if two updates
race, the last writer wins.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional


logger = logging.getLogger(__name__)


class PreferenceStore(ABC):
    """Abstract key-value store for user preferences."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return a copy of the value stored under ``key``."""
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``."""
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key`` if present."""
        ...

    def update(self, key: str, fn: Callable[[Any], Any], default: Any = None) -> Any:
        """
        Read-modify-write a single key.

        ``fn`` receives the current value (or ``default``) and returns the new
        value. If ``fn`` raises, nothing is written.
        """
        new_value = fn(self.get(key, default))
        self.set(key, new_value)
        return new_value


class InMemoryPreferenceStore(PreferenceStore):
    """Process-local store for development and tests."""

    def __init__(self, initial: Optional[dict] = None):
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return copy.deepcopy(default)
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFilePreferenceStore(PreferenceStore):
    """
    Preference store persisted to a single JSON file.

    The file is rewritten on every change via a temporary file and an
    atomic rename.
    """

    def __init__(self, path: str):
        """
        Initialise store.

        Args:
            path: JSON file location; created on first write
        """
        self._path = Path(path)
        self._data: dict[str, Any] = {}
        if self._path.exists():
            self._load_from_file()

    @property
    def path(self) -> Path:
        return self._path

    def _load_from_file(self) -> None:
        """Load data from file."""
        try:
            payload = json.loads(self._path.read_text())
            self._data = payload.get("preferences", {})
        except (json.JSONDecodeError, AttributeError, OSError) as e:
            # Unreadable file: start fresh, the next write replaces it
            logger.warning("Could not load preferences from %s: %s", self._path, e)
            self._data = {}

    def _save_to_file(self) -> None:
        """Persist data to file."""
        payload = {
            "preferences": self._data,
            "saved_at": datetime.now(timezone.utc).isoformat(),
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as handle:
                json.dump(payload, handle, indent=2)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return copy.deepcopy(default)
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)
        self._save_to_file()

    def delete(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._save_to_file()
