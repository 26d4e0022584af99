"""JSON-file backed key-value preference store."""

from __future__ import annotations

import copy
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List

from vybegen.utils.files import read_json, write_json

logger = logging.getLogger(__name__)


class PreferenceStore:
    """Small persistent dictionary, rewritten atomically on every change.

    A missing or unreadable file loads as an empty store; write failures raise
    ``OSError`` so owners can decide how to degrade. The history store and the
    entitlement gate share one instance from different threads, so every
    mutate-and-write runs under a lock.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.RLock()
        self._values: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = read_json(self.path)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable preferences file %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring preferences file %s: expected an object", self.path)
            return {}
        return data

    def get(self, key: str, default: Any = None) -> Any:
        """Return a copy of the stored value so callers cannot mutate it in place."""
        with self._lock:
            if key not in self._values:
                return default
            return copy.deepcopy(self._values[key])

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            previous = self._values.get(key)
            had_key = key in self._values
            self._values[key] = copy.deepcopy(value)
            try:
                write_json(self.path, self._values)
            except OSError:
                if had_key:
                    self._values[key] = previous
                else:
                    self._values.pop(key, None)
                raise

    def remove(self, key: str) -> None:
        with self._lock:
            if key not in self._values:
                return
            previous = self._values.pop(key)
            try:
                write_json(self.path, self._values)
            except OSError:
                self._values[key] = previous
                raise

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._values.keys())

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._values
