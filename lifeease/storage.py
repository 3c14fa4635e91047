"""
LOCAL STORE MODULE
==================

A tiny key/value store backed by one JSON file (database/client_state.json).
It plays the role the browser's localStorage plays for a web client: the
session id, the client-wide system prompt and the onboarding profile live here.

Every write replaces the whole file atomically (temp file + os.replace), so a
crash mid-write never leaves a half-written state file. With path=None the
store is memory-only, which is what the tests use.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Optional


logger = logging.getLogger("LifeEase")


class LocalStore:
    """JSON-file key/value store. Reads are served from memory; writes go through to disk."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else None
        self._lock = threading.RLock()
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            # Corrupt or unreadable state: start fresh rather than refuse to run.
            logger.warning("Could not load client state %s, starting empty: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Client state %s is not a JSON object, starting empty", self.path)
            return {}
        return data

    def _flush(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=self.path.name + ".", suffix=".tmp", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                json.dump(self._data, tmp, ensure_ascii=False, indent=2)
                tmp.write("\n")
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, str(self.path))
        finally:
            if os.path.exists(tmp_name):
                os.remove(tmp_name)

    # ------------------------------------------------------------------------------
    # PUBLIC API
    # ------------------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value
            self._flush()

    def remove(self, key: str) -> None:
        with self._lock:
            if key in self._data:
                del self._data[key]
                self._flush()

    @property
    def lock(self) -> threading.RLock:
        """Held by owners that need read-then-write on one key as a single step."""
        return self._lock
