"""Key/value storage tiers for per-viewer state.

Two tiers are provided: :class:`SessionStorage` keeps values in memory for
the lifetime of the page session, :class:`JSONStorage` persists them to a
single JSON file on every mutation. Both namespace user scoped keys with
the bound viewer id so that viewers sharing a device never see each
other's entries.
"""

from __future__ import annotations

import json
import logging
import os
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class UserStorage(ABC):
    """Abstract storage tier keyed by string."""

    prefix = "NoticeBanner"

    def __init__(self) -> None:
        self.user_id: str | None = None

    def set_user_id(self, user_id: str | None) -> None:
        """Bind the viewer whose keys ``user_scoped`` operations address."""
        self.user_id = user_id

    def full_key(self, key: str, user_scoped: bool = False) -> str:
        if user_scoped and self.user_id:
            return f"{self.prefix}_{self.user_id}_{key}"
        return f"{self.prefix}_{key}"

    # ------------------------------------------------------------------
    def get(self, key: str, user_scoped: bool = False, default: Any = None) -> Any:
        """Return the value stored under ``key`` or ``default``."""
        entry = self._read(self.full_key(key, user_scoped))
        if entry is None:
            return default
        return entry.get("data", default)

    def set(self, key: str, value: Any, user_scoped: bool = False) -> None:
        """Store ``value`` under ``key``.

        Raises :class:`OSError` when the backing medium cannot be written
        and :class:`TypeError` when ``value`` is not JSON serialisable.
        """
        self._write(
            self.full_key(key, user_scoped),
            {"data": value, "timestamp": time.time()},
        )

    def remove(self, key: str, user_scoped: bool = False) -> None:
        self._delete(self.full_key(key, user_scoped))

    # ------------------------------------------------------------------
    @abstractmethod
    def _read(self, full_key: str) -> dict[str, Any] | None:
        """Return the raw entry for ``full_key``."""

    @abstractmethod
    def _write(self, full_key: str, entry: dict[str, Any]) -> None:
        """Persist ``entry`` under ``full_key``."""

    @abstractmethod
    def _delete(self, full_key: str) -> None:
        """Drop ``full_key`` if present."""


class SessionStorage(UserStorage):
    """In-memory tier cleared when the session (process) ends."""

    def __init__(self) -> None:
        super().__init__()
        self._entries: dict[str, dict[str, Any]] = {}

    def _read(self, full_key: str) -> dict[str, Any] | None:
        return self._entries.get(full_key)

    def _write(self, full_key: str, entry: dict[str, Any]) -> None:
        # round-trip through json so both tiers reject the same values
        self._entries[full_key] = json.loads(json.dumps(entry))

    def _delete(self, full_key: str) -> None:
        self._entries.pop(full_key, None)

    def clear(self) -> None:
        self._entries.clear()


class JSONStorage(UserStorage):
    """Persistent tier backed by a JSON file.

    The storage is intentionally lightweight. Data is persisted to a single
    JSON file on every mutation which keeps the implementation simple while
    providing durability across process restarts.
    """

    def __init__(self, path: Path) -> None:
        """Initialise storage using JSON file at ``path``."""
        super().__init__()
        self.path = Path(path)
        self._entries: dict[str, dict[str, Any]] = {}
        if self.path.exists():
            self._load()

    # ------------------------------------------------------------------
    # Internal helpers
    def _load(self) -> None:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, ValueError):
            logger.warning("Could not read state file %s; starting empty", self.path, exc_info=True)
            return
        if not isinstance(data, dict):
            logger.warning("State file %s does not hold an object; starting empty", self.path)
            return
        self._entries = {
            k: v for k, v in data.items() if isinstance(v, dict) and "data" in v
        }

    def _save(self) -> None:
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(json.dumps(self._entries, indent=2), encoding="utf-8")
        os.replace(tmp, self.path)

    def _read(self, full_key: str) -> dict[str, Any] | None:
        return self._entries.get(full_key)

    def _write(self, full_key: str, entry: dict[str, Any]) -> None:
        previous = self._entries.get(full_key)
        self._entries[full_key] = entry
        try:
            self._save()
        except (OSError, TypeError):
            # keep memory and disk in agreement
            if previous is None:
                self._entries.pop(full_key, None)
            else:
                self._entries[full_key] = previous
            raise

    def _delete(self, full_key: str) -> None:
        if self._entries.pop(full_key, None) is not None:
            self._save()
