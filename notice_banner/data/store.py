"""Per-viewer dismissal and hide state."""

from __future__ import annotations

import logging

from ..core.storage import UserStorage
from .models import DismissalState

logger = logging.getLogger(__name__)

DISMISSED_KEY = "DismissedAlerts"
HIDDEN_KEY = "HiddenAlerts"


class DismissalStore:
    """Dismissed ids live in the session tier, hidden ids in the persistent one.

    Every mutation is written back before the call returns. A failed write
    is logged and the in-memory change is kept, so the dismissal still takes
    effect for the current render.
    """

    def __init__(
        self,
        session: UserStorage,
        persistent: UserStorage,
        cap: int = 500,
    ) -> None:
        self.session = session
        self.persistent = persistent
        self.cap = cap
        self.viewer_id: str | None = None
        # insertion ordered, oldest first
        self._dismissed: list[str] = []
        self._hidden: list[str] = []

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------
    def bind(self, viewer_id: str | None) -> None:
        """Load the state stored for ``viewer_id``."""
        if viewer_id == self.viewer_id:
            return
        self.viewer_id = viewer_id
        self.session.set_user_id(viewer_id)
        self.persistent.set_user_id(viewer_id)
        if viewer_id is None:
            self._dismissed, self._hidden = [], []
            return
        self._dismissed = self._load(self.session, DISMISSED_KEY)
        self._hidden = self._load(self.persistent, HIDDEN_KEY)

    def _load(self, storage: UserStorage, key: str) -> list[str]:
        try:
            raw = storage.get(key, user_scoped=True, default=[])
        except Exception:
            logger.warning("Could not read %s for viewer %s", key, self.viewer_id, exc_info=True)
            return []
        if not isinstance(raw, list):
            return []
        ids: list[str] = []
        for item in raw:
            item = str(item)
            if item not in ids:
                ids.append(item)
        return ids[-self.cap:] if self.cap > 0 else ids

    def _save(self, storage: UserStorage, key: str, ids: list[str]) -> None:
        if self.viewer_id is None:
            # nothing to namespace the entry with; memory only
            return
        try:
            storage.set(key, list(ids), user_scoped=True)
        except (OSError, TypeError):
            logger.exception("Failed to persist %s for viewer %s", key, self.viewer_id)

    def _add(self, ids: list[str], notice_id: str) -> bool:
        if notice_id in ids:
            return False
        ids.append(notice_id)
        if self.cap > 0 and len(ids) > self.cap:
            del ids[: len(ids) - self.cap]
        return True

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def dismiss(self, notice_id: str) -> None:
        if notice_id in self._hidden:
            return
        if self._add(self._dismissed, notice_id):
            self._save(self.session, DISMISSED_KEY, self._dismissed)

    def hide(self, notice_id: str) -> None:
        if self._add(self._hidden, notice_id):
            self._save(self.persistent, HIDDEN_KEY, self._hidden)
        if notice_id in self._dismissed:
            # the two sets stay disjoint
            self._dismissed.remove(notice_id)
            self._save(self.session, DISMISSED_KEY, self._dismissed)

    def unhide(self, notice_id: str) -> bool:
        if notice_id not in self._hidden:
            return False
        self._hidden.remove(notice_id)
        self._save(self.persistent, HIDDEN_KEY, self._hidden)
        return True

    def clear_dismissed(self) -> None:
        self._dismissed = []
        self._save(self.session, DISMISSED_KEY, self._dismissed)

    def dismissed(self) -> list[str]:
        return list(self._dismissed)

    def hidden(self) -> list[str]:
        return list(self._hidden)

    def state(self) -> DismissalState:
        return DismissalState(
            dismissed=frozenset(self._dismissed),
            hidden=frozenset(self._hidden),
        )
