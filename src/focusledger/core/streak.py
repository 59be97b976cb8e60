"""Focus streak — consecutive low-distraction sessions."""

from __future__ import annotations

import logging

from focusledger.core.errors import PersistenceError
from focusledger.core.store import JsonStore

logger = logging.getLogger(__name__)

STREAK_KEY = "streak"

# A session extends the streak when it has fewer distractions than this.
DISTRACTION_THRESHOLD = 3


class StreakCounter:
    """A non-negative counter persisted under its own store key."""

    def __init__(self, store: JsonStore) -> None:
        self._store = store
        self._value: int = self._load()

    @property
    def value(self) -> int:
        return self._value

    def record_session(self, distraction_count: int) -> int:
        """Increment for a low-distraction session, otherwise reset.  Returns the new value."""
        if distraction_count < DISTRACTION_THRESHOLD:
            self._value += 1
        else:
            self._value = 0
        self._save()
        return self._value

    def reset(self) -> None:
        self._value = 0
        self._save()

    def _load(self) -> int:
        raw = self._store.read(STREAK_KEY, 0)
        if isinstance(raw, bool) or not isinstance(raw, int) or raw < 0:
            logger.warning("Ignoring invalid persisted streak %r", raw)
            return 0
        return raw

    def _save(self) -> None:
        try:
            self._store.write(STREAK_KEY, self._value)
        except PersistenceError as exc:
            logger.warning("Streak not persisted: %s", exc)
