"""User-level journal settings kept in a key-value store."""

from __future__ import annotations

from typing import Any

from loguru import logger

from sancho.core.storage import KeyValueStore, MemoryKeyValueStore

DAILY_GOAL_KEY = "sancho_daily_goal"
DAILY_PROGRESS_KEY = "sancho_daily_progress"


class JournalSettings:
    """Daily goal and progress, persisted through an injected ``KeyValueStore``.

    Values are validated on the way in and on the way out: a corrupt entry
    reads as the default instead of raising.
    """

    def __init__(self, store: KeyValueStore | None = None):
        self.store = store if store is not None else MemoryKeyValueStore()

    @property
    def daily_goal(self) -> int:
        raw = self.store.get(DAILY_GOAL_KEY, 0)
        try:
            return max(0, int(raw))
        except (TypeError, ValueError):
            logger.warning(f"Ignoring invalid daily goal setting: {raw!r}")
            return 0

    @daily_goal.setter
    def daily_goal(self, words: int) -> None:
        if words < 0:
            raise ValueError("Daily goal must be >= 0")
        self.store.set(DAILY_GOAL_KEY, int(words))

    def daily_progress(self) -> tuple[str | None, int]:
        """``(date, count)`` as last stored, ``(None, 0)`` when absent."""
        raw: Any = self.store.get(DAILY_PROGRESS_KEY)
        if not isinstance(raw, dict):
            return None, 0
        try:
            return raw.get("date"), max(0, int(raw.get("count", 0)))
        except (TypeError, ValueError):
            return None, 0

    def set_daily_progress(self, date: str, count: int) -> None:
        self.store.set(DAILY_PROGRESS_KEY, {"date": date, "count": int(count)})
