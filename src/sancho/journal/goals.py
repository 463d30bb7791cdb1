"""Daily writing goal: words added today against a target."""

from __future__ import annotations

from collections.abc import Callable
from datetime import date

from .models import word_count
from .settings import JournalSettings


def _today() -> str:
    return date.today().isoformat()


class DailyGoalTracker:
    """Counts words written today.

    Progress only grows from positive word-count deltas within the same
    document. The first observation of a document, and any observation
    after switching to another one, just sets the baseline. A stored
    count from an earlier day reads as zero.

    Args:
        settings: Where goal and progress are persisted.
        today: Returns the current date as a string; injectable for tests.
    """

    def __init__(self, settings: JournalSettings, *, today: Callable[[], str] = _today):
        self._settings = settings
        self._today = today
        self._doc_id: str | None = None
        self._baseline = 0

    @property
    def goal(self) -> int:
        return self._settings.daily_goal

    @goal.setter
    def goal(self, words: int) -> None:
        self._settings.daily_goal = words

    @property
    def progress(self) -> int:
        stored_date, count = self._settings.daily_progress()
        return count if stored_date == self._today() else 0

    @property
    def percent(self) -> int:
        goal = self.goal
        if goal <= 0:
            return 0
        return min(100, round(self.progress / goal * 100))

    def reset(self) -> None:
        self._settings.set_daily_progress(self._today(), 0)

    def observe(self, doc_id: str | None, text: str) -> int:
        """Feed the current content of *doc_id*; returns the words credited."""
        words = word_count(text)
        if doc_id != self._doc_id:
            self._doc_id = doc_id
            self._baseline = words
            return 0

        added = words - self._baseline
        credited = 0
        # An empty baseline means the document was just opened blank or cleared.
        if added > 0 and self._baseline > 0:
            credited = added
            self._settings.set_daily_progress(self._today(), self.progress + added)
        self._baseline = words
        return credited
