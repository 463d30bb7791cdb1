"""Timing and policy settings for the journal sync engine.

Pure data with sensible defaults. Build one from a Config object with
``SyncConfig.from_config(config)`` or pass values directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sancho.core.exceptions import ConfigurationError


@dataclass(frozen=True)
class SyncConfig:
    """Settings for debounce, retry and entry switching.

    Attributes:
        save_delay: Quiet period (seconds) before an edit is autosaved.
        tag_extraction_delay: Quiet period before ``#tags`` are pulled from content.
        retry_base_delay: First backoff delay after a failed autosave.
        retry_max_delay: Backoff cap.
        max_retries: Retries after the first failed autosave before giving up.
        error_display_duration: Seconds a surfaced error message stays visible.
        switch_policy: ``"silent"`` (flush then switch) or ``"prompt"``.
        title_max_length: Characters kept when deriving a title from content.
    """

    save_delay: float = 2.5
    tag_extraction_delay: float = 1.5
    retry_base_delay: float = 1.0
    retry_max_delay: float = 8.0
    max_retries: int = 3
    error_display_duration: float = 5.0
    switch_policy: str = "silent"
    title_max_length: int = 30

    def __post_init__(self):
        for name in ("save_delay", "tag_extraction_delay", "retry_base_delay", "retry_max_delay"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"journal.{name} must be >= 0")
        if self.max_retries < 0:
            raise ConfigurationError("journal.max_retries must be >= 0")
        if self.switch_policy not in ("silent", "prompt"):
            raise ConfigurationError(f"journal.switch_policy must be 'silent' or 'prompt', got {self.switch_policy!r}")
        if self.title_max_length < 1:
            raise ConfigurationError("journal.title_max_length must be >= 1")

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt + 1``: base * 2**attempt, capped."""
        return min(self.retry_base_delay * (2**attempt), self.retry_max_delay)

    @classmethod
    def from_config(cls, config: Any) -> SyncConfig:
        """Read the ``journal.*`` section of a Config object."""
        defaults = cls()
        return cls(
            save_delay=config.get_float("journal.save_delay", defaults.save_delay),
            tag_extraction_delay=config.get_float("journal.tag_extraction_delay", defaults.tag_extraction_delay),
            retry_base_delay=config.get_float("journal.retry_base_delay", defaults.retry_base_delay),
            retry_max_delay=config.get_float("journal.retry_max_delay", defaults.retry_max_delay),
            max_retries=config.get_int("journal.max_retries", defaults.max_retries),
            error_display_duration=config.get_float(
                "journal.error_display_duration", defaults.error_display_duration
            ),
            switch_policy=str(config.get("journal.switch_policy", defaults.switch_policy)).lower(),
            title_max_length=config.get_int("journal.title_max_length", defaults.title_max_length),
        )
