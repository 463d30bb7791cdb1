"""Event bus for observing the journal engine.

A lightweight publish/subscribe system: the engine emits status and
lifecycle events, UI layers subscribe without the engine knowing about
them. Hooks can be sync or async; the engine emits from sync code, so
async hooks run as tasks on the running loop.

Usage::

    from sancho.core.events import EventBus, Event, JOURNAL_SYNC_STATUS

    bus = EventBus()

    def show_status(event: Event) -> None:
        print(event.payload["status"])

    bus.on(JOURNAL_SYNC_STATUS, show_status)
"""

from __future__ import annotations

import asyncio
import inspect
from collections import defaultdict
from dataclasses import dataclass, field
from time import time
from typing import Any

from loguru import logger

# ---------------------------------------------------------------------------
# Well-known event names
# ---------------------------------------------------------------------------

JOURNAL_SYNC_STATUS = "journal.sync.status"
JOURNAL_DOCUMENT_CREATED = "journal.document.created"
JOURNAL_DOCUMENT_SAVED = "journal.document.saved"
JOURNAL_DOCUMENT_DELETED = "journal.document.deleted"
JOURNAL_DOCUMENT_SELECTED = "journal.document.selected"
JOURNAL_LOADED = "journal.loaded"

# Callable[[Event], None] | Callable[[Event], Awaitable[None]]
Hook = Any


@dataclass(frozen=True)
class Event:
    """An immutable event that flows through the bus."""

    name: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time)
    source: str = ""


class EventBus:
    """Simple pub/sub event bus supporting sync and async hooks."""

    def __init__(self) -> None:
        self._hooks: dict[str, list[Hook]] = defaultdict(list)
        self._background_tasks: set[asyncio.Task] = set()  # keep fire-and-forget tasks alive

    def on(self, event_name: str, hook: Hook) -> None:
        """Register *hook* for a specific event name."""
        self._hooks[event_name].append(hook)

    def emit(self, event: Event) -> None:
        """Emit *event* to its hooks in registration order.

        Sync hooks run inline. Async hooks are scheduled as tasks when an
        event loop is running and skipped otherwise.
        """
        loop: asyncio.AbstractEventLoop | None = None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            pass

        for hook in list(self._hooks.get(event.name, [])):
            try:
                if inspect.iscoroutinefunction(hook):
                    if loop is not None:
                        task = loop.create_task(hook(event))
                        self._background_tasks.add(task)
                        task.add_done_callback(self._task_done)
                    else:
                        logger.debug(f"Skipping async hook {hook!r}: no running event loop")
                else:
                    hook(event)
            except Exception as exc:
                logger.warning(f"Event hook failed for {event.name}: {exc}")

    def _task_done(self, task: asyncio.Task) -> None:
        self._background_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning(f"Async event hook failed: {task.exception()}")
