"""Sync scheduler: debounced autosave with bounded exponential backoff.

Status moves through an explicit transition table::

    synced --edit--> local --(debounce)--> save --ok--> synced
                                                 --fail--> error --edit--> local
    local --discard--> synced
    any --manual_save--> syncing --ok/fail--> synced/error
    error --retry--> syncing

Each document has its own status and error message; the scheduler exposes
the ones of the active document. A retry still running for an entry the
user has left never changes what the open entry shows.

Background autosaves never surface ``syncing`` so the indicator does not
flicker on every pause in typing.

Timers are single handles held by the scheduler and cleared before being
re-armed: one debounce handle for the active document, one retry handle
and one error auto-clear handle per document id.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import StrEnum
from functools import partial
from typing import TYPE_CHECKING

from loguru import logger

from sancho.core.exceptions import InvalidTransitionError

from .models import JournalDocument, derive_title, stamp

if TYPE_CHECKING:
    from .clock import Clock, TimerHandle
    from .config import SyncConfig
    from .cursor import DocumentCursor
    from .gateway import PersistenceGateway
    from .store import DocumentStore


class SyncStatus(StrEnum):
    """User-visible summary of local vs. persisted state."""

    SYNCED = "synced"
    LOCAL = "local"
    SYNCING = "syncing"
    ERROR = "error"


class SyncEvent(StrEnum):
    EDIT = "edit"
    MANUAL_SAVE = "manual_save"
    RETRY = "retry"
    SAVE_SUCCEEDED = "save_succeeded"
    SAVE_FAILED = "save_failed"
    DISCARD = "discard"


_S = SyncStatus
_E = SyncEvent

TRANSITIONS: dict[tuple[SyncStatus, SyncEvent], SyncStatus] = {
    (_S.SYNCED, _E.EDIT): _S.LOCAL,
    (_S.LOCAL, _E.EDIT): _S.LOCAL,
    (_S.SYNCING, _E.EDIT): _S.SYNCING,
    (_S.ERROR, _E.EDIT): _S.LOCAL,
    (_S.SYNCED, _E.MANUAL_SAVE): _S.SYNCING,
    (_S.LOCAL, _E.MANUAL_SAVE): _S.SYNCING,
    (_S.SYNCING, _E.MANUAL_SAVE): _S.SYNCING,
    (_S.ERROR, _E.MANUAL_SAVE): _S.SYNCING,
    (_S.SYNCED, _E.RETRY): _S.SYNCED,
    (_S.LOCAL, _E.RETRY): _S.LOCAL,
    (_S.SYNCING, _E.RETRY): _S.SYNCING,
    (_S.ERROR, _E.RETRY): _S.SYNCING,
    (_S.SYNCED, _E.SAVE_SUCCEEDED): _S.SYNCED,
    (_S.LOCAL, _E.SAVE_SUCCEEDED): _S.SYNCED,
    (_S.SYNCING, _E.SAVE_SUCCEEDED): _S.SYNCED,
    (_S.ERROR, _E.SAVE_SUCCEEDED): _S.SYNCED,
    (_S.SYNCED, _E.SAVE_FAILED): _S.ERROR,
    (_S.LOCAL, _E.SAVE_FAILED): _S.ERROR,
    (_S.SYNCING, _E.SAVE_FAILED): _S.ERROR,
    (_S.ERROR, _E.SAVE_FAILED): _S.ERROR,
    # Edits dropped without a save; nothing is scheduled any more.
    (_S.SYNCED, _E.DISCARD): _S.SYNCED,
    (_S.LOCAL, _E.DISCARD): _S.SYNCED,
    (_S.SYNCING, _E.DISCARD): _S.SYNCING,
    (_S.ERROR, _E.DISCARD): _S.ERROR,
}

StatusListener = Callable[[SyncStatus, "str | None"], None]
SavedListener = Callable[[JournalDocument], None]


class SyncStateMachine:
    """Holds the current SyncStatus and applies TRANSITIONS."""

    def __init__(
        self,
        initial: SyncStatus = SyncStatus.SYNCED,
        on_change: Callable[[SyncStatus, SyncStatus], None] | None = None,
    ):
        self._status = initial
        self._on_change = on_change

    @property
    def status(self) -> SyncStatus:
        return self._status

    def fire(self, event: SyncEvent) -> SyncStatus:
        try:
            new_status = TRANSITIONS[(self._status, event)]
        except KeyError:
            raise InvalidTransitionError(f"No transition from {self._status} on {event}") from None
        if new_status != self._status:
            old_status, self._status = self._status, new_status
            logger.debug(f"Sync status {old_status} -> {new_status} ({event})")
            if self._on_change:
                self._on_change(old_status, new_status)
        return self._status


class SyncScheduler:
    """Coalesces edits into saves and recovers from failed autosaves.

    The scheduler reads live values from the cursor, applies each save to
    the store optimistically, and calls the gateway. At most one save per
    document is in flight; a trigger that arrives mid-flight is deferred
    and re-armed once the flight resolves.

    Args:
        store: Shared document store.
        cursor: Active document cursor.
        gateway: Persistence gateway.
        clock: Timer source.
        config: Timing settings.
        on_status: Called with ``(status, error_message)`` whenever the
            active document's status or message changes, including when
            another document becomes active.
        on_saved: Called with the persisted document after each successful save.
    """

    def __init__(
        self,
        *,
        store: DocumentStore,
        cursor: DocumentCursor,
        gateway: PersistenceGateway,
        clock: Clock,
        config: SyncConfig,
        on_status: StatusListener | None = None,
        on_saved: SavedListener | None = None,
    ):
        self._store = store
        self._cursor = cursor
        self._gateway = gateway
        self._clock = clock
        self._config = config
        self._on_status = on_status
        self._on_saved = on_saved

        # Only documents that are not plainly synced are tracked.
        self._machines: dict[str, SyncStateMachine] = {}
        self._errors: dict[str, str] = {}
        self._reported: tuple[SyncStatus, str | None] = (SyncStatus.SYNCED, None)

        self._save_timer: TimerHandle | None = None
        self._retry_timers: dict[str, TimerHandle] = {}
        self._error_clear_timers: dict[str, TimerHandle] = {}
        self._retry_counts: dict[str, int] = {}

        self._in_flight: dict[str, asyncio.Event] = {}
        self._deferred: set[str] = set()
        self._edit_generation = 0

    # ── Observable state ───────────────────────────────────────────

    @property
    def status(self) -> SyncStatus:
        return self.status_of(self._cursor.selected_id)

    @property
    def error(self) -> str | None:
        return self.error_of(self._cursor.selected_id)

    def status_of(self, doc_id: str | None) -> SyncStatus:
        machine = self._machines.get(doc_id) if doc_id is not None else None
        return machine.status if machine is not None else SyncStatus.SYNCED

    def error_of(self, doc_id: str | None) -> str | None:
        return self._errors.get(doc_id) if doc_id is not None else None

    @property
    def has_pending_save(self) -> bool:
        return self._save_timer is not None

    def retry_count(self, doc_id: str) -> int:
        return self._retry_counts.get(doc_id, 0)

    def is_saving(self, doc_id: str) -> bool:
        return doc_id in self._in_flight

    def refresh_status(self) -> None:
        """Report the active document's status; call after the cursor loads another document."""
        for doc_id in list(self._machines):
            if not self._cursor.is_active(doc_id):
                self._forget_if_clean(doc_id)
        self._report()

    def _machine(self, doc_id: str) -> SyncStateMachine:
        machine = self._machines.get(doc_id)
        if machine is None:
            machine = SyncStateMachine(on_change=lambda _old, _new: self._report())
            self._machines[doc_id] = machine
        return machine

    def _fire(self, doc_id: str, event: SyncEvent) -> None:
        self._machine(doc_id).fire(event)

    def _report(self) -> None:
        current = (self.status, self.error)
        if current == self._reported:
            return
        self._reported = current
        if self._on_status:
            self._on_status(*current)

    def _set_error(self, doc_id: str, message: str | None) -> None:
        if message is None:
            self._errors.pop(doc_id, None)
        else:
            self._errors[doc_id] = message
        self._report()

    def _forget_if_clean(self, doc_id: str) -> None:
        if self.status_of(doc_id) is SyncStatus.SYNCED and doc_id not in self._errors:
            self._machines.pop(doc_id, None)

    # ── Triggers ───────────────────────────────────────────────────

    def notify_edit(self) -> None:
        """An editable field of the active document changed."""
        doc_id = self._cursor.selected_id
        if doc_id is None:
            return
        self._edit_generation += 1
        self._fire(doc_id, SyncEvent.EDIT)
        self.schedule()

    def schedule(self) -> None:
        """(Re-)arm the debounce; pending timers are replaced, never stacked."""
        self._cancel_save_timer()
        self._save_timer = self._clock.call_later(self._config.save_delay, self._on_debounce)

    async def _on_debounce(self) -> None:
        self._save_timer = None
        doc_id = self._cursor.selected_id
        if doc_id is not None:
            await self._run_background(doc_id, attempt=0)

    async def save(self, *, manual: bool = False) -> None:
        """Save the active document now.

        Manual saves bypass the debounce, surface ``syncing``, never retry
        automatically and re-raise the gateway error after updating status.
        """
        doc_id = self._cursor.selected_id
        if doc_id is None:
            return
        self._cancel_save_timer()
        if not manual:
            await self._run_background(doc_id, attempt=0)
            return

        await self.wait_idle(doc_id)
        doc = self._prepare(doc_id)
        if doc is None:
            return
        self._fire(doc_id, SyncEvent.MANUAL_SAVE)
        await self._persist(doc, manual=True, attempt=0)

    async def retry(self) -> None:
        """Explicit "Retry" affordance: clear the message and autosave with backoff."""
        doc_id = self._cursor.selected_id
        if doc_id is None:
            return
        self._cancel_error_clear(doc_id)
        self._set_error(doc_id, None)
        self._fire(doc_id, SyncEvent.RETRY)
        self._cancel_save_timer()
        self._retry_counts.pop(doc_id, None)
        await self._run_background(doc_id, attempt=0)

    async def flush(self, doc_id: str) -> None:
        """Persist *doc_id* from the cursor's live values before it stops being active."""
        self._cancel_save_timer()
        await self.wait_idle(doc_id)
        doc = self._prepare(doc_id)
        if doc is not None:
            await self._persist(doc, manual=False, attempt=0)

    async def persist(self, doc: JournalDocument) -> None:
        """Persist a document the caller already placed in the store (new documents)."""
        await self.wait_idle(doc.id)
        await self._persist(doc, manual=False, attempt=0)

    async def send(self, doc_id: str) -> JournalDocument | None:
        """Send the store's current value of *doc_id* as one tracked request.

        Other saves of the same document wait for it, but its outcome does
        not touch status or retries: the caller owns success and failure,
        and gateway errors propagate.
        """
        await self.wait_idle(doc_id)
        doc = self._store.get(doc_id)
        if doc is None:
            return None
        flight = asyncio.Event()
        self._in_flight[doc_id] = flight
        try:
            saved = await self._gateway.save(doc)
        finally:
            del self._in_flight[doc_id]
            flight.set()
            self._resume_deferred(doc_id)
        if self._on_saved:
            self._on_saved(doc)
        return saved

    async def wait_idle(self, doc_id: str) -> None:
        """Wait until no save for *doc_id* is in flight."""
        while (flight := self._in_flight.get(doc_id)) is not None:
            await flight.wait()

    # ── Cancellation ───────────────────────────────────────────────

    def cancel_pending_save(self) -> None:
        self._cancel_save_timer()

    def discard_pending(self, doc_id: str) -> None:
        """Forget the scheduled save of *doc_id* without persisting its edits."""
        if self._cursor.is_active(doc_id):
            self._cancel_save_timer()
        if doc_id in self._machines:
            self._fire(doc_id, SyncEvent.DISCARD)

    def cancel_document(self, doc_id: str) -> None:
        """Drop every timer and all status kept for *doc_id* (used on delete)."""
        self.discard_pending(doc_id)
        timer = self._retry_timers.pop(doc_id, None)
        if timer is not None:
            timer.cancel()
        self._cancel_error_clear(doc_id)
        self._retry_counts.pop(doc_id, None)
        self._deferred.discard(doc_id)
        self._errors.pop(doc_id, None)
        self._machines.pop(doc_id, None)
        self._report()

    def close(self) -> None:
        """Clear all timers (teardown)."""
        self._cancel_save_timer()
        for timer in [*self._retry_timers.values(), *self._error_clear_timers.values()]:
            timer.cancel()
        self._retry_timers.clear()
        self._error_clear_timers.clear()
        self._deferred.clear()

    def _cancel_save_timer(self) -> None:
        if self._save_timer is not None:
            self._save_timer.cancel()
            self._save_timer = None

    def _cancel_error_clear(self, doc_id: str) -> None:
        timer = self._error_clear_timers.pop(doc_id, None)
        if timer is not None:
            timer.cancel()

    # ── Save algorithm ─────────────────────────────────────────────

    async def _run_background(self, doc_id: str, attempt: int) -> None:
        if doc_id in self._in_flight:
            logger.debug(f"Save for {doc_id} already in flight; deferring")
            self._deferred.add(doc_id)
            return
        doc = self._prepare(doc_id)
        if doc is None:
            logger.debug(f"Dropping save for {doc_id}: no longer in store")
            return
        await self._persist(doc, manual=False, attempt=attempt)

    def _prepare(self, doc_id: str) -> JournalDocument | None:
        """Build the document to save and apply it to the store optimistically.

        The active document takes the cursor's live values (deriving a title
        when blank). Any other document, e.g. a retry after the user switched
        away, re-sends the store's latest value.
        """
        current = self._store.get(doc_id)
        if current is None:
            return None

        timestamp = self._clock.now_ms()
        if self._cursor.is_active(doc_id):
            title = self._cursor.title
            if not title.strip():
                title = derive_title(self._cursor.content, self._config.title_max_length)
                self._cursor.title = title
            updated = stamp(
                current,
                timestamp,
                title=title,
                content=self._cursor.content,
                tags=self._cursor.tags,
                is_starred=self._cursor.is_starred,
                template_ref=self._cursor.active_template,
            )
        else:
            updated = stamp(current, timestamp)

        self._store.update(doc_id, lambda _doc: updated)
        return updated

    async def _persist(self, doc: JournalDocument, *, manual: bool, attempt: int) -> None:
        doc_id = doc.id
        retry_timer = self._retry_timers.pop(doc_id, None)
        if retry_timer is not None:
            retry_timer.cancel()

        generation = self._edit_generation
        flight = asyncio.Event()
        self._in_flight[doc_id] = flight
        logger.debug(f"Saving document {doc_id} (manual={manual}, attempt={attempt})")
        try:
            await self._gateway.save(doc)
        except Exception as exc:
            self._handle_failure(doc_id, exc, manual=manual, attempt=attempt)
            if manual:
                raise
        else:
            self._handle_success(doc, generation)
        finally:
            del self._in_flight[doc_id]
            flight.set()
            self._resume_deferred(doc_id)

    def _handle_success(self, doc: JournalDocument, generation: int) -> None:
        doc_id = doc.id
        self._retry_counts.pop(doc_id, None)
        if doc_id not in self._store:
            logger.debug(f"Saved document {doc_id} after it was deleted")
            return
        self._cancel_error_clear(doc_id)
        self._fire(doc_id, SyncEvent.SAVE_SUCCEEDED)
        if self._cursor.is_active(doc_id) and self._edit_generation != generation:
            # Edits landed while the request was in flight.
            self._fire(doc_id, SyncEvent.EDIT)
        self._set_error(doc_id, None)
        if not self._cursor.is_active(doc_id):
            self._forget_if_clean(doc_id)
        logger.debug(f"Saved document {doc_id}")
        if self._on_saved:
            self._on_saved(doc)

    def _handle_failure(self, doc_id: str, exc: Exception, *, manual: bool, attempt: int) -> None:
        message = str(exc) or "Failed to save"
        logger.warning(f"Failed to save document {doc_id}: {message}")
        if doc_id not in self._store:
            return
        self._fire(doc_id, SyncEvent.SAVE_FAILED)
        self._set_error(doc_id, message)

        if not manual and attempt < self._config.max_retries:
            delay = self._config.backoff_delay(attempt)
            self._retry_counts[doc_id] = attempt + 1
            logger.info(f"Retrying save of {doc_id} in {delay:g}s ({attempt + 1}/{self._config.max_retries})")
            self._retry_timers[doc_id] = self._clock.call_later(delay, partial(self._on_retry, doc_id, attempt + 1))
            return

        if not manual:
            logger.error(f"Giving up on saving {doc_id} after {attempt} retries")
        self._schedule_error_clear(doc_id)

    async def _on_retry(self, doc_id: str, attempt: int) -> None:
        self._retry_timers.pop(doc_id, None)
        await self._run_background(doc_id, attempt=attempt)

    def _resume_deferred(self, doc_id: str) -> None:
        if doc_id not in self._deferred:
            return
        self._deferred.discard(doc_id)
        if self._cursor.is_active(doc_id) and doc_id in self._store:
            self.schedule()

    def _schedule_error_clear(self, doc_id: str) -> None:
        self._cancel_error_clear(doc_id)
        self._error_clear_timers[doc_id] = self._clock.call_later(
            self._config.error_display_duration, partial(self._clear_error, doc_id)
        )

    def _clear_error(self, doc_id: str) -> None:
        self._error_clear_timers.pop(doc_id, None)
        self._set_error(doc_id, None)
