"""Journal engine: one object a client drives to edit and sync entries.

Wires the document store, the active cursor, the sync scheduler, the
reconciler and a persistence gateway together, and exposes the flat
surface an editor needs (properties to render, setters to edit, actions
to run).

Example:
    engine = JournalEngine(StorageGateway(LocalStorage("~/.sancho/storage")))
    await engine.load()
    engine.set_content("Morning pages #writing")
    await engine.save(manual=True)
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, Any

from loguru import logger

from sancho.core.events import (
    JOURNAL_DOCUMENT_CREATED,
    JOURNAL_DOCUMENT_DELETED,
    JOURNAL_DOCUMENT_SAVED,
    JOURNAL_DOCUMENT_SELECTED,
    JOURNAL_LOADED,
    JOURNAL_SYNC_STATUS,
    Event,
    EventBus,
)
from sancho.core.exceptions import MigrationError

from .clock import AsyncioClock
from .config import SyncConfig
from .cursor import DocumentCursor
from .goals import DailyGoalTracker
from .models import JournalDocument, new_document, reading_time, stamp, word_count
from .optimistic import optimistic_mutation
from .reconciler import Reconciler, SwitchChoice, SwitchOutcome, SwitchPolicy
from .settings import JournalSettings
from .store import DocumentStore
from .sync import SyncScheduler, SyncStatus
from .tags import all_tags, extract_tags, merge_tags

if TYPE_CHECKING:
    from .clock import Clock, TimerHandle
    from .gateway import PersistenceGateway


class JournalEngine:
    """Editing and sync state for a journal.

    Args:
        gateway: Where documents are persisted.
        config: Timing settings (defaults to ``SyncConfig()``).
        settings: Daily goal storage (defaults to in-memory).
        clock: Timer source (defaults to the running asyncio loop).
        event_bus: Optional bus receiving ``journal.*`` events.
        switch_policy: Overrides ``config.switch_policy`` for this surface.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        *,
        config: SyncConfig | None = None,
        settings: JournalSettings | None = None,
        clock: Clock | None = None,
        event_bus: EventBus | None = None,
        switch_policy: SwitchPolicy | str | None = None,
    ):
        self.gateway = gateway
        self.config = config or SyncConfig()
        self.settings = settings or JournalSettings()
        self.clock = clock or AsyncioClock()
        self.event_bus = event_bus

        self.store = DocumentStore()
        self.cursor = DocumentCursor()
        self.goals = DailyGoalTracker(self.settings)
        self.scheduler = SyncScheduler(
            store=self.store,
            cursor=self.cursor,
            gateway=gateway,
            clock=self.clock,
            config=self.config,
            on_status=self._on_status,
            on_saved=self._on_saved,
        )
        self.reconciler = Reconciler(
            store=self.store,
            cursor=self.cursor,
            scheduler=self.scheduler,
            policy=SwitchPolicy(switch_policy or self.config.switch_policy),
            on_select=self._on_select,
        )

        self._tag_timer: TimerHandle | None = None
        self._is_loading = False
        self._deleting = False

    # ── Rendering state ────────────────────────────────────────────

    @property
    def entries(self) -> tuple[JournalDocument, ...]:
        return self.store.snapshot()

    @property
    def selected_id(self) -> str | None:
        return self.cursor.selected_id

    @property
    def title(self) -> str:
        return self.cursor.title

    @property
    def content(self) -> str:
        return self.cursor.content

    @property
    def tags(self) -> tuple[str, ...]:
        return self.cursor.tags

    @property
    def is_starred(self) -> bool:
        return self.cursor.is_starred

    @property
    def active_template(self) -> str | None:
        return self.cursor.active_template

    @property
    def sync_status(self) -> SyncStatus:
        return self.scheduler.status

    @property
    def autosave_error(self) -> str | None:
        return self.scheduler.error

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def word_count(self) -> int:
        return word_count(self.cursor.content)

    @property
    def reading_time(self) -> int:
        return reading_time(self.word_count)

    @property
    def all_available_tags(self) -> list[str]:
        return all_tags(self.store)

    @property
    def pending_target(self) -> JournalDocument | None:
        return self.reconciler.pending_target

    @property
    def daily_goal(self) -> int:
        return self.goals.goal

    @property
    def daily_progress(self) -> int:
        return self.goals.progress

    @property
    def goal_progress(self) -> int:
        """Percent of today's goal reached, 0-100."""
        return self.goals.percent

    # ── Loading ────────────────────────────────────────────────────

    async def load(self) -> None:
        """Fetch all documents, migrating legacy local entries first.

        On a refresh the open document stays open. Unsaved edits in the
        cursor are kept; otherwise the fresh server copy is loaded.
        """
        self._is_loading = True
        try:
            await self._migrate_if_needed()
            docs = await self.gateway.get_all()
        finally:
            self._is_loading = False

        previous_id = self.cursor.selected_id
        keep_cursor = self.reconciler.has_unsaved_changes()
        self.store.replace_all(docs)
        logger.info(f"Loaded {len(self.store)} journal entries")
        self._emit(JOURNAL_LOADED, count=len(self.store))

        if len(self.store) == 0:
            await self._create_blank()
            return

        fresh = self.store.get(previous_id)
        if fresh is None:
            self.reconciler.load(self.store.first())
        elif not keep_cursor:
            self.reconciler.load(fresh)

    async def _migrate_if_needed(self) -> None:
        if not await self.gateway.needs_migration():
            return
        try:
            migrated = await self.gateway.migrate_to_server()
        except MigrationError as e:
            logger.warning(f"Journal migration failed, will retry on next load: {e}")
            return
        logger.info(f"Migrated {migrated} journal entries")

    # ── Edits ──────────────────────────────────────────────────────

    def _edited(self, changed: bool) -> bool:
        if changed:
            self.scheduler.notify_edit()
        return changed

    def set_title(self, title: str) -> bool:
        return self._edited(self.cursor.set_title(title))

    def set_content(self, content: str) -> bool:
        changed = self._edited(self.cursor.set_content(content))
        if changed:
            self._schedule_tag_extraction()
            self.goals.observe(self.cursor.selected_id, content)
        return changed

    def set_tags(self, tags: list[str] | tuple[str, ...]) -> bool:
        return self._edited(self.cursor.set_tags(tags))

    def set_starred(self, starred: bool) -> bool:
        return self._edited(self.cursor.set_starred(starred))

    def set_active_template(self, template: str | None) -> bool:
        return self._edited(self.cursor.set_active_template(template))

    def _schedule_tag_extraction(self) -> None:
        self._cancel_tag_timer()
        self._tag_timer = self.clock.call_later(self.config.tag_extraction_delay, self._extract_tags)

    def _extract_tags(self) -> None:
        self._tag_timer = None
        merged = merge_tags(self.cursor.tags, extract_tags(self.cursor.content))
        if self.set_tags(merged):
            logger.debug(f"Extracted tags for {self.cursor.selected_id}: {merged}")

    def _cancel_tag_timer(self) -> None:
        if self._tag_timer is not None:
            self._tag_timer.cancel()
            self._tag_timer = None

    # ── Navigation ─────────────────────────────────────────────────

    async def select_document(self, doc: JournalDocument) -> SwitchOutcome:
        return await self.reconciler.switch_to(doc)

    async def select_by_id(self, doc_id: str) -> SwitchOutcome | None:
        doc = self.store.get(doc_id)
        if doc is None:
            logger.debug(f"Cannot select unknown entry {doc_id}")
            return None
        return await self.select_document(doc)

    async def resolve_switch(self, choice: SwitchChoice | str) -> SwitchOutcome:
        return await self.reconciler.resolve(SwitchChoice(choice))

    # ── Lifecycle ──────────────────────────────────────────────────

    async def create_document(self) -> JournalDocument:
        """Open a new blank entry at the head of the list and persist it.

        Unsaved edits of the outgoing entry are flushed first.
        """
        outgoing_id = self.cursor.selected_id
        self.scheduler.cancel_pending_save()
        if outgoing_id is not None and self.reconciler.has_unsaved_changes():
            await self.scheduler.flush(outgoing_id)
        return await self._create_blank()

    async def _create_blank(self) -> JournalDocument:
        doc = new_document(self.clock.now_ms())
        self.store.prepend(doc)
        self.reconciler.load(doc)
        logger.info(f"Created journal entry {doc.id}")
        self._emit(JOURNAL_DOCUMENT_CREATED, id=doc.id)
        await self.scheduler.persist(doc)
        return doc

    async def delete_document(self, doc_id: str) -> bool:
        """Delete *doc_id* locally at once and remotely in the background.

        Returns False when another delete is still running. Remote failures
        are logged only; the entry is gone locally either way.
        """
        if self._deleting:
            logger.debug(f"Delete already in progress; ignoring delete of {doc_id}")
            return False
        self._deleting = True
        try:
            was_active = self.cursor.is_active(doc_id)
            self.scheduler.cancel_document(doc_id)
            if was_active:
                self._cancel_tag_timer()
            self.store.remove(doc_id)
            self._emit(JOURNAL_DOCUMENT_DELETED, id=doc_id)

            if len(self.store) == 0:
                await self._create_blank()
            elif was_active:
                self.reconciler.load(self.store.first())

            # A save already on the wire must not recreate the entry after the delete.
            await self.scheduler.wait_idle(doc_id)
            try:
                await self.gateway.delete(doc_id)
            except Exception as e:
                logger.warning(f"Failed to delete entry {doc_id} from server: {e}")
            else:
                logger.info(f"Deleted journal entry {doc_id}")
        finally:
            self._deleting = False
        return True

    # ── Saving ─────────────────────────────────────────────────────

    async def save(self, *, manual: bool = False) -> None:
        """Save the open entry now. Manual saves re-raise gateway errors."""
        await self.scheduler.save(manual=manual)

    async def retry_save(self) -> None:
        await self.scheduler.retry()

    async def toggle_star(self, doc_id: str) -> bool:
        """Flip the star on *doc_id* optimistically; reverted if the save fails."""
        doc = self.store.get(doc_id)
        if doc is None:
            return False
        starred = not doc.is_starred
        toggled: JournalDocument | None = None

        def apply() -> None:
            nonlocal toggled
            toggled = self.store.update(doc_id, lambda d: stamp(d, self.clock.now_ms(), is_starred=starred))
            if self.cursor.is_active(doc_id):
                self.cursor.set_starred(starred)

        def rollback() -> None:
            # The original comes back whole unless something else changed the entry meanwhile.
            self.store.update(doc_id, lambda d: doc if d is toggled else replace(d, is_starred=not starred))
            if self.cursor.is_active(doc_id):
                self.cursor.set_starred(not starred)

        async def remote() -> None:
            await self.scheduler.send(doc_id)

        return await optimistic_mutation(apply, remote, rollback, description=f"Star toggle for {doc_id}")

    # ── Daily goal ─────────────────────────────────────────────────

    def set_daily_goal(self, words: int) -> None:
        self.goals.goal = words

    def reset_daily_progress(self) -> None:
        self.goals.reset()

    # ── Teardown ───────────────────────────────────────────────────

    def close(self) -> None:
        """Cancel every timer. In-flight saves are left to finish."""
        self._cancel_tag_timer()
        self.scheduler.close()

    async def aclose(self) -> None:
        """Cancel every timer and wait for saves that already started."""
        self.close()
        await self.clock.drain()

    # ── Callbacks ──────────────────────────────────────────────────

    def _on_select(self, doc: JournalDocument) -> None:
        self._cancel_tag_timer()
        self.scheduler.refresh_status()
        self.goals.observe(doc.id, doc.content)
        self._emit(JOURNAL_DOCUMENT_SELECTED, id=doc.id)

    def _on_status(self, status: SyncStatus, error: str | None) -> None:
        self._emit(JOURNAL_SYNC_STATUS, status=str(status), error=error)

    def _on_saved(self, doc: JournalDocument) -> None:
        self._emit(JOURNAL_DOCUMENT_SAVED, id=doc.id, updated_at=doc.updated_at)

    def _emit(self, name: str, **payload: Any) -> None:
        if self.event_bus is not None:
            self.event_bus.emit(Event(name=name, payload=payload, source="journal"))
