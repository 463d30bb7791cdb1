"""Entry-switch safety: resolve the outgoing document before opening another.

Two policies, one per editing surface:

- ``SILENT`` flushes unsaved edits of the outgoing document, then switches.
  The default for autosave-style editors.
- ``PROMPT`` parks the target and waits for the user to pick Save, Discard
  or Cancel. Discard drops the outgoing edits on purpose; they are not
  recoverable after the switch.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import StrEnum
from typing import TYPE_CHECKING

from loguru import logger

from .models import JournalDocument

if TYPE_CHECKING:
    from .cursor import DocumentCursor
    from .store import DocumentStore
    from .sync import SyncScheduler


class SwitchPolicy(StrEnum):
    SILENT = "silent"
    PROMPT = "prompt"


class SwitchChoice(StrEnum):
    SAVE = "save"
    DISCARD = "discard"
    CANCEL = "cancel"


class SwitchOutcome(StrEnum):
    SWITCHED = "switched"
    PENDING = "pending"
    CANCELLED = "cancelled"


class Reconciler:
    """Governs transitions between active documents.

    Args:
        store: Shared document store (committed values).
        cursor: Active document cursor (live values).
        scheduler: Sync scheduler used to cancel the debounce and flush.
        policy: What to do when the outgoing document has unsaved edits.
        on_select: Called with the newly loaded document after every switch.
    """

    def __init__(
        self,
        *,
        store: DocumentStore,
        cursor: DocumentCursor,
        scheduler: SyncScheduler,
        policy: SwitchPolicy = SwitchPolicy.SILENT,
        on_select: Callable[[JournalDocument], None] | None = None,
    ):
        self._store = store
        self._cursor = cursor
        self._scheduler = scheduler
        self.policy = SwitchPolicy(policy)
        self._on_select = on_select
        self._pending_target: JournalDocument | None = None

    @property
    def pending_target(self) -> JournalDocument | None:
        """Target waiting on a Save/Discard/Cancel choice (PROMPT policy only)."""
        return self._pending_target

    def has_unsaved_changes(self) -> bool:
        outgoing = self._store.get(self._cursor.selected_id)
        return outgoing is not None and self._cursor.differs_from(outgoing)

    def load(self, target: JournalDocument) -> None:
        """Open *target* without any unsaved-changes check."""
        doc = self._store.get(target.id) or target
        self._cursor.load(doc)
        if self._on_select:
            self._on_select(doc)

    async def switch_to(self, target: JournalDocument) -> SwitchOutcome:
        outgoing_id = self._cursor.selected_id
        if outgoing_id is None or outgoing_id == target.id:
            self.load(target)
            return SwitchOutcome.SWITCHED

        # The outgoing document is handled explicitly below.
        self._scheduler.cancel_pending_save()
        self._pending_target = None

        if not self.has_unsaved_changes():
            self._scheduler.discard_pending(outgoing_id)
            self.load(target)
            return SwitchOutcome.SWITCHED

        if self.policy is SwitchPolicy.PROMPT:
            logger.debug(f"Unsaved changes in {outgoing_id}; waiting for a choice before opening {target.id}")
            self._pending_target = target
            return SwitchOutcome.PENDING

        await self._scheduler.flush(outgoing_id)
        self.load(target)
        return SwitchOutcome.SWITCHED

    async def resolve(self, choice: SwitchChoice) -> SwitchOutcome:
        """Answer the pending prompt."""
        target = self._pending_target
        if target is None:
            logger.debug(f"No pending switch to resolve ({choice})")
            return SwitchOutcome.CANCELLED
        self._pending_target = None
        outgoing_id = self._cursor.selected_id
        choice = SwitchChoice(choice)

        if choice is SwitchChoice.CANCEL:
            # Edits stay in the cursor; put the autosave back on the clock.
            if self.has_unsaved_changes():
                self._scheduler.schedule()
            return SwitchOutcome.CANCELLED

        if choice is SwitchChoice.SAVE and outgoing_id is not None:
            await self._scheduler.flush(outgoing_id)
        elif choice is SwitchChoice.DISCARD and outgoing_id is not None:
            logger.info(f"Discarding unsaved changes in {outgoing_id}")
            self._scheduler.discard_pending(outgoing_id)

        self.load(target)
        return SwitchOutcome.SWITCHED
