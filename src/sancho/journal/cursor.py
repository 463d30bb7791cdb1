"""Active document cursor: which document is open and its editable fields.

The cursor's fields may run ahead of the stored document while the user
types; they converge on every successful save and are the values a save
writes.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .models import JournalDocument
from .tags import merge_tags


@dataclass(frozen=True)
class CursorState:
    """Point-in-time copy of the cursor's live fields."""

    selected_id: str | None
    title: str
    content: str
    tags: tuple[str, ...]
    is_starred: bool
    active_template: str | None


class DocumentCursor:
    """Mutable mirror of the open document.

    Setters return True when the value actually changed, so callers only
    treat real changes as edits.
    """

    def __init__(self) -> None:
        self.selected_id: str | None = None
        self.title = ""
        self.content = ""
        self.tags: tuple[str, ...] = ()
        self.is_starred = False
        self.active_template: str | None = None

    def load(self, doc: JournalDocument) -> None:
        """Copy *doc*'s fields into the cursor and make it the active document."""
        self.selected_id = doc.id
        self.title = doc.title
        self.content = doc.content
        self.tags = tuple(doc.tags)
        self.is_starred = doc.is_starred
        self.active_template = doc.template_ref

    def clear(self) -> None:
        self.selected_id = None
        self.title = ""
        self.content = ""
        self.tags = ()
        self.is_starred = False
        self.active_template = None

    def is_active(self, doc_id: str | None) -> bool:
        return doc_id is not None and doc_id == self.selected_id

    # ── Edits ──────────────────────────────────────────────────────

    def set_title(self, title: str) -> bool:
        if title == self.title:
            return False
        self.title = title
        return True

    def set_content(self, content: str) -> bool:
        if content == self.content:
            return False
        self.content = content
        return True

    def set_tags(self, tags: Iterable[str]) -> bool:
        normalized = tuple(merge_tags(tags, ()))
        if normalized == self.tags:
            return False
        self.tags = normalized
        return True

    def set_starred(self, starred: bool) -> bool:
        if bool(starred) == self.is_starred:
            return False
        self.is_starred = bool(starred)
        return True

    def set_active_template(self, template: str | None) -> bool:
        template = template or None
        if template == self.active_template:
            return False
        self.active_template = template
        return True

    # ── Comparison ─────────────────────────────────────────────────

    def differs_from(self, doc: JournalDocument) -> bool:
        """True when the live fields hold edits not present in *doc*."""
        return (
            doc.title != self.title
            or doc.content != self.content
            or doc.template_ref != self.active_template
            or tuple(doc.tags) != self.tags
            or doc.is_starred != self.is_starred
        )

    def snapshot(self) -> CursorState:
        return CursorState(
            selected_id=self.selected_id,
            title=self.title,
            content=self.content,
            tags=self.tags,
            is_starred=self.is_starred,
            active_template=self.active_template,
        )
