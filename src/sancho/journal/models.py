"""Journal document model and the small pure helpers around it.

``JournalDocument`` is frozen: every change produces a new instance
(``dataclasses.replace``), which is what lets the store apply optimistic
updates and rollbacks without corrupting sibling documents.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Any

from .tags import merge_tags

UNTITLED = "Untitled"
ELLIPSIS = "…"
WORDS_PER_MINUTE = 200


def now_ms() -> int:
    """Current wall-clock time in milliseconds since epoch."""
    return int(time.time() * 1000)


def generate_document_id() -> str:
    """Client-side UUID4 document id."""
    return str(uuid.uuid4())


@dataclass(frozen=True)
class JournalDocument:
    """A single journal entry.

    Attributes:
        id: Opaque client-generated identifier.
        title: User-editable title; derived from content when blank at save time.
        content: The document body.
        tags: Normalized, validated, deduplicated and sorted tag names.
        is_starred: Pinned to the favorites view.
        template_ref: Name of the reference item the user is drafting against.
        created_at: Milliseconds since epoch; immutable after first save.
        updated_at: Milliseconds since epoch; rewritten on every save attempt.
    """

    id: str
    title: str = ""
    content: str = ""
    tags: tuple[str, ...] = field(default_factory=tuple)
    is_starred: bool = False
    template_ref: str | None = None
    created_at: int = 0
    updated_at: int = 0

    def __post_init__(self):
        if not self.id or not isinstance(self.id, str):
            raise ValueError("Document id must be a non-empty string")
        object.__setattr__(self, "tags", tuple(merge_tags(self.tags, ())))

    def to_dict(self) -> dict[str, Any]:
        """Wire format shared with the REST backend (camelCase keys)."""
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "tags": list(self.tags),
            "isStarred": self.is_starred,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.template_ref is not None:
            data["templateRef"] = self.template_ref
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JournalDocument:
        created_at = _as_ms(data.get("createdAt"))
        return cls(
            id=str(data["id"]),
            title=data.get("title") or "",
            content=data.get("content") or "",
            tags=tuple(data.get("tags") or ()),
            is_starred=bool(data.get("isStarred", False)),
            template_ref=data.get("templateRef") or None,
            created_at=created_at,
            updated_at=_as_ms(data.get("updatedAt")) or created_at,
        )

    def __repr__(self) -> str:
        label = self.title or (self.content[:30] + "..." if len(self.content) > 30 else self.content)
        return f"JournalDocument(id='{self.id}', title='{label}', tags={list(self.tags)})"


def _as_ms(value: Any) -> int:
    """Coerce a backend timestamp (ms int, float, or numeric string) to int ms."""
    if value is None or value == "":
        return 0
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def new_document(timestamp: int | None = None) -> JournalDocument:
    """A blank document with a fresh id."""
    ts = now_ms() if timestamp is None else timestamp
    return JournalDocument(id=generate_document_id(), created_at=ts, updated_at=ts)


def derive_title(content: str, max_length: int = 30) -> str:
    """Title from the first line of *content*, truncated with an ellipsis."""
    first_line = content.split("\n", 1)[0].strip()
    if not first_line:
        return UNTITLED
    if len(first_line) > max_length:
        return first_line[:max_length] + ELLIPSIS
    return first_line


def stamp(doc: JournalDocument, timestamp: int, **changes: Any) -> JournalDocument:
    """Copy *doc* with *changes* and a bumped ``updated_at``.

    ``updated_at`` never moves backwards and strictly increases, even when
    two saves land in the same millisecond. ``created_at`` is preserved
    unless it was never set.
    """
    updated_at = max(timestamp, doc.updated_at + 1)
    created_at = doc.created_at or timestamp
    return replace(doc, created_at=created_at, updated_at=updated_at, **changes)


def word_count(text: str) -> int:
    if not text or not text.strip():
        return 0
    return len(text.split())


def reading_time(words: int) -> int:
    """Minutes to read *words*, never less than one."""
    return max(1, -(-words // WORDS_PER_MINUTE))
