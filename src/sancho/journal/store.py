"""In-memory document store: the single source of truth for rendering.

The store holds an immutable tuple and swaps it on every mutation, so a
snapshot handed to a renderer never changes underneath it.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator

from .models import JournalDocument

Updater = Callable[[JournalDocument], JournalDocument]


class DocumentStore:
    """Ordered collection of documents with copy-on-write updates keyed by id.

    Ordering is insertion order with newest-first semantics: ``prepend``
    puts a document at the head and ``first()`` returns it.
    """

    def __init__(self, documents: Iterable[JournalDocument] = ()):
        self._documents: tuple[JournalDocument, ...] = ()
        self.replace_all(documents)

    def snapshot(self) -> tuple[JournalDocument, ...]:
        return self._documents

    def replace_all(self, documents: Iterable[JournalDocument]) -> None:
        seen: set[str] = set()
        unique = []
        for doc in documents:
            if doc.id in seen:
                continue
            seen.add(doc.id)
            unique.append(doc)
        self._documents = tuple(unique)

    def prepend(self, doc: JournalDocument) -> None:
        self._documents = (doc, *(d for d in self._documents if d.id != doc.id))

    def update(self, doc_id: str, updater: Updater) -> JournalDocument | None:
        """Replace the document *doc_id* with ``updater(doc)``, keeping its position.

        Returns the new document, or ``None`` when the id is unknown.
        """
        updated: JournalDocument | None = None
        documents = []
        for doc in self._documents:
            if doc.id == doc_id:
                updated = updater(doc)
                if updated.id != doc_id:
                    raise ValueError(f"Updater changed document id {doc_id!r} -> {updated.id!r}")
                documents.append(updated)
            else:
                documents.append(doc)
        if updated is not None:
            self._documents = tuple(documents)
        return updated

    def upsert(self, doc: JournalDocument) -> None:
        """Update in place when present, otherwise prepend."""
        if self.update(doc.id, lambda _: doc) is None:
            self.prepend(doc)

    def remove(self, doc_id: str) -> JournalDocument | None:
        removed = self.get(doc_id)
        if removed is not None:
            self._documents = tuple(d for d in self._documents if d.id != doc_id)
        return removed

    def get(self, doc_id: str | None) -> JournalDocument | None:
        if doc_id is None:
            return None
        for doc in self._documents:
            if doc.id == doc_id:
                return doc
        return None

    def first(self) -> JournalDocument | None:
        return self._documents[0] if self._documents else None

    def starred(self) -> list[JournalDocument]:
        return [doc for doc in self._documents if doc.is_starred]

    def ids(self) -> list[str]:
        return [doc.id for doc in self._documents]

    def __len__(self) -> int:
        return len(self._documents)

    def __iter__(self) -> Iterator[JournalDocument]:
        return iter(self._documents)

    def __contains__(self, doc_id: object) -> bool:
        return any(doc.id == doc_id for doc in self._documents)

    def __repr__(self) -> str:
        return f"DocumentStore({len(self._documents)} documents)"
