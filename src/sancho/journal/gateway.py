"""Persistence gateways for journal documents.

``PersistenceGateway`` is the contract the engine depends on. Two
implementations ship here:

- ``StorageGateway`` keeps each document as a JSON object in a
  ``StorageBackend`` (the local filesystem by default).
- ``HttpJournalGateway`` talks to the journal REST endpoint and keeps the
  legacy local-only entries around until they are migrated.

All gateway operations are async. ``save`` is an idempotent upsert: the
same id overwrites, never duplicates.
"""

from __future__ import annotations

import asyncio
import json
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from loguru import logger

from sancho.core.exceptions import DocumentNotFoundError, MigrationError, PersistenceError
from sancho.core.storage import KeyValueStore, StorageBackend, StorageError

from .models import JournalDocument

LEGACY_ENTRIES_KEY = "sancho_journal_entries"
MIGRATION_FLAG_KEY = "sancho_journal_migrated"


@runtime_checkable
class PersistenceGateway(Protocol):
    """Async CRUD contract the journal engine depends on."""

    async def get_all(self) -> list[JournalDocument]: ...

    async def save(self, doc: JournalDocument) -> JournalDocument: ...

    async def delete(self, doc_id: str) -> None: ...

    async def needs_migration(self) -> bool: ...

    async def migrate_to_server(self) -> int: ...


def sort_documents(docs: list[JournalDocument]) -> list[JournalDocument]:
    """Newest first by creation time, the order the backend lists entries in."""
    return sorted(docs, key=lambda d: d.created_at, reverse=True)


class LegacyEntryCache:
    """Entries written by the local-only client, plus the migration flag.

    Also doubles as an offline backup: the HTTP gateway refreshes it after
    every successful listing and reads it when the server is unreachable.
    """

    def __init__(self, store: KeyValueStore):
        self._store = store

    def entries(self) -> list[JournalDocument]:
        raw = self._store.get(LEGACY_ENTRIES_KEY) or []
        docs = []
        for item in raw:
            try:
                docs.append(JournalDocument.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable cached entry: {e}")
        return docs

    def replace(self, docs: list[JournalDocument]) -> None:
        self._store.set(LEGACY_ENTRIES_KEY, [doc.to_dict() for doc in docs])

    def remove(self, doc_id: str) -> None:
        remaining = [doc for doc in self.entries() if doc.id != doc_id]
        self.replace(remaining)

    def clear(self) -> None:
        self._store.delete(LEGACY_ENTRIES_KEY)

    @property
    def migrated(self) -> bool:
        return bool(self._store.get(MIGRATION_FLAG_KEY, False))

    def mark_migrated(self) -> None:
        self._store.set(MIGRATION_FLAG_KEY, True)

    def needs_migration(self) -> bool:
        return not self.migrated and bool(self._store.get(LEGACY_ENTRIES_KEY))


class StorageGateway:
    """Documents as ``<prefix><id>.json`` objects in a storage backend."""

    def __init__(self, storage: StorageBackend, *, prefix: str = "journal/", legacy: LegacyEntryCache | None = None):
        self.storage = storage
        self.prefix = prefix
        self.legacy = legacy

    def _key(self, doc_id: str) -> str:
        return f"{self.prefix}{doc_id}.json"

    async def get_all(self) -> list[JournalDocument]:
        docs = []
        try:
            async for key in self.storage.list_keys(self.prefix):
                if not key.endswith(".json"):
                    continue
                try:
                    docs.append(JournalDocument.from_dict(await self.storage.load_json(key)))
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning(f"Skipping unreadable document {key}: {e}")
        except StorageError as e:
            raise PersistenceError(f"Failed to list journal entries: {e}") from e
        return sort_documents(docs)

    async def save(self, doc: JournalDocument) -> JournalDocument:
        try:
            await self.storage.save_json(self._key(doc.id), doc.to_dict())
        except (StorageError, OSError) as e:
            raise PersistenceError(f"Failed to save entry {doc.id}: {e}") from e
        return doc

    async def delete(self, doc_id: str) -> None:
        try:
            await self.storage.delete(self._key(doc_id))
        except (StorageError, OSError) as e:
            raise PersistenceError(f"Failed to delete entry {doc_id}: {e}") from e

    async def needs_migration(self) -> bool:
        return self.legacy is not None and self.legacy.needs_migration()

    async def migrate_to_server(self) -> int:
        if self.legacy is None:
            return 0
        docs = self.legacy.entries()
        for doc in docs:
            await self.save(doc)
        self.legacy.mark_migrated()
        self.legacy.clear()
        logger.info(f"Migrated {len(docs)} legacy journal entries")
        return len(docs)


class HttpJournalGateway:
    """Client for the ``/api/journal`` REST endpoint.

    Uses the standard library HTTP client in a worker thread so the event
    loop keeps running during requests.

    Args:
        base_url: Server root, e.g. ``https://example.org``.
        legacy: Local cache of entries from the local-only client.
        csrf_token: Token (or zero-arg callable returning one) sent as
            ``x-csrf-token`` on mutating requests.
        headers: Extra headers for every request (cookies, auth).
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str,
        *,
        legacy: LegacyEntryCache | None = None,
        csrf_token: str | Callable[[], str | None] | None = None,
        headers: dict[str, str] | None = None,
        timeout: int = 20,
    ):
        if not base_url:
            raise ValueError("base_url is required")
        self.base_url = base_url.rstrip("/")
        self.legacy = legacy
        self.csrf_token = csrf_token
        self.headers = dict(headers or {})
        self.timeout = timeout

    def _csrf(self) -> str | None:
        return self.csrf_token() if callable(self.csrf_token) else self.csrf_token

    def _request(self, method: str, path: str, *, payload: dict[str, Any] | None = None) -> Any:
        method = method.upper()
        url = f"{self.base_url}/{path.lstrip('/')}"
        headers = {"Accept": "application/json", "Content-Type": "application/json", **self.headers}
        if method not in ("GET", "HEAD", "OPTIONS"):
            token = self._csrf()
            if token:
                headers["x-csrf-token"] = token

        data = json.dumps(payload).encode("utf-8") if payload is not None else None
        req = urllib.request.Request(url=url, method=method, data=data, headers=headers)
        logger.debug(f"Journal API request: {method} {url}")

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as e:
            message = _error_message(e)
            if e.code == 404:
                raise DocumentNotFoundError(message, status=404) from e
            raise PersistenceError(message, status=e.code) from e
        except urllib.error.URLError as e:
            raise PersistenceError(f"Journal API request failed: {e.reason}") from e
        except TimeoutError as e:
            raise PersistenceError(f"Journal API request timed out after {self.timeout}s") from e

        if not raw:
            return {}
        return json.loads(raw.decode("utf-8", errors="ignore"))

    async def _call(self, method: str, path: str, *, payload: dict[str, Any] | None = None) -> Any:
        return await asyncio.to_thread(self._request, method, path, payload=payload)

    @staticmethod
    def _body(doc: JournalDocument) -> dict[str, Any]:
        return {
            "title": doc.title,
            "content": doc.content,
            "templateRef": doc.template_ref,
            "tags": list(doc.tags),
            "isStarred": doc.is_starred,
        }

    async def get_all(self) -> list[JournalDocument]:
        try:
            data = await self._call("GET", "/api/journal")
        except PersistenceError as e:
            if self.legacy is None:
                raise
            logger.warning(f"Failed to fetch journal from server, using local cache: {e}")
            return sort_documents(self.legacy.entries())

        docs = [JournalDocument.from_dict(item) for item in (data.get("entries") or [])]
        logger.debug(f"Loaded {len(docs)} journal entries from server")
        if docs and self.legacy is not None:
            try:
                self.legacy.replace(docs)
            except OSError as e:
                logger.warning(f"Could not refresh local journal cache: {e}")
        return docs

    async def save(self, doc: JournalDocument) -> JournalDocument:
        try:
            await self._call("PATCH", f"/api/journal/{urllib.parse.quote(doc.id)}", payload=self._body(doc))
        except DocumentNotFoundError:
            logger.debug(f"Entry {doc.id} not on server yet, creating it")
            await self._call("POST", "/api/journal", payload={"id": doc.id, **self._body(doc)})
        return doc

    async def delete(self, doc_id: str) -> None:
        try:
            await self._call("DELETE", f"/api/journal/{urllib.parse.quote(doc_id)}")
        finally:
            if self.legacy is not None:
                self.legacy.remove(doc_id)

    async def needs_migration(self) -> bool:
        return self.legacy is not None and self.legacy.needs_migration()

    async def migrate_to_server(self) -> int:
        if self.legacy is None:
            return 0
        docs = self.legacy.entries()
        if not docs:
            self.legacy.mark_migrated()
            return 0
        try:
            data = await self._call("POST", "/api/journal/migrate", payload={"entries": [d.to_dict() for d in docs]})
        except PersistenceError as e:
            raise MigrationError(f"Failed to migrate journal entries: {e}", status=e.status) from e
        self.legacy.mark_migrated()
        self.legacy.clear()
        migrated = int(data.get("migrated", 0) or 0)
        logger.info(f"Migrated {migrated} of {len(docs)} local journal entries to the server")
        return migrated


def _error_message(err: urllib.error.HTTPError) -> str:
    """Pull ``{"error": "..."}`` out of an error response, falling back to the status."""
    try:
        body = err.read().decode("utf-8", errors="ignore")
        message = json.loads(body).get("error") if body else None
    except (ValueError, AttributeError):
        message = None
    return message or f"Request failed with status {err.code}"
