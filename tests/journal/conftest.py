"""Fixtures for journal engine tests: virtual clock and in-memory gateway."""

from __future__ import annotations

import asyncio
import inspect

import pytest

from sancho.core.exceptions import PersistenceError
from sancho.core.storage import MemoryKeyValueStore
from sancho.journal import JournalDocument, JournalEngine, JournalSettings, SyncConfig

START_MS = 1_700_000_000_000


class ManualTimer:
    def __init__(self, due: int, seq: int, callback):
        self.due = due
        self.seq = seq
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock:
    """Virtual time. ``advance()`` fires due timers in order and awaits them.

    A test that holds the gateway open must release it before advancing
    past a timer that saves, or ``advance()`` waits forever.
    """

    def __init__(self, start_ms: int = START_MS):
        self._now = start_ms
        self._seq = 0
        self._timers: list[ManualTimer] = []

    def now_ms(self) -> int:
        return self._now

    def call_later(self, delay: float, callback) -> ManualTimer:
        self._seq += 1
        timer = ManualTimer(self._now + round(delay * 1000), self._seq, callback)
        self._timers.append(timer)
        return timer

    @property
    def pending(self) -> list[ManualTimer]:
        return [t for t in self._timers if not t.cancelled]

    async def advance(self, seconds: float) -> None:
        target = self._now + round(seconds * 1000)
        while True:
            due = [t for t in self._timers if not t.cancelled and t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.due, t.seq))
            self._timers.remove(timer)
            self._now = max(self._now, timer.due)
            result = timer.callback()
            if inspect.isawaitable(result):
                await result
        self._timers = [t for t in self._timers if not t.cancelled]
        self._now = target

    async def drain(self) -> None:
        """Nothing to wait for: advance() awaits every callback it fires."""


class FakeGateway:
    """In-memory PersistenceGateway that records every call with virtual timestamps."""

    def __init__(self, clock: ManualClock):
        self.clock = clock
        self.docs: dict[str, JournalDocument] = {}
        self.save_calls: list[tuple[int, JournalDocument]] = []
        self.delete_calls: list[str] = []
        self.fail_saves = 0
        self.fail_all = False
        self.fail_delete = False
        self.save_gate: asyncio.Event | None = None
        self.delete_gate: asyncio.Event | None = None
        self.legacy: list[JournalDocument] = []
        self.migrated = False
        self.saving = 0
        self.peak_saving = 0

    def add(self, *docs: JournalDocument) -> None:
        for doc in docs:
            self.docs[doc.id] = doc

    @property
    def save_times(self) -> list[int]:
        return [ts for ts, _doc in self.save_calls]

    def saves_for(self, doc_id: str) -> list[JournalDocument]:
        return [doc for _ts, doc in self.save_calls if doc.id == doc_id]

    async def get_all(self) -> list[JournalDocument]:
        return sorted(self.docs.values(), key=lambda d: d.created_at, reverse=True)

    async def save(self, doc: JournalDocument) -> JournalDocument:
        self.save_calls.append((self.clock.now_ms(), doc))
        self.saving += 1
        self.peak_saving = max(self.peak_saving, self.saving)
        try:
            if self.save_gate is not None:
                await self.save_gate.wait()
            if self.fail_all or self.fail_saves > 0:
                self.fail_saves = max(0, self.fail_saves - 1)
                raise PersistenceError("Network down")
            self.docs[doc.id] = doc
            return doc
        finally:
            self.saving -= 1

    async def delete(self, doc_id: str) -> None:
        self.delete_calls.append(doc_id)
        if self.delete_gate is not None:
            await self.delete_gate.wait()
        if self.fail_delete:
            raise PersistenceError("Delete failed")
        self.docs.pop(doc_id, None)

    async def needs_migration(self) -> bool:
        return bool(self.legacy) and not self.migrated

    async def migrate_to_server(self) -> int:
        for doc in self.legacy:
            self.docs[doc.id] = doc
        self.migrated = True
        return len(self.legacy)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def gateway(clock):
    return FakeGateway(clock)


@pytest.fixture
def make_doc():
    def _make(doc_id: str, content: str = "", *, age: int = 0, **fields) -> JournalDocument:
        created = START_MS - 60_000 - age
        return JournalDocument(
            id=doc_id,
            content=content,
            title=fields.pop("title", content.split("\n")[0][:30]),
            created_at=created,
            updated_at=created,
            **fields,
        )

    return _make


@pytest.fixture
def settings():
    return JournalSettings(MemoryKeyValueStore())


@pytest.fixture
def make_engine(gateway, clock, settings):
    def _make(**kwargs) -> JournalEngine:
        kwargs.setdefault("config", SyncConfig())
        return JournalEngine(gateway, clock=clock, settings=settings, **kwargs)

    return _make


@pytest.fixture
async def engine(gateway, make_doc, make_engine):
    """Engine loaded with two entries; ``a`` (newest) is open."""
    gateway.add(make_doc("a", "First entry", age=0), make_doc("b", "Second entry", age=1000))
    eng = make_engine()
    await eng.load()
    yield eng
    eng.close()


@pytest.fixture
def settle():
    """Let freshly created tasks run up to their next suspension point."""

    async def _settle(rounds: int = 5) -> None:
        for _ in range(rounds):
            await asyncio.sleep(0)

    return _settle
