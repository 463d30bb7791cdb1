"""Tests for sancho.journal.engine: load, create, delete, star, tags and goals."""

from __future__ import annotations

import asyncio

import pytest

from sancho.core.events import (
    JOURNAL_DOCUMENT_CREATED,
    JOURNAL_DOCUMENT_DELETED,
    JOURNAL_DOCUMENT_SAVED,
    JOURNAL_DOCUMENT_SELECTED,
    EventBus,
)
from sancho.journal import AsyncioClock, JournalDocument, JournalEngine, SwitchPolicy, SyncConfig, SyncStatus


class TestLoad:
    async def test_opens_newest_entry(self, engine):
        assert engine.selected_id == "a"
        assert engine.content == "First entry"
        assert engine.store.ids() == ["a", "b"]
        assert engine.is_loading is False

    async def test_empty_backend_gets_a_blank_entry(self, gateway, make_engine):
        engine = make_engine()
        await engine.load()

        assert len(engine.store) == 1
        doc = engine.entries[0]
        assert engine.selected_id == doc.id
        assert (doc.title, doc.content, doc.tags) == ("", "", ())
        assert gateway.docs[doc.id] == doc
        engine.close()

    async def test_migrates_legacy_entries_first(self, gateway, make_doc, make_engine):
        gateway.legacy = [make_doc("old", "From before the server")]
        engine = make_engine()
        await engine.load()

        assert gateway.migrated
        assert engine.store.ids() == ["old"]
        engine.close()

    async def test_refresh_keeps_unsaved_edits(self, engine, gateway, make_doc):
        engine.set_content("draft in progress")
        gateway.add(make_doc("c", "Written elsewhere", age=-5000))

        await engine.load()
        assert "c" in engine.store
        assert engine.selected_id == "a"
        assert engine.content == "draft in progress"

    async def test_refresh_picks_up_remote_changes(self, engine, gateway, make_doc):
        gateway.add(make_doc("a", "Changed on another device"))
        await engine.load()
        assert engine.content == "Changed on another device"

    async def test_refresh_moves_off_entry_deleted_remotely(self, engine, gateway):
        del gateway.docs["a"]
        await engine.load()
        assert engine.selected_id == "b"

    async def test_config_switch_policy_is_used(self, make_engine):
        engine = make_engine(config=SyncConfig(switch_policy="prompt"))
        assert engine.reconciler.policy is SwitchPolicy.PROMPT


class TestCreate:
    async def test_new_entry_goes_first_and_is_persisted(self, engine, gateway):
        doc = await engine.create_document()

        assert engine.store.ids()[0] == doc.id
        assert engine.selected_id == doc.id
        assert engine.content == ""
        assert gateway.docs[doc.id] == doc
        assert engine.sync_status is SyncStatus.SYNCED

    async def test_outgoing_edits_are_flushed(self, engine, gateway):
        engine.set_content("don't lose me")
        await engine.create_document()
        assert gateway.docs["a"].content == "don't lose me"

    async def test_failed_create_surfaces_error(self, engine, gateway, clock):
        gateway.fail_all = True
        doc = await engine.create_document()

        assert doc.id in engine.store
        assert engine.sync_status is SyncStatus.ERROR
        assert engine.autosave_error == "Network down"

    async def test_hello_poetry_scenario(self, engine, gateway, clock):
        doc = await engine.create_document()
        engine.set_content("Hello #poetry world")

        await clock.advance(1.5 + 2.5)

        saved = gateway.docs[doc.id]
        assert saved.content == "Hello #poetry world"
        assert "poetry" in saved.tags
        assert saved.title == "Hello #poetry world"
        assert engine.sync_status is SyncStatus.SYNCED


class TestDelete:
    async def test_delete_active_opens_head(self, engine, gateway):
        assert await engine.delete_document("a") is True
        assert engine.store.ids() == ["b"]
        assert engine.selected_id == "b"
        assert gateway.delete_calls == ["a"]

    async def test_delete_inactive_keeps_cursor(self, engine):
        engine.set_content("still typing")
        await engine.delete_document("b")
        assert engine.selected_id == "a"
        assert engine.content == "still typing"
        assert engine.scheduler.has_pending_save

    async def test_deleting_last_entry_leaves_one_blank(self, engine, gateway):
        await engine.delete_document("a")
        await engine.delete_document("b")

        assert len(engine.store) == 1
        blank = engine.entries[0]
        assert blank.id not in ("a", "b")
        assert blank.content == ""
        assert engine.selected_id == blank.id
        assert blank.id in gateway.docs

    async def test_pending_save_is_cancelled(self, engine, gateway, clock):
        engine.set_content("doomed edit")
        await engine.delete_document("a")
        await clock.advance(30)
        assert gateway.saves_for("a") == []

    async def test_deleting_edited_entry_leaves_status_synced(self, engine, gateway, clock):
        engine.set_content("doomed edit")
        assert engine.sync_status is SyncStatus.LOCAL

        await engine.delete_document("a")
        assert engine.selected_id == "b"
        assert engine.sync_status is SyncStatus.SYNCED
        assert engine.scheduler.status_of("a") is SyncStatus.SYNCED

        await clock.advance(30)
        assert engine.sync_status is SyncStatus.SYNCED
        assert gateway.saves_for("a") == []

    async def test_pending_retry_is_cancelled(self, engine, gateway, clock):
        gateway.fail_saves = 1
        engine.set_content("doomed edit")
        await clock.advance(2.5)
        assert len(gateway.saves_for("a")) == 1

        await engine.delete_document("a")
        await clock.advance(30)
        assert len(gateway.saves_for("a")) == 1

    async def test_in_flight_save_cannot_resurrect(self, engine, gateway, settle):
        gateway.save_gate = asyncio.Event()
        engine.set_content("racing the delete")
        save_task = asyncio.create_task(engine.save())
        await settle()

        delete_task = asyncio.create_task(engine.delete_document("a"))
        await settle()
        assert gateway.delete_calls == []

        gateway.save_gate.set()
        await save_task
        await delete_task
        assert gateway.delete_calls == ["a"]
        assert "a" not in gateway.docs
        assert "a" not in engine.store

    async def test_remote_failure_is_only_logged(self, engine, gateway):
        gateway.fail_delete = True
        assert await engine.delete_document("a") is True
        assert "a" not in engine.store
        assert engine.autosave_error is None

    async def test_second_delete_while_one_runs_is_ignored(self, engine, gateway, settle):
        gateway.delete_gate = asyncio.Event()
        first = asyncio.create_task(engine.delete_document("a"))
        await settle()

        assert await engine.delete_document("b") is False
        gateway.delete_gate.set()
        assert await first is True
        assert engine.store.ids() == ["b"]


class TestStar:
    async def test_toggle_persists_full_document(self, engine, gateway):
        assert await engine.toggle_star("a") is True
        assert engine.is_starred is True
        assert engine.store.get("a").is_starred is True
        assert gateway.docs["a"].is_starred is True
        assert gateway.docs["a"].content == "First entry"

    async def test_failure_reverts_store_and_cursor(self, engine, gateway, clock):
        original = engine.store.get("a")
        gateway.fail_all = True
        await clock.advance(1)
        assert await engine.toggle_star("a") is False

        assert engine.store.get("a") == original

        assert engine.is_starred is False
        assert engine.store.get("a").is_starred is engine.is_starred
        assert engine.autosave_error is None

    async def test_star_waits_for_and_defers_autosave(self, engine, gateway, clock, settle):
        gateway.save_gate = asyncio.Event()
        engine.set_content("typed")
        star = asyncio.create_task(engine.toggle_star("a"))
        await settle()
        assert engine.scheduler.is_saving("a")

        await clock.advance(2.5)
        assert len(gateway.save_calls) == 1

        gateway.save_gate.set()
        assert await star is True
        assert engine.scheduler.has_pending_save

        await clock.advance(2.5)
        assert [doc.content for doc in gateway.saves_for("a")] == ["First entry", "typed"]
        assert gateway.peak_saving == 1
        assert gateway.docs["a"].is_starred is True
        assert gateway.docs["a"].content == "typed"
        assert engine.sync_status is SyncStatus.SYNCED

    async def test_star_waits_for_running_autosave(self, engine, gateway, clock, settle):
        gateway.save_gate = asyncio.Event()
        engine.set_content("typed")
        autosave = asyncio.create_task(clock.advance(2.5))
        await settle()
        assert engine.scheduler.is_saving("a")

        star = asyncio.create_task(engine.toggle_star("a"))
        await settle()
        assert len(gateway.save_calls) == 1

        gateway.save_gate.set()
        await autosave
        assert await star is True
        assert gateway.peak_saving == 1
        assert len(gateway.saves_for("a")) == 2
        assert gateway.docs["a"].is_starred is True
        assert gateway.docs["a"].content == "typed"

    async def test_toggle_inactive_entry_leaves_cursor_alone(self, engine, gateway):
        await engine.toggle_star("b")
        assert engine.store.get("b").is_starred is True
        assert engine.is_starred is False

    async def test_mirror_into_cursor_is_not_an_edit(self, engine, clock, gateway):
        await engine.toggle_star("a")
        assert engine.sync_status is SyncStatus.SYNCED
        assert not engine.scheduler.has_pending_save

    async def test_unknown_entry(self, engine):
        assert await engine.toggle_star("nope") is False


class TestTags:
    async def test_extraction_waits_for_quiet_period(self, engine, clock):
        engine.set_content("Walk in the #park")
        await clock.advance(1.4)
        assert engine.tags == ()
        await clock.advance(0.1)
        assert engine.tags == ("park",)

    async def test_extraction_only_adds(self, engine, clock):
        engine.set_tags(["manual"])
        engine.set_content("#auto tag")
        await clock.advance(1.5)
        assert engine.tags == ("auto", "manual")

        engine.set_content("tag removed from text")
        await clock.advance(1.5)
        assert engine.tags == ("auto", "manual")

    async def test_all_available_tags(self, engine):
        engine.store.upsert(JournalDocument(id="c", tags=("zen", "art")))
        assert engine.all_available_tags == ["art", "zen"]


class TestStats:
    async def test_word_count_and_reading_time(self, engine):
        engine.set_content(" ".join(["word"] * 450))
        assert engine.word_count == 450
        assert engine.reading_time == 3

    async def test_empty_content_reads_in_one_minute(self, engine):
        engine.set_content("")
        assert engine.word_count == 0
        assert engine.reading_time == 1


class TestDailyGoal:
    async def test_progress_counts_words_added(self, engine):
        engine.set_daily_goal(10)
        engine.set_content("First entry plus three more")
        assert engine.daily_progress == 3
        assert engine.goal_progress == 30

    async def test_switching_entries_sets_new_baseline(self, engine):
        engine.set_daily_goal(10)
        await engine.select_by_id("b")
        engine.set_content("Second entry grows")
        assert engine.daily_progress == 1

    async def test_percent_capped(self, engine):
        engine.set_daily_goal(2)
        engine.set_content("First entry " + "more " * 10)
        assert engine.goal_progress == 100

    async def test_reset(self, engine):
        engine.set_content("First entry and more")
        engine.reset_daily_progress()
        assert engine.daily_progress == 0


class TestEvents:
    async def test_lifecycle_events(self, gateway, make_doc, make_engine):
        gateway.add(make_doc("a", "one"), make_doc("b", "two", age=10))
        bus = EventBus()
        seen: list[tuple[str, str | None]] = []
        for name in (
            JOURNAL_DOCUMENT_SELECTED,
            JOURNAL_DOCUMENT_CREATED,
            JOURNAL_DOCUMENT_SAVED,
            JOURNAL_DOCUMENT_DELETED,
        ):
            bus.on(name, lambda event: seen.append((event.name, event.payload.get("id"))))
        engine = make_engine(event_bus=bus)

        await engine.load()
        doc = await engine.create_document()
        await engine.delete_document("b")
        engine.close()

        names = [name for name, _ in seen]
        assert (JOURNAL_DOCUMENT_SELECTED, "a") in seen
        assert (JOURNAL_DOCUMENT_CREATED, doc.id) in seen
        assert (JOURNAL_DOCUMENT_SAVED, doc.id) in seen
        assert (JOURNAL_DOCUMENT_DELETED, "b") in seen
        assert names.index(JOURNAL_DOCUMENT_CREATED) < names.index(JOURNAL_DOCUMENT_SAVED)


async def test_aclose_waits_for_started_save(gateway, make_doc, settings, settle):
    gateway.add(make_doc("a", "First entry"))
    gateway.save_gate = asyncio.Event()
    engine = JournalEngine(gateway, clock=AsyncioClock(), settings=settings, config=SyncConfig(save_delay=0.01))
    await engine.load()

    engine.set_content("last words")
    for _ in range(100):
        if gateway.save_calls:
            break
        await asyncio.sleep(0.01)
    assert len(gateway.save_calls) == 1

    closing = asyncio.create_task(engine.aclose())
    await settle()
    assert not closing.done()

    gateway.save_gate.set()
    await asyncio.wait_for(closing, timeout=1)
    assert gateway.docs["a"].content == "last words"


@pytest.mark.smoke
async def test_close_cancels_all_timers(engine, clock, gateway):
    engine.set_content("never saved")
    engine.close()
    await clock.advance(30)
    assert gateway.save_calls == []
    assert clock.pending == []
