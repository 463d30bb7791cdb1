"""Tests for sancho.journal.models."""

import pytest

from sancho.journal.models import (
    JournalDocument,
    derive_title,
    new_document,
    reading_time,
    stamp,
    word_count,
)


class TestJournalDocument:
    def test_defaults(self):
        doc = JournalDocument(id="x")
        assert doc.title == ""
        assert doc.tags == ()
        assert doc.is_starred is False
        assert doc.template_ref is None

    def test_empty_id_raises(self):
        with pytest.raises(ValueError, match="non-empty string"):
            JournalDocument(id="")

    def test_tags_are_normalized(self):
        doc = JournalDocument(id="x", tags=("Poetry", "art", "poetry", "9lives"))
        assert doc.tags == ("art", "poetry")

    def test_frozen(self):
        doc = JournalDocument(id="x")
        with pytest.raises(AttributeError):
            doc.title = "nope"

    def test_to_dict_uses_wire_names(self):
        doc = JournalDocument(id="x", title="T", is_starred=True, template_ref="ode", created_at=1, updated_at=2)
        assert doc.to_dict() == {
            "id": "x",
            "title": "T",
            "content": "",
            "tags": [],
            "isStarred": True,
            "createdAt": 1,
            "updatedAt": 2,
            "templateRef": "ode",
        }

    def test_from_dict_tolerates_missing_fields(self):
        doc = JournalDocument.from_dict({"id": "x", "createdAt": "1700000000000"})
        assert doc.created_at == 1_700_000_000_000
        assert doc.updated_at == doc.created_at
        assert doc.content == ""
        assert doc.tags == ()

    def test_from_dict_round_trip(self):
        doc = JournalDocument(id="x", title="T", content="c", tags=("a",), created_at=5, updated_at=9)
        assert JournalDocument.from_dict(doc.to_dict()) == doc

    def test_repr_long_content_truncated(self):
        doc = JournalDocument(id="x", content="y" * 100)
        assert "..." in repr(doc)


class TestNewDocument:
    def test_blank_with_fresh_id(self):
        first = new_document(1000)
        second = new_document(1000)
        assert first.id != second.id
        assert (first.created_at, first.updated_at) == (1000, 1000)
        assert first.content == ""


class TestDeriveTitle:
    def test_first_line(self):
        assert derive_title("Morning\nrest of the entry") == "Morning"

    def test_truncates_with_ellipsis(self):
        assert derive_title("x" * 31) == "x" * 30 + "…"

    def test_exactly_max_length_is_kept(self):
        assert derive_title("x" * 30) == "x" * 30

    def test_blank_content_is_untitled(self):
        assert derive_title("") == "Untitled"
        assert derive_title("   \nsecond line") == "Untitled"


class TestStamp:
    def test_preserves_created_at(self):
        doc = JournalDocument(id="x", created_at=10, updated_at=10)
        assert stamp(doc, 50, content="new").created_at == 10

    def test_sets_created_at_when_missing(self):
        assert stamp(JournalDocument(id="x"), 50).created_at == 50

    def test_updated_at_strictly_increases(self):
        doc = JournalDocument(id="x", created_at=10, updated_at=100)
        assert stamp(doc, 100).updated_at == 101
        assert stamp(doc, 90).updated_at == 101
        assert stamp(doc, 500).updated_at == 500


class TestStats:
    @pytest.mark.parametrize(
        "text,expected",
        [("", 0), ("   ", 0), ("one", 1), ("one  two\nthree", 3)],
    )
    def test_word_count(self, text, expected):
        assert word_count(text) == expected

    def test_reading_time_rounds_up(self):
        assert reading_time(0) == 1
        assert reading_time(200) == 1
        assert reading_time(201) == 2
