"""Tests for sancho.journal.tags."""

import pytest

from sancho.core.exceptions import TagValidationError
from sancho.journal.models import JournalDocument
from sancho.journal.tags import (
    all_tags,
    extract_tags,
    filter_by_tag,
    highlight_tags,
    is_valid_tag,
    merge_tags,
    parse_tag_input,
    tag_counts,
    untagged,
    validate_tag,
)

pytestmark = pytest.mark.smoke


class TestValidation:
    @pytest.mark.parametrize("tag", ["a", "poetry", "work-log", "snake_case", "x9", "a" * 32])
    def test_valid(self, tag):
        assert is_valid_tag(tag)

    @pytest.mark.parametrize("tag", ["", "9lives", "-dash", "_under", "has space", "dot.ted", "a" * 33])
    def test_invalid(self, tag):
        assert not is_valid_tag(tag)

    def test_validate_normalizes(self):
        assert validate_tag("#Poetry") == "poetry"

    def test_validate_raises_on_bad_tag(self):
        with pytest.raises(TagValidationError, match="Invalid tag"):
            validate_tag("#1st")


class TestExtract:
    def test_lowercased_unique_sorted(self):
        assert extract_tags("Hello #Poetry and #art, more #poetry") == ["art", "poetry"]

    def test_no_tags(self):
        assert extract_tags("") == []
        assert extract_tags("no tags # here") == []

    def test_tag_must_start_with_letter(self):
        assert extract_tags("issue #42 and #a1") == ["a1"]

    def test_stops_at_punctuation(self):
        assert extract_tags("(#mood) #end.") == ["end", "mood"]


class TestMerge:
    def test_union_drops_invalid(self):
        assert merge_tags(["Manual", "bad tag"], ["auto", "manual"]) == ["auto", "manual"]

    def test_idempotent(self):
        content = "#one #two"
        once = merge_tags(["three"], extract_tags(content))
        twice = merge_tags(once, extract_tags(content))
        assert once == twice


class TestParseInput:
    def test_commas_and_whitespace(self):
        assert parse_tag_input("#Work, life  balance,,") == ["balance", "life", "work"]

    def test_drops_invalid_and_duplicates(self):
        assert parse_tag_input("ok 1bad ok #OK") == ["ok"]

    def test_empty(self):
        assert parse_tag_input("") == []


class TestCollections:
    @pytest.fixture
    def docs(self):
        return [
            JournalDocument(id="1", tags=("poetry", "art")),
            JournalDocument(id="2", tags=("poetry",)),
            JournalDocument(id="3"),
        ]

    def test_all_tags(self, docs):
        assert all_tags(docs) == ["art", "poetry"]

    def test_tag_counts(self, docs):
        assert tag_counts(docs) == {"poetry": 2, "art": 1}

    def test_filter_by_tag_accepts_hash(self, docs):
        assert [d.id for d in filter_by_tag(docs, "#Poetry")] == ["1", "2"]

    def test_untagged(self, docs):
        assert [d.id for d in untagged(docs)] == ["3"]

    def test_highlight(self):
        assert highlight_tags("a #b c") == "a [#b] c"
        assert highlight_tags("#x", template="<{tag}>") == "<x>"
