"""
Tests for hiermem.validation and hiermem.errors — limits, levels, results.
"""

import pytest

from hiermem.errors import (
    FILE_IO_ERROR,
    INVALID_CONTENT,
    INVALID_TAGS,
    VALID_ERROR_KINDS,
    MemoryResult,
    MemoryStoreError,
)
from hiermem.types import LONG_TERM, MEDIUM_TERM, SHORT_TERM
from hiermem.validation import (
    split_tags,
    validate_content,
    validate_level,
    validate_tags,
)


# ---------------------------------------------------------------------------
# Result type
# ---------------------------------------------------------------------------


class TestMemoryResult:
    def test_success(self):
        r = MemoryResult.success("abc")
        assert r.is_ok and not r.is_err
        assert r.kind is None
        assert r.unwrap() == "abc"
        assert r.get_or_default("zzz") == "abc"

    def test_failure(self):
        r = MemoryResult.failure(INVALID_CONTENT, "Content cannot be empty")
        assert r.is_err
        assert r.kind == INVALID_CONTENT
        assert r.error.details == "Content cannot be empty"
        assert r.get_or_default("default-id") == "default-id"
        with pytest.raises(MemoryStoreError) as exc_info:
            r.unwrap()
        assert exc_info.value.kind == INVALID_CONTENT

    def test_error_message(self):
        err = MemoryStoreError(FILE_IO_ERROR, "disk full")
        assert str(err) == "file_io_error: disk full"

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError):
            MemoryStoreError("oops")

    def test_all_kinds(self):
        assert VALID_ERROR_KINDS == {
            "parent_not_found", "memory_not_found", "invalid_content",
            "invalid_tags", "file_io_error", "json_parse_error",
            "circular_dependency",
        }


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------


class TestValidateContent:
    def test_empty(self):
        assert validate_content("", 10).kind == INVALID_CONTENT

    def test_exact_limit_accepted(self):
        assert validate_content("x" * 10, 10).is_ok

    def test_one_over_rejected(self):
        r = validate_content("x" * 11, 10)
        assert r.kind == INVALID_CONTENT
        assert "11 > 10" in r.error.details

    def test_counts_characters(self):
        assert validate_content("é" * 10, 10).is_ok


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------


class TestValidateTags:
    def test_no_tags(self):
        assert validate_tags([], 5, 3).is_ok

    def test_count_boundary(self):
        assert validate_tags(["a", "b", "c"], 5, 3).is_ok
        assert validate_tags(["a", "b", "c", "d"], 5, 3).kind == INVALID_TAGS

    def test_length_boundary(self):
        assert validate_tags(["abcde"], 5, 3).is_ok
        assert validate_tags(["abcdef"], 5, 3).kind == INVALID_TAGS

    def test_empty_tag(self):
        r = validate_tags([""], 5, 3)
        assert r.kind == INVALID_TAGS
        assert "empty" in r.error.details

    @pytest.mark.parametrize("tag", ["with space", "dot.ted", "slash/", "ümlaut", "a!", "abc\n"])
    def test_invalid_characters(self, tag):
        assert validate_tags([tag], 50, 3).kind == INVALID_TAGS

    def test_valid_characters(self):
        assert validate_tags(["valid_tag", "another-tag", "X9"], 50, 3).is_ok

    def test_first_violation_reported(self):
        r = validate_tags(["ok", "", "bad tag"], 50, 5)
        assert "empty" in r.error.details


# ---------------------------------------------------------------------------
# Levels
# ---------------------------------------------------------------------------


class TestValidateLevel:
    @pytest.mark.parametrize("text,level", [
        ("short_term", SHORT_TERM), ("SHORT", SHORT_TERM), ("st", SHORT_TERM),
        ("Medium_Term", MEDIUM_TERM), ("medium", MEDIUM_TERM), ("MT", MEDIUM_TERM),
        ("long_term", LONG_TERM), ("Long", LONG_TERM), ("lt", LONG_TERM),
    ])
    def test_spellings(self, text, level):
        assert validate_level(text).unwrap() == level

    def test_unknown(self):
        r = validate_level("forever")
        assert r.kind == INVALID_CONTENT
        assert "forever" in r.error.details


class TestSplitTags:
    def test_split(self):
        assert split_tags("work, urgent,,todo ") == ["work", "urgent", "todo"]

    def test_empty(self):
        assert split_tags("") == []
