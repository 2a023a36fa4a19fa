"""Tests for the TextBuffer mirror."""

from __future__ import annotations

import pytest

from nextedit.core.edits import EditKind
from nextedit.core.errors import OutOfRangeError
from nextedit.editor.document_model import TextBuffer


def test_line_queries_track_newlines() -> None:
    buffer = TextBuffer("alpha\nbeta\n\ngamma")

    assert buffer.line_count == 4
    assert buffer.line_at(0) == 0
    assert buffer.line_at(5) == 0
    assert buffer.line_at(6) == 1
    assert buffer.line_at(len(buffer)) == 3
    assert buffer.line_bounds(1) == (6, 10)
    assert buffer.line_text(2) == ""
    assert buffer.line_text(3) == "gamma"


def test_line_at_rejects_offsets_outside_buffer() -> None:
    buffer = TextBuffer("abc")

    with pytest.raises(OutOfRangeError):
        buffer.line_at(4)
    with pytest.raises(OutOfRangeError):
        buffer.line_bounds(1)


def test_apply_insert_replace_delete_bump_version() -> None:
    buffer = TextBuffer("hello world")
    version = buffer.version
    original_hash = buffer.content_hash

    buffer.apply(EditKind.INSERT, 5, 5, ",")
    buffer.apply(EditKind.REPLACE, 7, 12, "there")
    buffer.apply(EditKind.DELETE, 0, 1)

    assert buffer.text == "ello, there"
    assert buffer.version == version + 3
    assert buffer.content_hash != original_hash


def test_apply_rejects_invalid_ranges_without_mutating() -> None:
    buffer = TextBuffer("abc")

    with pytest.raises(OutOfRangeError) as excinfo:
        buffer.apply(EditKind.REPLACE, 2, 9, "x")
    assert excinfo.value.length == 3

    with pytest.raises(OutOfRangeError) as insert_error:
        buffer.apply(EditKind.INSERT, 0, 1, "x")
    assert insert_error.value.reason == "insert_range"

    assert buffer.text == "abc"
    assert buffer.version == 1


def test_line_index_follows_direct_text_assignment() -> None:
    buffer = TextBuffer("one")
    assert buffer.line_count == 1

    buffer.text = "one\ntwo"

    assert buffer.line_count == 2


def test_reset_reports_whether_text_changed() -> None:
    buffer = TextBuffer("same")

    assert buffer.reset("same") is False
    assert buffer.version == 1
    assert buffer.reset("different") is True
    assert buffer.version == 2
    assert buffer.version_signature().startswith(buffer.document_id)
    assert buffer.snapshot()["text"] == "different"
