"""Tests for the cursor-context heuristics."""

from __future__ import annotations

from nextedit.engine.analysis import (
    CodeContextAnalyzer,
    has_syntax_error,
    inside_identifier,
    is_incomplete_expression,
    logical_unit,
)


def test_cursor_in_middle_of_identifier() -> None:
    text = "public HelloWorld(String foo) {"

    hints = CodeContextAnalyzer().analyze(text, text.index("World"))

    assert hints.cursor_inside_identifier
    assert "middle of an identifier" in hints.describe()


def test_incomplete_expression_is_reported() -> None:
    text = "if (a > b) {\n  foo("

    hints = CodeContextAnalyzer().analyze(text, len(text))

    assert hints.needs_complex_edit
    assert hints.can_complete_with_insertion
    assert hints.current_line == "  foo("
    assert "incomplete expression: foo(" in hints.describe()
    assert hints.logical_unit == "control_structure"


def test_clean_line_has_no_issues() -> None:
    text = "class Point {\n    int x = 1;\n"

    hints = CodeContextAnalyzer().analyze(text, len(text))

    assert hints.issues == ()
    assert not hints.needs_complex_edit
    assert hints.logical_unit == "method"


def test_helpers() -> None:
    assert has_syntax_error('String s = "open;')
    assert has_syntax_error("x = 1;;")
    assert not has_syntax_error("x = 1;")
    assert is_incomplete_expression("total = a +")
    assert not is_incomplete_expression("call(a, b);")
    assert not inside_identifier("abc", 0)
    assert not inside_identifier("ab cd", 2)
    assert logical_unit("struct Node {") == "class"
    assert logical_unit("x = 1") is None
