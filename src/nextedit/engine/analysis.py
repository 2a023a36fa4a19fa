"""Cheap, language-agnostic heuristics about the text around the cursor.

These hints are advisory: they are forwarded to the classification model and
used for one local veto (no inline completion in the middle of a word), but
they never decide a suggestion on their own.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

__all__ = ["ContextHints", "CodeContextAnalyzer"]

_SCAN_CHARS = 200
_METHOD_RE = re.compile(
    r"\b(void|int|String|boolean|double|float|long|short|byte|char|Object|List|Map|Set|def|fun|func|fn)\b"
)
_CLASS_RE = re.compile(r"\b(class|interface|struct|enum|trait)\b")
_CONTROL_RE = re.compile(r"\b(if|for|while|switch|match)\b")
_COMPLETE_SUFFIXES = (";", "{", "}")
_DANGLING_SUFFIXES = (".", "+", "-", "*", "/", "=", ",")
_BRACKETS = (("(", ")"), ("{", "}"), ("[", "]"))


@dataclass(slots=True, frozen=True)
class ContextHints:
    current_line: str = ""
    can_complete_with_insertion: bool = False
    needs_complex_edit: bool = False
    cursor_inside_identifier: bool = False
    logical_unit: str | None = None
    issues: tuple[str, ...] = field(default_factory=tuple)

    def describe(self) -> str:
        """Render the hints as a short plain-text note for the model."""

        parts = []
        if self.logical_unit:
            parts.append(f"cursor is inside a {self.logical_unit}")
        if self.cursor_inside_identifier:
            parts.append("cursor is in the middle of an identifier")
        if self.can_complete_with_insertion:
            parts.append("an insertion at the cursor looks possible")
        parts.extend(self.issues)
        return "; ".join(parts)


class CodeContextAnalyzer:
    """Derives :class:`ContextHints` from the document text and cursor offset."""

    def analyze(self, text: str, cursor_offset: int) -> ContextHints:
        cursor = max(0, min(cursor_offset, len(text)))
        line_start = text.rfind("\n", 0, cursor) + 1
        line_end = text.find("\n", cursor)
        if line_end < 0:
            line_end = len(text)
        line = text[line_start:line_end]
        before_cursor = text[line_start:cursor].strip()

        can_insert = (
            cursor >= line_end - 1
            or not before_cursor
            or before_cursor.endswith(_COMPLETE_SUFFIXES)
        )

        issues: list[str] = []
        if has_syntax_error(line):
            issues.append(f"possible syntax error: {line.strip()}")
        if is_incomplete_expression(line):
            issues.append(f"incomplete expression: {line.strip()}")

        return ContextHints(
            current_line=line,
            can_complete_with_insertion=can_insert,
            needs_complex_edit=bool(issues),
            cursor_inside_identifier=inside_identifier(text, cursor),
            logical_unit=logical_unit(text[max(0, cursor - _SCAN_CHARS) : cursor]),
            issues=tuple(issues),
        )


def has_syntax_error(line: str) -> bool:
    return ";;" in line or line.count('"') % 2 != 0 or line.count("'") % 2 != 0


def is_incomplete_expression(line: str) -> bool:
    stripped = line.rstrip()
    if any(stripped.count(left) != stripped.count(right) for left, right in _BRACKETS):
        return True
    return stripped.endswith(_DANGLING_SUFFIXES)


def inside_identifier(text: str, cursor: int) -> bool:
    if cursor <= 0 or cursor >= len(text):
        return False
    return _is_word(text[cursor - 1]) and _is_word(text[cursor])


def logical_unit(before: str) -> str | None:
    if _METHOD_RE.search(before):
        return "method"
    if _CLASS_RE.search(before):
        return "class"
    if _CONTROL_RE.search(before):
        return "control_structure"
    return None


def _is_word(char: str) -> bool:
    return char.isalnum() or char == "_"
