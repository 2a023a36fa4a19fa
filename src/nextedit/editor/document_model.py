"""Mutable text buffer mirroring the document open in the editor."""

from __future__ import annotations

import hashlib
import uuid
from bisect import bisect_right
from dataclasses import dataclass, field
from typing import Any, Dict

from ..core.edits import EditKind
from ..core.errors import OutOfRangeError


def _hash_text(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


def _line_starts(text: str) -> list[int]:
    starts = [0]
    index = text.find("\n")
    while index != -1:
        starts.append(index + 1)
        index = text.find("\n", index + 1)
    return starts


@dataclass(slots=True)
class TextBuffer:
    """Authoritative text of one open document plus a lazily rebuilt line index.

    Every mutation bumps :attr:`version` and refreshes :attr:`content_hash`, so
    consumers holding offsets can detect that the text moved underneath them.
    """

    text: str = ""
    language: str = "code"
    document_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    version: int = 1
    content_hash: str = field(default_factory=str)
    _line_index: list[int] = field(default_factory=list, repr=False, compare=False)
    _indexed_text: str | None = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.content_hash:
            self.content_hash = _hash_text(self.text)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def length(self) -> int:
        return len(self.text)

    def __len__(self) -> int:
        return len(self.text)

    @property
    def line_count(self) -> int:
        return len(self._lines())

    def slice(self, start: int, end: int) -> str:
        self._check_range(start, end)
        return self.text[start:end]

    def line_at(self, offset: int) -> int:
        """Return the 0-based line holding ``offset`` (``offset == len`` is allowed)."""

        if offset < 0 or offset > len(self.text):
            raise OutOfRangeError(
                f"Offset {offset} outside buffer of length {len(self.text)}",
                start=offset,
                length=len(self.text),
            )
        return bisect_right(self._lines(), offset) - 1

    def line_bounds(self, line: int) -> tuple[int, int]:
        """Return ``(start, end)`` of ``line``; ``end`` excludes the newline."""

        starts = self._lines()
        if line < 0 or line >= len(starts):
            raise OutOfRangeError(
                f"Line {line} outside buffer with {len(starts)} line(s)",
                reason="line_out_of_range",
                start=line,
                length=len(starts),
            )
        start = starts[line]
        if line + 1 < len(starts):
            end = starts[line + 1] - 1
        else:
            end = len(self.text)
        return start, end

    def line_text(self, line: int) -> str:
        start, end = self.line_bounds(line)
        return self.text[start:end]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def apply(self, kind: EditKind, start: int, end: int, new_text: str = "") -> None:
        """Apply one insert/replace/delete to the buffer."""

        kind = EditKind.parse(kind)
        self._check_range(start, end)
        if kind is EditKind.INSERT and start != end:
            raise OutOfRangeError(
                "Insert requires start == end",
                reason="insert_range",
                start=start,
                end=end,
                length=len(self.text),
            )
        replacement = "" if kind is EditKind.DELETE else (new_text or "")
        self._set_text(self.text[:start] + replacement + self.text[end:])

    def reset(self, text: str) -> bool:
        """Replace the whole text; returns ``False`` when nothing changed."""

        if text == self.text:
            return False
        self._set_text(text)
        return True

    def snapshot(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "language": self.language,
            "document_id": self.document_id,
            "version": self.version,
            "content_hash": self.content_hash,
        }

    def version_signature(self) -> str:
        return f"{self.document_id}:{self.version}:{self.content_hash}"

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _set_text(self, text: str) -> None:
        self.text = text
        self.version += 1
        self.content_hash = _hash_text(text)

    def _lines(self) -> list[int]:
        # Identity check also catches direct assignment to ``text``.
        if self._indexed_text is not self.text:
            self._line_index = _line_starts(self.text)
            self._indexed_text = self.text
        return self._line_index

    def _check_range(self, start: int, end: int) -> None:
        length = len(self.text)
        if start < 0 or end < start or end > length:
            raise OutOfRangeError(
                f"Range ({start}, {end}) outside buffer of length {length}",
                start=start,
                end=end,
                length=length,
            )


__all__ = ["TextBuffer"]
