"""Bookkeeping for the proposal currently shown in the editor.

The manager owns the resolved edits that are on screen and the handles the
renderer returned for them.  It never draws anything itself; drawing is
delegated to a :class:`HighlightRenderer` supplied by the editor shell.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

from ..core.edits import EditKind, ResolvedEdit
from ..core.errors import OutOfRangeError
from .document_model import TextBuffer

LOGGER = logging.getLogger(__name__)

REMOVAL = "removal"
ADDITION = "addition"


class HighlightRenderer(Protocol):
    """Editor-side drawing surface for proposal highlights."""

    def add_removal(self, start: int, end: int) -> Any:  # pragma: no cover - protocol stub
        ...

    def add_addition(self, offset: int, text: str) -> Any:  # pragma: no cover - protocol stub
        ...

    def remove(self, handle: Any) -> None:  # pragma: no cover - protocol stub
        ...


@dataclass(slots=True, frozen=True)
class HighlightSpan:
    """One rendered decoration; ``text`` is only set for additions."""

    style: str
    start: int
    end: int
    text: str = ""
    handle: Any = None


def preview_text(new_text: str) -> str:
    """Return the text shown in an addition preview."""

    # Models sometimes emit literal "\n" sequences inside JSON strings.
    return (new_text or "").strip().replace("\\n", "\n")


class HighlightStateManager:
    """Tracks the visible proposal and the renderer handles backing it."""

    def __init__(self, renderer: HighlightRenderer | None = None) -> None:
        self._renderer = renderer
        self._edits: tuple[ResolvedEdit, ...] = ()
        self._spans: list[HighlightSpan] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def show(self, edits: Sequence[ResolvedEdit], buffer: TextBuffer) -> tuple[HighlightSpan, ...]:
        """Replace whatever is shown with ``edits``."""

        self.clear()
        self._edits = tuple(edits)
        for edit in self._edits:
            try:
                if edit.kind in (EditKind.REPLACE, EditKind.DELETE):
                    for start, end in removal_ranges(edit, buffer):
                        self._add(HighlightSpan(REMOVAL, start, end))
                if edit.kind in (EditKind.REPLACE, EditKind.INSERT):
                    offset = addition_offset(edit, buffer)
                    self._add(HighlightSpan(ADDITION, offset, offset, preview_text(edit.new_text)))
            except OutOfRangeError:
                LOGGER.warning("Skipping highlight for edit outside the buffer: %s-%s", edit.start, edit.end)
        LOGGER.debug("Showing %s edit(s) with %s span(s)", len(self._edits), len(self._spans))
        return tuple(self._spans)

    def clear(self) -> None:
        """Remove every span; safe to call when nothing is shown."""

        spans, self._spans = self._spans, []
        self._edits = ()
        if self._renderer is None:
            return
        for span in spans:
            if span.handle is None:
                continue
            try:
                self._renderer.remove(span.handle)
            except Exception:  # pragma: no cover - renderer failures must not leak spans
                LOGGER.debug("Renderer failed to remove %s span", span.style, exc_info=True)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @property
    def edits(self) -> tuple[ResolvedEdit, ...]:
        return self._edits

    @property
    def spans(self) -> tuple[HighlightSpan, ...]:
        return tuple(self._spans)

    @property
    def is_showing(self) -> bool:
        return bool(self._edits)

    def removal_spans(self) -> tuple[tuple[int, int], ...]:
        return merge_spans(tuple((span.start, span.end) for span in self._spans if span.style == REMOVAL))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _add(self, span: HighlightSpan) -> None:
        handle = None
        if self._renderer is not None:
            try:
                if span.style == REMOVAL:
                    handle = self._renderer.add_removal(span.start, span.end)
                else:
                    handle = self._renderer.add_addition(span.start, span.text)
            except Exception:  # pragma: no cover - bookkeeping continues without a handle
                LOGGER.debug("Renderer failed to add %s span", span.style, exc_info=True)
        self._spans.append(
            HighlightSpan(style=span.style, start=span.start, end=span.end, text=span.text, handle=handle)
        )


def removal_ranges(edit: ResolvedEdit, buffer: TextBuffer) -> list[tuple[int, int]]:
    """Return the full-line ranges covered by a replace/delete edit."""

    first = buffer.line_at(edit.start)
    last_char = edit.end - 1 if edit.end > edit.start else edit.start
    last = buffer.line_at(last_char)
    return [buffer.line_bounds(line) for line in range(first, last + 1)]


def addition_offset(edit: ResolvedEdit, buffer: TextBuffer) -> int:
    """Return where the addition preview is anchored: end of the last affected line."""

    if edit.kind is EditKind.INSERT or edit.end == edit.start:
        line = buffer.line_at(edit.start)
    else:
        line = buffer.line_at(edit.end - 1)
    return buffer.line_bounds(line)[1]


def merge_spans(spans: Sequence[tuple[int, int]]) -> tuple[tuple[int, int], ...]:
    """Merge overlapping or touching spans into sorted, disjoint spans."""

    if not spans:
        return ()
    ordered = sorted(spans, key=lambda span: span[0])
    merged: list[list[int]] = []
    for start, end in ordered:
        if not merged or start > merged[-1][1]:
            merged.append([start, end])
        else:
            merged[-1][1] = max(merged[-1][1], end)
    return tuple((start, end) for start, end in merged)


__all__ = [
    "HighlightRenderer",
    "HighlightSpan",
    "HighlightStateManager",
    "REMOVAL",
    "ADDITION",
    "preview_text",
    "removal_ranges",
    "addition_offset",
    "merge_spans",
]
