"""Batch application of resolved edits against a :class:`TextBuffer`."""

from __future__ import annotations

import difflib
import logging
from dataclasses import dataclass
from difflib import SequenceMatcher
from enum import Enum
from typing import TYPE_CHECKING, Sequence, Tuple

from ..core.edits import EditKind, ResolvedEdit
from ..core.errors import OutOfRangeError, StaleOffsetError
from .document_model import TextBuffer

if TYPE_CHECKING:  # pragma: no cover
    from ..engine.context import DocumentMutationSink

LOGGER = logging.getLogger(__name__)


class BatchOrder(str, Enum):
    """Traversal order used when mutating the buffer."""

    DESCENDING = "descending"
    ASCENDING = "ascending"


@dataclass(slots=True)
class BatchResult:
    """Outcome of applying a batch of edits."""

    text: str
    applied: int
    spans: Tuple[Tuple[int, int], ...]
    summary: str


def apply_batch(
    buffer: TextBuffer,
    edits: Sequence[ResolvedEdit],
    *,
    order: BatchOrder = BatchOrder.DESCENDING,
    sink: "DocumentMutationSink | None" = None,
) -> BatchResult:
    """Apply ``edits`` to ``buffer`` as one logical transaction.

    The whole batch is validated before the first mutation, so overlapping or
    out-of-range edits abort with :class:`StaleOffsetError` and leave the buffer
    untouched.  A mutation failing mid-batch also raises
    :class:`StaleOffsetError`; edits already applied are not rolled back.
    """

    before = buffer.text
    if not edits:
        return BatchResult(text=before, applied=0, spans=(), summary=_summarize(before, before))

    ordered = _validate(edits, len(before))
    steps = _plan(ordered, order)

    applied = 0
    for index, edit, start, end in steps:
        try:
            buffer.apply(edit.kind, start, end, edit.new_text)
        except OutOfRangeError as exc:
            raise StaleOffsetError(
                f"Edit {index} no longer fits the buffer: {exc}",
                edit_index=index,
                applied=applied,
            ) from exc
        if sink is not None:
            sink.apply_mutation(edit.kind, start, end, edit.new_text)
        applied += 1

    after = buffer.text
    LOGGER.debug("Applied %s edit(s) in %s order", applied, order.value)
    return BatchResult(
        text=after,
        applied=applied,
        spans=compute_spans(before, after),
        summary=_summarize(before, after),
    )


def preview_batch(text: str, edits: Sequence[ResolvedEdit]) -> str:
    """Return ``text`` with ``edits`` applied, without touching any buffer."""

    if not edits:
        return text
    ordered = _validate(edits, len(text))
    result = text
    for _index, edit, start, end in _plan(ordered, BatchOrder.DESCENDING):
        replacement = "" if edit.kind is EditKind.DELETE else edit.new_text
        result = result[:start] + replacement + result[end:]
    return result


def render_diff(before: str, after: str, path: str = "document") -> str:
    """Return a unified diff between two versions of a document."""

    lines = difflib.unified_diff(
        before.splitlines(keepends=True),
        after.splitlines(keepends=True),
        fromfile=f"a/{path}",
        tofile=f"b/{path}",
    )
    return "".join(lines)


def compute_spans(before: str, after: str) -> Tuple[Tuple[int, int], ...]:
    matcher = SequenceMatcher(a=before, b=after, autojunk=False)
    spans: list[tuple[int, int]] = []
    for tag, _i1, _i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal" or j1 == j2:
            continue
        spans.append((j1, j2))
    return tuple(spans)


def _summarize(before: str, after: str) -> str:
    delta = len(after) - len(before)
    if delta == 0:
        return "batch: 0 chars"
    sign = "+" if delta > 0 else "-"
    return f"batch: {sign}{abs(delta)} chars"


def _validate(edits: Sequence[ResolvedEdit], length: int) -> list[tuple[int, ResolvedEdit]]:
    """Check bounds and overlap; return ``(list index, edit)`` pairs sorted by start."""

    indexed = list(enumerate(edits))
    for index, edit in indexed:
        if not edit.resolved:
            raise StaleOffsetError(f"Edit {index} was never resolved", reason="unresolved", edit_index=index)
        if edit.start < 0 or edit.end < edit.start or edit.end > length:
            raise StaleOffsetError(
                f"Edit {index} range ({edit.start}, {edit.end}) exceeds buffer length {length}",
                reason="range_overflow",
                edit_index=index,
            )
    ordered = sorted(indexed, key=lambda item: (item[1].start, item[1].end, item[0]))
    _ensure_non_overlapping(ordered)
    return ordered


def _ensure_non_overlapping(ordered: Sequence[tuple[int, ResolvedEdit]]) -> None:
    # Touching ranges are fine; an insert on a range boundary is not an overlap.
    previous_end = -1
    for index, edit in ordered:
        if edit.start < previous_end:
            raise StaleOffsetError("Edits in one batch may not overlap", reason="range_overlap", edit_index=index)
        previous_end = max(previous_end, edit.end)


def _plan(
    ordered: Sequence[tuple[int, ResolvedEdit]], order: BatchOrder
) -> list[tuple[int, ResolvedEdit, int, int]]:
    """Return ``(index, edit, start, end)`` steps with offsets valid at application time."""

    if order is BatchOrder.DESCENDING:
        # Inserts sharing an offset are applied last-first so they read in list order.
        return [(index, edit, edit.start, edit.end) for index, edit in reversed(ordered)]

    steps: list[tuple[int, ResolvedEdit, int, int]] = []
    drift = 0
    for index, edit in ordered:
        moved = edit.shifted(drift)
        steps.append((index, moved, moved.start, moved.end))
        inserted = 0 if edit.kind is EditKind.DELETE else len(edit.new_text)
        drift += inserted - (edit.end - edit.start)
    return steps


__all__ = [
    "BatchOrder",
    "BatchResult",
    "apply_batch",
    "preview_batch",
    "render_diff",
    "compute_spans",
]
