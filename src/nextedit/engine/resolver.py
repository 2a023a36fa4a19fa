"""Locate model-supplied anchor text inside the live buffer.

The proposal model describes each edit by quoting the text it wants to
change rather than by offsets, and its quotes are frequently imprecise: the
cursor marker leaks into them, indentation is re-flowed, or a typo in the
buffer is "corrected" inside the quote itself.  :class:`OffsetResolver`
places inserts at the cursor without searching; every other edit goes
through progressively looser strategies, stopping at the first hit:

1. exact substring,
2. whitespace-normalized substring mapped back to original offsets,
3. line similarity (Levenshtein distance on the anchor's first line),
4. sliding window compared by Hamming distance.

Ties always go to the first occurrence in the buffer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from rapidfuzz.distance import Hamming, Levenshtein

from ..core.edits import CURSOR_MARKER, EditKind, MatchTier, RawEdit, ResolvedEdit
from ..core.errors import UnresolvedAnchorError

__all__ = ["OffsetResolver", "AnchorMatch", "strip_cursor_marker", "normalize_whitespace"]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class AnchorMatch:
    start: int
    end: int
    tier: MatchTier


def strip_cursor_marker(text: str) -> str:
    return (text or "").replace(CURSOR_MARKER, "")


def normalize_whitespace(text: str) -> tuple[str, list[int]]:
    """Collapse whitespace runs to one space; return the text and an origin map.

    ``origin[i]`` is the offset in ``text`` of the character that produced
    position ``i`` of the normalized string.
    """

    chars: list[str] = []
    origin: list[int] = []
    in_whitespace = False
    for index, char in enumerate(text):
        if char.isspace():
            if in_whitespace:
                continue
            chars.append(" ")
            origin.append(index)
            in_whitespace = True
        else:
            chars.append(char)
            origin.append(index)
            in_whitespace = False
    return "".join(chars), origin


class OffsetResolver:
    """Resolves :class:`RawEdit` anchors into ``[start, end)`` buffer ranges."""

    def __init__(self, *, max_mismatches: int = 2) -> None:
        self._max_mismatches = max(0, int(max_mismatches))

    @property
    def max_mismatches(self) -> int:
        return self._max_mismatches

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def resolve(self, edit: RawEdit, text: str, cursor_offset: int) -> ResolvedEdit:
        """Resolve a single edit; unresolved results carry ``(0, 0)``."""

        if edit.kind is EditKind.INSERT:
            # The anchor only gives the model context; the caret decides where text goes.
            cursor = max(0, min(cursor_offset, len(text)))
            return ResolvedEdit.from_raw(edit, cursor, cursor, MatchTier.CURSOR)

        cleaned = strip_cursor_marker(edit.anchor_text)
        if not cleaned:
            LOGGER.debug("%s edit has an empty anchor", edit.kind.value)
            return ResolvedEdit.unresolved(edit)
        match = self.locate(cleaned, text)
        if match is None:
            return ResolvedEdit.unresolved(edit)
        return ResolvedEdit.from_raw(edit, match.start, match.end, match.tier)

    def require(self, edit: RawEdit, text: str, cursor_offset: int) -> ResolvedEdit:
        """Like :meth:`resolve` but raise :class:`UnresolvedAnchorError` on a miss."""

        resolved = self.resolve(edit, text, cursor_offset)
        if not resolved.resolved:
            raise UnresolvedAnchorError(
                f"Could not locate {edit.kind.value} anchor in the buffer",
                anchor_text=edit.anchor_text,
            )
        return resolved

    def resolve_all(
        self,
        edits: Iterable[RawEdit],
        text: str,
        cursor_offset: int,
        *,
        min_confidence: float = 0.0,
    ) -> tuple[tuple[ResolvedEdit, ...], int]:
        """Resolve ``edits`` and drop unresolved or low-confidence entries.

        Returns the kept edits (input order preserved) and how many were dropped.
        """

        kept: list[ResolvedEdit] = []
        dropped = 0
        for edit in edits:
            if edit.confidence < min_confidence:
                LOGGER.debug(
                    "Dropping %s edit below confidence floor (%.2f < %.2f)",
                    edit.kind.value,
                    edit.confidence,
                    min_confidence,
                )
                dropped += 1
                continue
            try:
                kept.append(self.require(edit, text, cursor_offset))
            except UnresolvedAnchorError as exc:
                LOGGER.warning("Dropping %s edit; anchor not found: %r", edit.kind.value, exc.anchor_text[:80])
                dropped += 1
        return tuple(kept), dropped

    def locate(self, anchor: str, text: str) -> AnchorMatch | None:
        """Run the matching tiers for an already cleaned anchor."""

        if not anchor:
            return None
        for strategy in (self._exact, self._normalized, self._line_similar, self._substring):
            match = strategy(anchor, text)
            if match is not None:
                return match
        return None

    # ------------------------------------------------------------------
    # Tiers
    # ------------------------------------------------------------------
    def _exact(self, anchor: str, text: str) -> AnchorMatch | None:
        index = text.find(anchor)
        if index < 0:
            return None
        return AnchorMatch(index, index + len(anchor), MatchTier.EXACT)

    def _normalized(self, anchor: str, text: str) -> AnchorMatch | None:
        needle = " ".join(anchor.split())
        if not needle:
            return None
        haystack, origin = normalize_whitespace(text)
        index = haystack.find(needle)
        if index < 0:
            return None
        start = origin[index]
        end = origin[index + len(needle) - 1] + 1
        return AnchorMatch(start, end, MatchTier.NORMALIZED)

    def _line_similar(self, anchor: str, text: str) -> AnchorMatch | None:
        anchor_lines = _trim_blank_lines(anchor.split("\n"))
        if not anchor_lines:
            return None
        first_line = anchor_lines[0].strip()
        if not self._fuzzy_allowed(first_line):
            return None
        lines = text.split("\n")
        offset = 0
        starts: list[int] = []
        for line in lines:
            starts.append(offset)
            offset += len(line) + 1
        for index, line in enumerate(lines):
            candidate = line.strip()
            if not candidate:
                continue
            if candidate != first_line and not self._within_limit(Levenshtein, candidate, first_line):
                continue
            start = starts[index]
            if not anchor_lines[0][:1].isspace():
                start += len(line) - len(line.lstrip())
            last = min(index + len(anchor_lines) - 1, len(lines) - 1)
            end = starts[last] + len(lines[last])
            return AnchorMatch(start, end, MatchTier.LINE_SIMILAR)
        return None

    def _substring(self, anchor: str, text: str) -> AnchorMatch | None:
        if not self._fuzzy_allowed(anchor.strip()):
            return None
        width = len(anchor)
        for start in range(0, len(text) - width + 1):
            if self._within_limit(Hamming, text[start : start + width], anchor):
                return AnchorMatch(start, start + width, MatchTier.SUBSTRING)
        return None

    def _fuzzy_allowed(self, compared: str) -> bool:
        # Short anchors would match almost anything within the mismatch limit.
        return len(compared) > 2 * self._max_mismatches

    def _within_limit(self, metric: Any, left: str, right: str) -> bool:
        limit = self._max_mismatches
        return metric.distance(left, right, score_cutoff=limit) <= limit


def _trim_blank_lines(lines: Sequence[str]) -> list[str]:
    trimmed = list(lines)
    while trimmed and not trimmed[0].strip():
        trimmed.pop(0)
    while trimmed and not trimmed[-1].strip():
        trimmed.pop()
    return trimmed
