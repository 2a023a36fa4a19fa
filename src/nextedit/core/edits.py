"""Value types describing proposed and resolved edits."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Mapping

CURSOR_MARKER = "[CURSOR_HERE]"


class EditKind(str, Enum):
    """Kind of mutation an edit performs on the buffer."""

    INSERT = "INSERT"
    REPLACE = "REPLACE"
    DELETE = "DELETE"

    @classmethod
    def parse(cls, value: Any) -> "EditKind":
        if isinstance(value, EditKind):
            return value
        normalized = str(value or "").strip().upper()
        try:
            return cls(normalized)
        except ValueError as exc:
            raise ValueError(f"Unknown edit kind: {value!r}") from exc


class Classification(str, Enum):
    """Verdict on what kind of suggestion fits the cursor context."""

    SIMPLE_INSERTION = "SIMPLE_INSERTION"
    COMPLEX_EDIT = "COMPLEX_EDIT"
    NO_SUGGESTION = "NO_SUGGESTION"

    @classmethod
    def parse(cls, value: Any) -> "Classification":
        """Parse ``value`` case-insensitively; unknown values mean no suggestion."""

        if isinstance(value, Classification):
            return value
        normalized = str(value or "").strip().upper()
        try:
            return cls(normalized)
        except ValueError:
            return cls.NO_SUGGESTION


class MatchTier(str, Enum):
    """Which resolution strategy located an anchor."""

    CURSOR = "cursor"
    EXACT = "exact"
    NORMALIZED = "normalized"
    LINE_SIMILAR = "line_similar"
    SUBSTRING = "substring"
    UNRESOLVED = "unresolved"


def _clamp_confidence(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number:  # NaN
        return 0.0
    return max(0.0, min(1.0, number))


@dataclass(slots=True, frozen=True)
class RawEdit:
    """Edit proposed by a collaborator, anchored by text rather than offsets."""

    kind: EditKind
    anchor_text: str = ""
    new_text: str = ""
    confidence: float = 1.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", EditKind.parse(self.kind))
        object.__setattr__(self, "anchor_text", self.anchor_text or "")
        object.__setattr__(self, "new_text", self.new_text or "")
        object.__setattr__(self, "confidence", _clamp_confidence(self.confidence))

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "RawEdit":
        """Build an edit from the JSON shape returned by the proposal model."""

        return cls(
            kind=EditKind.parse(payload.get("type") or payload.get("kind")),
            anchor_text=str(payload.get("oldText") or payload.get("anchor_text") or ""),
            new_text=str(payload.get("newText") or payload.get("new_text") or ""),
            confidence=payload.get("confidence", 0.0),
        )


@dataclass(slots=True, frozen=True)
class ResolvedEdit:
    """A :class:`RawEdit` pinned to ``[start, end)`` offsets of a buffer snapshot."""

    kind: EditKind
    anchor_text: str
    new_text: str
    confidence: float
    start: int
    end: int
    tier: MatchTier = MatchTier.EXACT

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"Invalid edit range ({self.start}, {self.end})")
        if self.kind is EditKind.INSERT and self.start != self.end:
            raise ValueError("Insert edits must collapse to a single offset")

    @property
    def resolved(self) -> bool:
        return self.tier is not MatchTier.UNRESOLVED

    @property
    def length(self) -> int:
        return self.end - self.start

    @classmethod
    def from_raw(cls, raw: RawEdit, start: int, end: int, tier: MatchTier) -> "ResolvedEdit":
        return cls(
            kind=raw.kind,
            anchor_text=raw.anchor_text,
            new_text=raw.new_text,
            confidence=raw.confidence,
            start=start,
            end=end,
            tier=tier,
        )

    @classmethod
    def unresolved(cls, raw: RawEdit) -> "ResolvedEdit":
        return cls.from_raw(raw, 0, 0, MatchTier.UNRESOLVED)

    def to_raw(self) -> RawEdit:
        return RawEdit(
            kind=self.kind,
            anchor_text=self.anchor_text,
            new_text=self.new_text,
            confidence=self.confidence,
        )

    def shifted(self, delta: int) -> "ResolvedEdit":
        """Return a copy moved by ``delta`` characters."""

        return replace(self, start=self.start + delta, end=self.end + delta)


__all__ = [
    "CURSOR_MARKER",
    "EditKind",
    "Classification",
    "MatchTier",
    "RawEdit",
    "ResolvedEdit",
]
