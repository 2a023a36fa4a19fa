"""Core value types and errors shared across the suggestion pipeline."""

from .edits import CURSOR_MARKER, Classification, EditKind, MatchTier, RawEdit, ResolvedEdit
from .errors import (
    ClassificationUnavailable,
    CollaboratorUnavailable,
    CompletionUnavailable,
    GenerationSuperseded,
    NextEditError,
    OutOfRangeError,
    ProposalUnavailable,
    StaleOffsetError,
    UnresolvedAnchorError,
)

__all__ = [
    "CURSOR_MARKER",
    "Classification",
    "EditKind",
    "MatchTier",
    "RawEdit",
    "ResolvedEdit",
    "ClassificationUnavailable",
    "CollaboratorUnavailable",
    "CompletionUnavailable",
    "GenerationSuperseded",
    "NextEditError",
    "OutOfRangeError",
    "ProposalUnavailable",
    "StaleOffsetError",
    "UnresolvedAnchorError",
]
