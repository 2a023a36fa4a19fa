"""Exception hierarchy shared by the suggestion pipeline."""

from __future__ import annotations

from typing import Any


class NextEditError(RuntimeError):
    """Base class for errors raised by the edit-reconciliation pipeline."""

    default_reason = "error"

    def __init__(self, message: str, *, reason: str | None = None, **context: Any) -> None:
        super().__init__(message)
        self.reason = reason or self.default_reason
        self.context = dict(context)

    def details(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"reason": self.reason, "message": str(self)}
        payload.update(self.context)
        return payload


class OutOfRangeError(NextEditError):
    """Raised when offsets or line numbers fall outside the buffer."""

    default_reason = "out_of_range"

    def __init__(
        self,
        message: str,
        *,
        reason: str | None = None,
        start: int | None = None,
        end: int | None = None,
        length: int | None = None,
    ) -> None:
        super().__init__(message, reason=reason, start=start, end=end, length=length)
        self.start = start
        self.end = end
        self.length = length


class StaleOffsetError(NextEditError):
    """Raised when a batch of resolved edits no longer fits the buffer."""

    default_reason = "stale_offset"

    def __init__(
        self,
        message: str,
        *,
        reason: str | None = None,
        edit_index: int | None = None,
        applied: int = 0,
    ) -> None:
        super().__init__(message, reason=reason, edit_index=edit_index, applied=applied)
        self.edit_index = edit_index
        self.applied = applied


class UnresolvedAnchorError(NextEditError):
    """Raised by callers that require an anchor to be located."""

    default_reason = "unresolved_anchor"

    def __init__(self, message: str, *, anchor_text: str = "", reason: str | None = None) -> None:
        super().__init__(message, reason=reason, anchor_text=anchor_text)
        self.anchor_text = anchor_text


class CollaboratorUnavailable(NextEditError):
    """Raised when an LLM collaborator fails or exceeds its time budget."""

    default_reason = "collaborator_unavailable"
    collaborator = "collaborator"

    def __init__(self, message: str, *, reason: str | None = None, timed_out: bool = False) -> None:
        super().__init__(message, reason=reason, collaborator=self.collaborator, timed_out=timed_out)
        self.timed_out = timed_out


class ClassificationUnavailable(CollaboratorUnavailable):
    collaborator = "classification"


class CompletionUnavailable(CollaboratorUnavailable):
    collaborator = "completion"


class ProposalUnavailable(CollaboratorUnavailable):
    collaborator = "edit_proposal"


class GenerationSuperseded(NextEditError):
    """Signals that a newer request replaced the one currently running."""

    default_reason = "superseded"

    def __init__(self, generation: int, current: int) -> None:
        super().__init__(
            f"Generation {generation} superseded by {current}",
            generation=generation,
            current=current,
        )
        self.generation = generation
        self.current = current


__all__ = [
    "NextEditError",
    "OutOfRangeError",
    "StaleOffsetError",
    "UnresolvedAnchorError",
    "CollaboratorUnavailable",
    "ClassificationUnavailable",
    "CompletionUnavailable",
    "ProposalUnavailable",
    "GenerationSuperseded",
]
