"""Decide which suggestion path runs for one request and drive it to an outcome."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, TypeVar

from ..ai.services import ClassificationService, CompletionService, EditProposalService
from ..core.edits import Classification, RawEdit, ResolvedEdit
from ..core.errors import CollaboratorUnavailable, GenerationSuperseded
from ..services.telemetry import emit
from .analysis import CodeContextAnalyzer, ContextHints
from .context import SuggestionRequest
from .resolver import OffsetResolver

__all__ = [
    "ClassifierState",
    "ClassifierConfig",
    "GenerationGuard",
    "SuggestionOutcome",
    "SuggestionClassifier",
]

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class ClassifierState(str, Enum):
    IDLE = "idle"
    CLASSIFYING = "classifying"
    SIMPLE_INSERTION = "simple_insertion"
    COMPLEX_EDIT = "complex_edit"
    NO_SUGGESTION = "no_suggestion"


_STATE_FOR = {
    Classification.SIMPLE_INSERTION: ClassifierState.SIMPLE_INSERTION,
    Classification.COMPLEX_EDIT: ClassifierState.COMPLEX_EDIT,
    Classification.NO_SUGGESTION: ClassifierState.NO_SUGGESTION,
}


@dataclass(slots=True)
class ClassifierConfig:
    """Time budgets and filters applied while running one request."""

    classification_timeout: float = 3.0
    completion_timeout: float = 5.0
    proposal_timeout: float = 5.0
    min_confidence: float = 0.0


@dataclass(slots=True, frozen=True)
class GenerationGuard:
    """Lets background work ask whether its generation may still publish."""

    generation: int
    current: Callable[[], int]

    @property
    def is_current(self) -> bool:
        return self.current() == self.generation

    def ensure_current(self) -> None:
        latest = self.current()
        if latest != self.generation:
            raise GenerationSuperseded(self.generation, latest)


@dataclass(slots=True, frozen=True)
class SuggestionOutcome:
    """Immutable result handed back to the foreground for publishing."""

    classification: Classification
    completion: Optional[str] = None
    edits: tuple[ResolvedEdit, ...] = ()
    degraded: bool = False
    dropped: int = 0

    @property
    def is_settled(self) -> bool:
        """Whether the outcome should mark its context as processed."""

        if self.classification is Classification.NO_SUGGESTION:
            return not self.degraded
        if self.classification is Classification.SIMPLE_INSERTION:
            return bool(self.completion and self.completion.strip())
        return bool(self.edits)

    @classmethod
    def nothing(cls, *, degraded: bool = False) -> "SuggestionOutcome":
        return cls(Classification.NO_SUGGESTION, degraded=degraded)


class SuggestionClassifier:
    """Runs classification, then the completion or edit-proposal branch."""

    def __init__(
        self,
        classification: ClassificationService,
        completion: CompletionService,
        proposals: EditProposalService,
        *,
        resolver: OffsetResolver | None = None,
        analyzer: CodeContextAnalyzer | None = None,
        config: ClassifierConfig | None = None,
    ) -> None:
        self._classification = classification
        self._completion = completion
        self._proposals = proposals
        self._resolver = resolver or OffsetResolver()
        self._analyzer = analyzer or CodeContextAnalyzer()
        self._config = config or ClassifierConfig()
        self._state = ClassifierState.IDLE
        self._last_state = ClassifierState.IDLE

    @property
    def state(self) -> ClassifierState:
        return self._state

    @property
    def last_state(self) -> ClassifierState:
        """Terminal state reached by the most recent run that was not superseded."""

        return self._last_state

    @property
    def resolver(self) -> OffsetResolver:
        return self._resolver

    @property
    def config(self) -> ClassifierConfig:
        return self._config

    async def run(self, request: SuggestionRequest, guard: GenerationGuard) -> SuggestionOutcome:
        """Classify ``request`` and produce its outcome.

        Raises :class:`GenerationSuperseded` as soon as a resumption point finds
        that a newer generation was issued.
        """

        self._state = ClassifierState.CLASSIFYING
        try:
            outcome = await self._run(request, guard)
        except GenerationSuperseded:
            self._state = ClassifierState.IDLE
            raise
        self._last_state = _STATE_FOR[outcome.classification]
        self._state = ClassifierState.IDLE
        return outcome

    async def _run(self, request: SuggestionRequest, guard: GenerationGuard) -> SuggestionOutcome:
        hints = self._analyzer.analyze(request.document_text, request.cursor_offset)
        classification, ok = await self._call(
            "classification",
            self._classification.classify(request.context, request.language, hints.describe() or None),
            self._config.classification_timeout,
            Classification.NO_SUGGESTION,
        )
        guard.ensure_current()
        classification = self._apply_local_veto(classification, hints)
        emit(
            "suggestion.classified",
            {"generation": guard.generation, "classification": classification.value, "degraded": not ok},
        )

        if classification is Classification.SIMPLE_INSERTION:
            return await self._complete(request, guard)
        if classification is Classification.COMPLEX_EDIT:
            return await self._propose(request, guard)
        return SuggestionOutcome.nothing(degraded=not ok)

    async def _complete(self, request: SuggestionRequest, guard: GenerationGuard) -> SuggestionOutcome:
        text, ok = await self._call(
            "completion",
            self._completion.complete(request.context, request.language),
            self._config.completion_timeout,
            None,
        )
        guard.ensure_current()
        if not text or not text.strip():
            LOGGER.debug("Completion for generation %s was empty", guard.generation)
            return SuggestionOutcome.nothing(degraded=not ok)
        return SuggestionOutcome(Classification.SIMPLE_INSERTION, completion=text)

    async def _propose(self, request: SuggestionRequest, guard: GenerationGuard) -> SuggestionOutcome:
        raw_edits, ok = await self._call(
            "edit_proposal",
            self._proposals.propose_edits(request.context, request.language),
            self._config.proposal_timeout,
            [],
        )
        guard.ensure_current()
        edits, dropped = self._resolve(raw_edits or [], request)
        if dropped:
            emit("suggestion.anchor_unresolved", {"generation": guard.generation, "dropped": dropped})
        return SuggestionOutcome(Classification.COMPLEX_EDIT, edits=edits, degraded=not ok, dropped=dropped)

    def _resolve(self, raw_edits: list[RawEdit], request: SuggestionRequest) -> tuple[tuple[ResolvedEdit, ...], int]:
        return self._resolver.resolve_all(
            raw_edits,
            request.document_text,
            request.cursor_offset,
            min_confidence=self._config.min_confidence,
        )

    @staticmethod
    def _apply_local_veto(classification: Classification, hints: ContextHints) -> Classification:
        if classification is Classification.SIMPLE_INSERTION and hints.cursor_inside_identifier:
            LOGGER.debug("Cursor sits inside an identifier; suppressing inline completion")
            return Classification.NO_SUGGESTION
        return classification

    async def _call(self, name: str, awaitable: Awaitable[T], timeout: float, default: T) -> tuple[T, bool]:
        """Await a collaborator under ``timeout``; failures degrade to ``default``."""

        try:
            return await asyncio.wait_for(awaitable, timeout=timeout), True
        except asyncio.TimeoutError:
            LOGGER.info("%s call timed out after %.1fs", name, timeout)
            emit("suggestion.collaborator_failed", {"collaborator": name, "timed_out": True})
        except CollaboratorUnavailable as exc:
            LOGGER.info("%s unavailable: %s", name, exc)
            emit("suggestion.collaborator_failed", {"collaborator": name, "timed_out": exc.timed_out})
        except Exception:
            LOGGER.warning("%s call failed", name, exc_info=True)
            emit("suggestion.collaborator_failed", {"collaborator": name, "timed_out": False})
        return default, False
