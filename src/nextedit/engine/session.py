"""Per-editor orchestration of the suggestion pipeline.

One :class:`EditorSession` exists per open editor.  It owns the mirror
:class:`TextBuffer`, the visible proposal (:class:`PendingSuggestionState` and
the :class:`HighlightStateManager`), and the :class:`RequestCoordinator` that
decides which generation may publish.  Nothing here is module-global, so two
sessions never observe each other's pending suggestions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from ..core.edits import Classification, EditKind, ResolvedEdit
from ..core.errors import OutOfRangeError, StaleOffsetError
from ..editor.document_model import TextBuffer
from ..editor.highlights import HighlightRenderer, HighlightSpan, HighlightStateManager
from ..editor.patches import BatchOrder, BatchResult, apply_batch, preview_batch
from ..services.telemetry import emit
from .classifier import GenerationGuard, SuggestionClassifier, SuggestionOutcome
from .context import (
    DEFAULT_WINDOW_CHARS,
    DocumentMutationSink,
    EditorContext,
    SuggestionRenderer,
    SuggestionRequest,
    build_request,
)
from .coordinator import RequestCoordinator, context_hash

if TYPE_CHECKING:  # pragma: no cover
    from ..services.ignore import GitIgnoreFilter

__all__ = ["PendingSuggestionState", "SessionConfig", "EditorSession"]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class PendingSuggestionState:
    """The suggestion currently visible in one editor, if any."""

    generation: int = 0
    classification: Classification = Classification.NO_SUGGESTION
    edits: tuple[ResolvedEdit, ...] = ()
    completion: Optional[str] = None
    completion_offset: int = 0
    spans: tuple[HighlightSpan, ...] = ()
    buffer_version: int = 0
    context_hash: Optional[str] = None

    @property
    def has_suggestion(self) -> bool:
        if self.classification is Classification.SIMPLE_INSERTION:
            return bool(self.completion)
        if self.classification is Classification.COMPLEX_EDIT:
            return bool(self.edits)
        return False

    def pending_edits(self) -> tuple[ResolvedEdit, ...]:
        """Return what :meth:`EditorSession.accept` would apply."""

        if self.classification is Classification.SIMPLE_INSERTION and self.completion:
            offset = self.completion_offset
            return (
                ResolvedEdit(
                    kind=EditKind.INSERT,
                    anchor_text="",
                    new_text=self.completion,
                    confidence=1.0,
                    start=offset,
                    end=offset,
                ),
            )
        if self.classification is Classification.COMPLEX_EDIT:
            return self.edits
        return ()


@dataclass(slots=True)
class SessionConfig:
    debounce_seconds: float = 0.3
    window_chars: int = DEFAULT_WINDOW_CHARS
    enabled: bool = True
    batch_order: BatchOrder = BatchOrder.DESCENDING


class EditorSession:
    """Connects one editor to the classifier, highlights and batch applier."""

    def __init__(
        self,
        editor: EditorContext,
        classifier: SuggestionClassifier,
        *,
        renderer: SuggestionRenderer | None = None,
        highlight_renderer: HighlightRenderer | None = None,
        sink: DocumentMutationSink | None = None,
        ignore_filter: "GitIgnoreFilter | None" = None,
        config: SessionConfig | None = None,
    ) -> None:
        self._editor = editor
        self._classifier = classifier
        self._renderer = renderer
        self._sink = sink
        self._ignore_filter = ignore_filter
        self._config = config or SessionConfig()
        self._buffer = TextBuffer(editor.get_text(), language=editor.get_language() or "code")
        self._highlights = HighlightStateManager(highlight_renderer)
        self._state = PendingSuggestionState()
        self._coordinator = RequestCoordinator(
            self._handle,
            self._publish,
            debounce_seconds=self._config.debounce_seconds,
            on_superseded=self._on_superseded,
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------
    @property
    def buffer(self) -> TextBuffer:
        return self._buffer

    @property
    def state(self) -> PendingSuggestionState:
        return self._state

    @property
    def highlights(self) -> HighlightStateManager:
        return self._highlights

    @property
    def coordinator(self) -> RequestCoordinator:
        return self._coordinator

    @property
    def classifier(self) -> SuggestionClassifier:
        return self._classifier

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self._config.enabled = bool(value)
        if not value:
            self.dismiss()

    # ------------------------------------------------------------------
    # Editor events
    # ------------------------------------------------------------------
    def notify_changed(self) -> int | None:
        """React to a cursor move or keystroke; returns the issued generation."""

        if not self._config.enabled:
            return None
        path = self._editor.get_path()
        if self._ignore_filter is not None and path is not None and self._ignore_filter.is_ignored(path):
            LOGGER.debug("Skipping suggestions for ignored file %s", path)
            return None
        self.sync_buffer()
        request = build_request(
            self._editor,
            window=self._config.window_chars,
            document_version=self._buffer.version,
        )
        if request.is_blank:
            self._coordinator.invalidate()
            return None
        return self._coordinator.submit(request)

    def sync_buffer(self) -> bool:
        """Pull the live document text into the mirror buffer."""

        changed = self._buffer.reset(self._editor.get_text())
        language = self._editor.get_language()
        if language:
            self._buffer.language = language
        return changed

    def accept(self) -> bool:
        """Apply the visible suggestion; returns ``False`` when nothing was applied."""

        state = self._state
        edits = state.pending_edits()
        if not edits:
            return False
        try:
            self.sync_buffer()
            if self._buffer.version != state.buffer_version:
                LOGGER.debug("Buffer moved since the suggestion was resolved; re-resolving")
                edits = self._reresolve(edits)
                if not edits:
                    raise StaleOffsetError("No edit could be re-anchored", reason="re_resolve_failed")
            result = apply_batch(self._buffer, edits, order=self._config.batch_order, sink=self._sink)
        except (StaleOffsetError, OutOfRangeError) as exc:
            LOGGER.warning("Suggestion not applied: %s", exc)
            emit("suggestion.apply_failed", {"generation": state.generation, **exc.details()})
            return False
        finally:
            self._discard_visible()
            self._coordinator.invalidate()
        self._log_applied(state, result)
        return True

    def dismiss(self) -> None:
        """Hide the visible suggestion and revoke any in-flight generation."""

        self._coordinator.invalidate()
        self._discard_visible()

    def preview(self) -> str:
        """Return the buffer text as it would look after :meth:`accept`."""

        edits = self._state.pending_edits()
        return preview_batch(self._buffer.text, edits) if edits else self._buffer.text

    async def wait_idle(self) -> None:
        await self._coordinator.wait_idle()

    async def close(self) -> None:
        await self._coordinator.shutdown()
        self._discard_visible()

    # ------------------------------------------------------------------
    # Coordinator callbacks
    # ------------------------------------------------------------------
    async def _handle(self, request: SuggestionRequest, guard: GenerationGuard) -> SuggestionOutcome:
        return await self._classifier.run(request, guard)

    def _publish(self, generation: int, request: SuggestionRequest, outcome: SuggestionOutcome) -> None:
        self._discard_visible()
        if outcome.classification is Classification.NO_SUGGESTION:
            LOGGER.debug("Generation %s: no suggestion", generation)
            return

        self.sync_buffer()
        edits = outcome.edits
        if self._buffer.text != request.document_text and edits:
            edits = self._reresolve(edits)

        self._state = PendingSuggestionState(
            generation=generation,
            classification=outcome.classification,
            edits=edits,
            completion=outcome.completion,
            completion_offset=min(request.cursor_offset, len(self._buffer)),
            buffer_version=self._buffer.version,
            context_hash=context_hash(request.context),
        )
        if outcome.classification is Classification.SIMPLE_INSERTION and outcome.completion:
            if self._renderer is not None:
                self._renderer.show_inline(outcome.completion, self._state.completion_offset)
        elif edits:
            self._state.spans = self._highlights.show(edits, self._buffer)
        emit(
            "suggestion.published",
            {
                "generation": generation,
                "classification": outcome.classification.value,
                "edits": len(edits),
                "dropped": outcome.dropped,
            },
        )

    def _on_superseded(self, generation: int) -> None:
        del generation
        self._discard_visible()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _discard_visible(self) -> None:
        if self._state.completion and self._renderer is not None:
            self._renderer.clear_inline()
        self._highlights.clear()
        self._state = PendingSuggestionState(generation=self._coordinator.generation)

    def _reresolve(self, edits: tuple[ResolvedEdit, ...]) -> tuple[ResolvedEdit, ...]:
        resolved, dropped = self._classifier.resolver.resolve_all(
            (edit.to_raw() for edit in edits),
            self._buffer.text,
            self._editor.get_cursor_offset(),
        )
        if dropped:
            LOGGER.info("%s edit(s) could not be re-anchored after the buffer changed", dropped)
        return resolved

    def _log_applied(self, state: PendingSuggestionState, result: BatchResult) -> None:
        LOGGER.info("Applied %s edit(s): %s", result.applied, result.summary)
        emit(
            "suggestion.applied",
            {
                "generation": state.generation,
                "classification": state.classification.value,
                "applied": result.applied,
                "summary": result.summary,
            },
        )
