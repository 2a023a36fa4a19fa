"""End-to-end tests for EditorSession with stub collaborators."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from nextedit.core.edits import Classification, EditKind, RawEdit
from nextedit.core.errors import ProposalUnavailable
from nextedit.engine.classifier import ClassifierConfig, SuggestionClassifier
from nextedit.engine.context import FileEditorContext
from nextedit.engine.session import EditorSession, SessionConfig
from nextedit.services.telemetry import InMemoryTelemetrySink
from tests.helpers import FakeClassification, FakeCompletion, FakeProposals

BROKEN = "public String toString() {\n    retrn x;\n}"
FIXED = "public String toString() {\n    return x;\n}"


class _Highlights:
    def __init__(self) -> None:
        self.live: dict[int, Any] = {}
        self._next = 0

    def add_removal(self, start: int, end: int) -> int:
        self._next += 1
        self.live[self._next] = ("removal", start, end)
        return self._next

    def add_addition(self, offset: int, text: str) -> int:
        self._next += 1
        self.live[self._next] = ("addition", offset, text)
        return self._next

    def remove(self, handle: Any) -> None:
        self.live.pop(handle, None)


class _IgnoreAll:
    def is_ignored(self, path: Any) -> bool:
        return True


def _session(
    editor: FileEditorContext,
    classification: Classification | FakeClassification,
    *,
    completion: str | None = "return 1;",
    edits: list[RawEdit] | None = None,
    proposals: FakeProposals | None = None,
    highlights: _Highlights | None = None,
    config: SessionConfig | None = None,
    **classifier_config: Any,
) -> EditorSession:
    verdict = classification if isinstance(classification, FakeClassification) else FakeClassification(classification)
    classifier = SuggestionClassifier(
        verdict,
        FakeCompletion(completion),
        proposals or FakeProposals(edits),
        config=ClassifierConfig(**classifier_config),
    )
    return EditorSession(
        editor,
        classifier,
        renderer=editor,
        highlight_renderer=highlights,
        sink=editor,
        config=config or SessionConfig(debounce_seconds=0),
    )


def _fix_edits() -> list[RawEdit]:
    return [RawEdit(EditKind.REPLACE, "retrn x;", "return x;", 0.9)]


@pytest.mark.asyncio
async def test_inline_completion_is_shown_and_accepted(telemetry_sink: InMemoryTelemetrySink) -> None:
    editor = FileEditorContext("int f() {\n", cursor_offset=10)
    session = _session(editor, Classification.SIMPLE_INSERTION, completion="    return 1;\n}")

    assert session.notify_changed() == 1
    await session.wait_idle()

    assert editor.inline == ("    return 1;\n}", 10)
    assert session.preview() == "int f() {\n    return 1;\n}"

    assert session.accept() is True
    assert editor.text == "int f() {\n    return 1;\n}"
    assert session.buffer.text == editor.text
    assert editor.inline is None
    assert not session.state.has_suggestion
    assert "suggestion.applied" in telemetry_sink.names()
    await session.close()


@pytest.mark.asyncio
async def test_complex_edit_highlights_then_applies() -> None:
    editor = FileEditorContext(BROKEN, cursor_offset=BROKEN.index("x;"))
    highlights = _Highlights()
    session = _session(editor, Classification.COMPLEX_EDIT, edits=_fix_edits(), highlights=highlights)

    session.notify_changed()
    await session.wait_idle()

    assert session.state.classification is Classification.COMPLEX_EDIT
    assert [item[0] for item in highlights.live.values()] == ["removal", "addition"]

    assert session.accept() is True
    assert editor.text == FIXED
    assert highlights.live == {}
    assert editor.mutations[0][0] is EditKind.REPLACE
    await session.close()


@pytest.mark.asyncio
async def test_classification_timeout_shows_nothing() -> None:
    editor = FileEditorContext(BROKEN, cursor_offset=len(BROKEN))
    highlights = _Highlights()
    session = _session(
        editor,
        FakeClassification(Classification.COMPLEX_EDIT, delay=1.0),
        edits=_fix_edits(),
        highlights=highlights,
        classification_timeout=0.01,
    )

    session.notify_changed()
    await session.wait_idle()

    assert not session.state.has_suggestion
    assert session.highlights.spans == ()
    assert highlights.live == {}
    assert session.accept() is False
    await session.close()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "proposals",
    [
        FakeProposals(error=ProposalUnavailable("service down")),
        FakeProposals(_fix_edits(), delay=1.0),
    ],
)
async def test_failed_edit_proposal_shows_no_highlights(proposals: FakeProposals) -> None:
    editor = FileEditorContext(BROKEN, cursor_offset=len(BROKEN))
    highlights = _Highlights()
    session = _session(
        editor,
        Classification.COMPLEX_EDIT,
        proposals=proposals,
        highlights=highlights,
        proposal_timeout=0.01,
    )

    session.notify_changed()
    await session.wait_idle()

    assert proposals.calls == 1
    assert not session.state.has_suggestion
    assert session.highlights.spans == ()
    assert highlights.live == {}
    assert session.accept() is False
    assert editor.text == BROKEN
    await session.close()


@pytest.mark.asyncio
async def test_accept_reresolves_when_document_moved() -> None:
    editor = FileEditorContext(BROKEN, cursor_offset=len(BROKEN))
    session = _session(editor, Classification.COMPLEX_EDIT, edits=_fix_edits())
    session.notify_changed()
    await session.wait_idle()

    editor.text = "// header\n" + editor.text

    assert session.accept() is True
    assert editor.text == "// header\n" + FIXED
    await session.close()


@pytest.mark.asyncio
async def test_accept_reports_failure_when_anchor_disappeared(telemetry_sink: InMemoryTelemetrySink) -> None:
    editor = FileEditorContext(BROKEN, cursor_offset=len(BROKEN))
    highlights = _Highlights()
    session = _session(editor, Classification.COMPLEX_EDIT, edits=_fix_edits(), highlights=highlights)
    session.notify_changed()
    await session.wait_idle()

    editor.text = "completely rewritten document body\n"

    assert session.accept() is False
    assert editor.text == "completely rewritten document body\n"
    assert highlights.live == {}
    assert not session.state.has_suggestion
    failures = [event for event in telemetry_sink.tail() if event.name == "suggestion.apply_failed"]
    assert failures and failures[0].payload["reason"] == "re_resolve_failed"
    await session.close()


@pytest.mark.asyncio
async def test_new_keystroke_hides_visible_suggestion_immediately() -> None:
    editor = FileEditorContext(BROKEN, cursor_offset=len(BROKEN))
    highlights = _Highlights()
    session = _session(editor, Classification.COMPLEX_EDIT, edits=_fix_edits(), highlights=highlights)
    session.notify_changed()
    await session.wait_idle()
    assert highlights.live

    editor.cursor_offset = 5
    session.notify_changed()

    assert highlights.live == {}
    assert session.highlights.spans == ()
    await session.close()


@pytest.mark.asyncio
async def test_dismiss_discards_in_flight_generation() -> None:
    editor = FileEditorContext("int a = ", cursor_offset=8)
    session = _session(
        editor,
        Classification.SIMPLE_INSERTION,
        config=SessionConfig(debounce_seconds=0.05),
    )

    session.notify_changed()
    session.dismiss()
    await session.wait_idle()

    assert editor.inline is None
    assert not session.state.has_suggestion
    await session.close()


@pytest.mark.asyncio
async def test_disabled_blank_and_ignored_sessions_do_not_submit(tmp_path: Path) -> None:
    disabled = _session(
        FileEditorContext("int a = ", cursor_offset=8),
        Classification.SIMPLE_INSERTION,
        config=SessionConfig(debounce_seconds=0, enabled=False),
    )
    blank = _session(FileEditorContext("   \n", cursor_offset=2), Classification.SIMPLE_INSERTION)
    ignored_editor = FileEditorContext("int a = ", cursor_offset=8, path=tmp_path / "build.java")
    ignored = EditorSession(
        ignored_editor,
        disabled.classifier,
        renderer=ignored_editor,
        ignore_filter=_IgnoreAll(),  # type: ignore[arg-type]
        config=SessionConfig(debounce_seconds=0),
    )

    assert disabled.notify_changed() is None
    assert blank.notify_changed() is None
    assert ignored.notify_changed() is None
    assert disabled.coordinator.pending == 0
    for session in (disabled, blank, ignored):
        await session.close()


@pytest.mark.asyncio
async def test_sessions_do_not_share_pending_state() -> None:
    first_editor = FileEditorContext("int f() {\n", cursor_offset=10)
    second_editor = FileEditorContext("int g() {\n", cursor_offset=10)
    first = _session(first_editor, Classification.SIMPLE_INSERTION)
    second = _session(second_editor, Classification.SIMPLE_INSERTION)

    first.notify_changed()
    second.notify_changed()
    await first.wait_idle()
    await second.wait_idle()
    second.dismiss()

    assert first.state.has_suggestion
    assert first_editor.inline is not None
    assert not second.state.has_suggestion
    await first.close()
    await second.close()
