"""Tests for request debouncing, deduplication and generation ordering."""

from __future__ import annotations

import asyncio

import pytest

from nextedit.core.edits import Classification
from nextedit.core.errors import GenerationSuperseded
from nextedit.engine.classifier import GenerationGuard, SuggestionOutcome
from nextedit.engine.context import SuggestionRequest, build_context
from nextedit.engine.coordinator import RequestCoordinator, context_hash
from nextedit.services.telemetry import InMemoryTelemetrySink

SIMPLE = SuggestionOutcome(Classification.SIMPLE_INSERTION, completion="x")


def _request(text: str) -> SuggestionRequest:
    return SuggestionRequest(
        context=build_context(text, len(text)),
        language="code",
        cursor_offset=len(text),
        document_text=text,
    )


class _Recorder:
    def __init__(self, outcome: SuggestionOutcome = SIMPLE) -> None:
        self.outcome = outcome
        self.handled: list[int] = []
        self.published: list[tuple[int, str]] = []

    async def handle(self, request: SuggestionRequest, guard: GenerationGuard) -> SuggestionOutcome:
        self.handled.append(guard.generation)
        return self.outcome

    def publish(self, generation: int, request: SuggestionRequest, outcome: SuggestionOutcome) -> None:
        self.published.append((generation, request.document_text))


@pytest.mark.asyncio
async def test_burst_within_debounce_window_triggers_one_call() -> None:
    recorder = _Recorder()
    coordinator = RequestCoordinator(recorder.handle, recorder.publish, debounce_seconds=0.05)

    for _ in range(5):
        coordinator.submit(_request("int a = "))
    await coordinator.wait_idle()

    assert recorder.handled == [5]
    assert recorder.published == [(5, "int a = ")]


@pytest.mark.asyncio
async def test_identical_context_is_skipped_after_settled_outcome(telemetry_sink: InMemoryTelemetrySink) -> None:
    recorder = _Recorder()
    coordinator = RequestCoordinator(recorder.handle, recorder.publish, debounce_seconds=0)

    coordinator.submit(_request("foo("))
    await coordinator.wait_idle()
    coordinator.submit(_request("foo("))
    await coordinator.wait_idle()

    assert recorder.handled == [1]
    assert coordinator.last_context_hash == context_hash(build_context("foo(", 4))
    assert "suggestion.skipped" in telemetry_sink.names()


@pytest.mark.asyncio
async def test_degraded_outcome_does_not_block_retry() -> None:
    recorder = _Recorder(SuggestionOutcome.nothing(degraded=True))
    coordinator = RequestCoordinator(recorder.handle, recorder.publish, debounce_seconds=0)

    coordinator.submit(_request("foo("))
    await coordinator.wait_idle()
    coordinator.submit(_request("foo("))
    await coordinator.wait_idle()

    assert recorder.handled == [1, 2]
    assert coordinator.last_context_hash is None


@pytest.mark.asyncio
async def test_forget_context_allows_same_request_again() -> None:
    recorder = _Recorder()
    coordinator = RequestCoordinator(recorder.handle, recorder.publish, debounce_seconds=0)

    coordinator.submit(_request("foo("))
    await coordinator.wait_idle()
    coordinator.forget_context()
    coordinator.submit(_request("foo("))
    await coordinator.wait_idle()

    assert recorder.handled == [1, 2]


@pytest.mark.asyncio
async def test_late_result_of_older_generation_is_never_published(telemetry_sink: InMemoryTelemetrySink) -> None:
    started = asyncio.Event()
    release = asyncio.Event()
    published: list[int] = []

    async def handle(request: SuggestionRequest, guard: GenerationGuard) -> SuggestionOutcome:
        if request.document_text == "slow":
            started.set()
            await release.wait()
        return SIMPLE

    def publish(generation: int, request: SuggestionRequest, outcome: SuggestionOutcome) -> None:
        published.append(generation)

    coordinator = RequestCoordinator(handle, publish, debounce_seconds=0)
    first = coordinator.submit(_request("slow"))
    await started.wait()
    second = coordinator.submit(_request("fast"))
    await asyncio.sleep(0.01)
    state_after_second = list(published)

    release.set()
    await coordinator.wait_idle()

    assert (first, second) == (1, 2)
    assert published == state_after_second == [2]
    assert "suggestion.superseded" in telemetry_sink.names()


@pytest.mark.asyncio
async def test_handler_reporting_superseded_publishes_nothing() -> None:
    published: list[int] = []

    async def handle(request: SuggestionRequest, guard: GenerationGuard) -> SuggestionOutcome:
        raise GenerationSuperseded(guard.generation, guard.generation + 1)

    coordinator = RequestCoordinator(handle, lambda *args: published.append(args[0]), debounce_seconds=0)
    coordinator.submit(_request("x = "))
    await coordinator.wait_idle()

    assert published == []


@pytest.mark.asyncio
async def test_handler_error_is_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    async def handle(request: SuggestionRequest, guard: GenerationGuard) -> SuggestionOutcome:
        raise RuntimeError("collaborator exploded")

    coordinator = RequestCoordinator(handle, lambda *args: None, debounce_seconds=0)
    with caplog.at_level("ERROR"):
        coordinator.submit(_request("x = "))
        await coordinator.wait_idle()

    assert "Suggestion handler failed" in caplog.text


@pytest.mark.asyncio
async def test_invalidate_notifies_and_bumps_generation() -> None:
    seen: list[int] = []
    recorder = _Recorder()
    coordinator = RequestCoordinator(recorder.handle, recorder.publish, debounce_seconds=0.05, on_superseded=seen.append)

    coordinator.submit(_request("abc"))
    generation = coordinator.invalidate()
    await coordinator.wait_idle()

    assert generation == 2
    assert seen == [1, 2]
    assert recorder.handled == []
    assert not coordinator.is_current(1)


@pytest.mark.asyncio
async def test_shutdown_cancels_pending_work_and_rejects_new_requests() -> None:
    async def handle(request: SuggestionRequest, guard: GenerationGuard) -> SuggestionOutcome:
        await asyncio.sleep(10)
        return SIMPLE

    coordinator = RequestCoordinator(handle, lambda *args: None, debounce_seconds=0)
    coordinator.submit(_request("abc"))
    await asyncio.sleep(0)

    await coordinator.shutdown()

    assert coordinator.pending == 0
    with pytest.raises(RuntimeError):
        coordinator.submit(_request("abc"))
