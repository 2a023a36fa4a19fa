"""Debounce, deduplicate and order suggestion requests for one editor."""

from __future__ import annotations

import asyncio
import hashlib
import logging
from typing import Awaitable, Callable, Optional

from ..core.errors import GenerationSuperseded
from ..services.telemetry import emit
from .classifier import GenerationGuard, SuggestionOutcome
from .context import SuggestionRequest

__all__ = ["RequestCoordinator", "context_hash"]

LOGGER = logging.getLogger(__name__)

Handler = Callable[[SuggestionRequest, GenerationGuard], Awaitable[SuggestionOutcome]]
Publisher = Callable[[int, SuggestionRequest, SuggestionOutcome], None]


def context_hash(context: str) -> str:
    return hashlib.sha256(context.encode("utf-8")).hexdigest()


class RequestCoordinator:
    """Issues generations and lets only the newest one publish.

    Every :meth:`submit` bumps the generation counter.  Scheduled work sleeps
    through the debounce window, then re-checks its generation before and after
    each await; a stale generation simply returns.  Nothing is interrupted
    preemptively, so a superseded network call may finish but its outcome is
    dropped.
    """

    def __init__(
        self,
        handler: Handler,
        publish: Publisher,
        *,
        debounce_seconds: float = 0.3,
        on_superseded: Optional[Callable[[int], None]] = None,
    ) -> None:
        self._handler = handler
        self._publish = publish
        self._debounce = max(0.0, debounce_seconds)
        self._on_superseded = on_superseded
        self._generation = 0
        self._last_context_hash: str | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def generation(self) -> int:
        return self._generation

    @property
    def last_context_hash(self) -> str | None:
        return self._last_context_hash

    @property
    def debounce_seconds(self) -> float:
        return self._debounce

    @property
    def pending(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    def is_current(self, generation: int) -> bool:
        return generation == self._generation

    def submit(self, request: SuggestionRequest) -> int:
        """Start a new generation for ``request`` and schedule its work."""

        if self._closed:
            raise RuntimeError("RequestCoordinator has been shut down")
        previous = self._generation
        generation = self.invalidate()
        if self.pending:
            LOGGER.debug("Generation %s supersedes %s", generation, previous)
        emit("suggestion.requested", {"generation": generation, "language": request.language})
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._process(generation, request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return generation

    def invalidate(self) -> int:
        """Revoke the right to publish from every outstanding generation."""

        self._generation += 1
        if self._on_superseded is not None:
            self._on_superseded(self._generation)
        return self._generation

    def forget_context(self) -> None:
        """Allow the last processed context to be requested again."""

        self._last_context_hash = None

    async def wait_idle(self) -> None:
        """Wait until every scheduled task has finished."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        self._closed = True
        self._generation += 1
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------
    async def _process(self, generation: int, request: SuggestionRequest) -> None:
        if self._debounce:
            await asyncio.sleep(self._debounce)
        if not self.is_current(generation):
            LOGGER.debug("Generation %s superseded during debounce", generation)
            return

        digest = context_hash(request.context)
        if digest == self._last_context_hash:
            LOGGER.debug("Context unchanged since last processed request; skipping generation %s", generation)
            emit("suggestion.skipped", {"generation": generation})
            return

        guard = GenerationGuard(generation, lambda: self._generation)
        try:
            outcome = await self._handler(request, guard)
        except GenerationSuperseded as exc:
            LOGGER.debug("Generation %s superseded mid-flight by %s", exc.generation, exc.current)
            emit("suggestion.superseded", {"generation": generation})
            return
        except Exception:
            LOGGER.exception("Suggestion handler failed for generation %s", generation)
            return

        if not guard.is_current:
            LOGGER.debug("Discarding outcome of stale generation %s", generation)
            emit("suggestion.superseded", {"generation": generation})
            return
        if outcome.is_settled:
            self._last_context_hash = digest
        self._publish(generation, request, outcome)
