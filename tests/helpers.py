"""Shared test helpers and stub collaborators.

Import from here instead of duplicating these classes in individual test files::

    from tests.helpers import FakeClassification, FakeCompletion, FakeProposals
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any, List

from nextedit.core.edits import Classification, RawEdit


class FakeClassification:
    """Returns (or raises) a fixed verdict, optionally after a delay."""

    def __init__(self, result: Any = Classification.SIMPLE_INSERTION, *, delay: float = 0.0) -> None:
        self.result = result
        self.delay = delay
        self.calls: list[tuple[str, str, str | None]] = []

    async def classify(self, context: str, language: str, hints: str | None = None) -> Classification:
        self.calls.append((context, language, hints))
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class FakeCompletion:
    def __init__(self, result: Any = "return x;") -> None:
        self.result = result
        self.calls = 0

    async def complete(self, context: str, language: str) -> str | None:
        self.calls += 1
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class FakeProposals:
    def __init__(
        self, edits: List[RawEdit] | None = None, *, error: Exception | None = None, delay: float = 0.0
    ) -> None:
        self.edits = edits or []
        self.error = error
        self.delay = delay
        self.calls = 0

    async def propose_edits(self, context: str, language: str) -> List[RawEdit]:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.edits)


class FakeCompletions:
    """Stands in for ``AsyncOpenAI().chat.completions``; replies are consumed in order."""

    def __init__(self, *replies: Any) -> None:
        self.replies = list(replies)
        self.calls: list[dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        reply = self.replies.pop(0) if self.replies else chat_response(None)
        if isinstance(reply, Exception):
            raise reply
        return reply


def chat_response(content: str | None, *, finish_reason: str = "stop", model: str = "test-model") -> SimpleNamespace:
    message = SimpleNamespace(content=content)
    choice = SimpleNamespace(message=message, finish_reason=finish_reason)
    usage = SimpleNamespace(prompt_tokens=12, completion_tokens=3)
    return SimpleNamespace(choices=[choice], usage=usage, model=model)


def make_openai_stub(completions: FakeCompletions) -> SimpleNamespace:
    closed = {"value": False}

    async def close() -> None:
        closed["value"] = True

    return SimpleNamespace(chat=SimpleNamespace(completions=completions), close=close, closed=closed)
