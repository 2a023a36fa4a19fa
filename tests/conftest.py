"""Shared pytest fixtures."""

from __future__ import annotations

import os
from typing import Iterator

import pytest

from nextedit import app
from nextedit.services.telemetry import InMemoryTelemetrySink


@pytest.fixture
def telemetry_sink() -> Iterator[InMemoryTelemetrySink]:
    sink = InMemoryTelemetrySink(capacity=100)
    detach = sink.attach()
    try:
        yield sink
    finally:
        detach()


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in [key for key in os.environ if key.startswith("NEXTEDIT_")] + ["OPENAI_API_KEY"]:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(app, "_MISSING_KEY_WARNED", False)
