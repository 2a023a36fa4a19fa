"""Tests for the model-backed collaborator services and their parsers."""

from __future__ import annotations

import json
from typing import cast

import httpx
import pytest
from openai import AsyncOpenAI

from nextedit.ai import prompts
from nextedit.ai.client import AIClient, ClientSettings
from nextedit.ai.services import (
    OpenAIClassificationService,
    OpenAICompletionService,
    OpenAIEditProposalService,
    clean_completion,
    parse_classification,
    parse_edit_proposals,
    strip_code_fences,
)
from nextedit.core.edits import Classification, EditKind
from nextedit.core.errors import ClassificationUnavailable, CompletionUnavailable, ProposalUnavailable
from tests.helpers import FakeCompletions, chat_response, make_openai_stub


def _client(completions: FakeCompletions) -> AIClient:
    settings = ClientSettings(
        base_url="https://example.invalid/v1",
        api_key="sk-test",
        model="gpt-main",
        max_retries=1,
        retry_min_seconds=0.0,
        retry_max_seconds=0.0,
    )
    return AIClient(settings, client=cast(AsyncOpenAI, make_openai_stub(completions)))


def test_parse_classification_accepts_json_and_plain_labels() -> None:
    assert parse_classification('{"classification": "complex_edit"}') is Classification.COMPLEX_EDIT
    assert parse_classification("SIMPLE_INSERTION") is Classification.SIMPLE_INSERTION
    assert parse_classification('"NO_SUGGESTION"') is Classification.NO_SUGGESTION
    assert parse_classification('{"classification": "MAYBE"}') is Classification.NO_SUGGESTION
    assert parse_classification(None) is Classification.NO_SUGGESTION


def test_parse_edit_proposals_orders_by_confidence_and_skips_bad_entries() -> None:
    content = json.dumps(
        {
            "changes": [
                {"type": "DELETE", "oldText": "x;", "newText": "", "confidence": 0.4},
                {"type": "BOGUS", "oldText": "y", "newText": "z", "confidence": 1.0},
                "not a change",
                {"type": "replace", "oldText": "retrn", "newText": "return", "confidence": 0.9},
            ]
        }
    )

    edits = parse_edit_proposals(content)

    assert [edit.kind for edit in edits] == [EditKind.REPLACE, EditKind.DELETE]
    assert edits[0].anchor_text == "retrn"
    assert edits[0].new_text == "return"


def test_parse_edit_proposals_tolerates_fences_and_garbage() -> None:
    fenced = '```json\n{"changes": [{"type": "INSERT", "oldText": "", "newText": ";", "confidence": 0.5}]}\n```'

    assert [edit.kind for edit in parse_edit_proposals(fenced)] == [EditKind.INSERT]
    assert parse_edit_proposals("not json") == []
    assert parse_edit_proposals('{"changes": "nope"}') == []
    assert parse_edit_proposals(None) == []


def test_completion_cleanup() -> None:
    assert strip_code_fences("```java\nint x = 1;\n```") == "int x = 1;"
    assert clean_completion("```\n   \n```") is None
    assert clean_completion(None) is None
    assert clean_completion("    return x;\n") == "    return x;\n"


@pytest.mark.asyncio
async def test_classification_service_uses_small_budget_and_schema() -> None:
    completions = FakeCompletions(chat_response('{"classification": "COMPLEX_EDIT"}'))
    service = OpenAIClassificationService(_client(completions), model="gpt-mini")

    verdict = await service.classify("int x = String.parseInt[CURSOR_HERE]", "Java", "incomplete expression")

    assert verdict is Classification.COMPLEX_EDIT
    payload = completions.calls[0]
    assert payload["model"] == "gpt-mini"
    assert payload["max_tokens"] == 20
    assert payload["temperature"] == 0.0
    assert payload["response_format"] == prompts.CLASSIFICATION_SCHEMA
    assert "Editor hints: incomplete expression" in payload["messages"][0]["content"]
    assert payload["messages"][1]["role"] == "user"


@pytest.mark.asyncio
async def test_completion_service_strips_fences_and_sends_stop_sequences() -> None:
    completions = FakeCompletions(chat_response("```java\nreturn x;\n```"))
    service = OpenAICompletionService(_client(completions))

    text = await service.complete("int f() {\n[CURSOR_HERE]", "Java")

    assert text == "return x;"
    payload = completions.calls[0]
    assert payload["model"] == "gpt-main"
    assert payload["stop"] == list(prompts.COMPLETION_STOP_SEQUENCES)


@pytest.mark.asyncio
async def test_edit_proposal_service_parses_changes() -> None:
    body = {"changes": [{"type": "REPLACE", "oldText": "retrn x;", "newText": "return x;", "confidence": 0.8}]}
    completions = FakeCompletions(chat_response(json.dumps(body), finish_reason="length"))
    service = OpenAIEditProposalService(_client(completions))

    edits = await service.propose_edits("retrn x;[CURSOR_HERE]", "Java")

    assert len(edits) == 1
    assert edits[0].kind is EditKind.REPLACE
    assert completions.calls[0]["response_format"] == prompts.EDIT_PROPOSAL_SCHEMA


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("factory", "method", "error"),
    [
        (OpenAIClassificationService, "classify", ClassificationUnavailable),
        (OpenAICompletionService, "complete", CompletionUnavailable),
        (OpenAIEditProposalService, "propose_edits", ProposalUnavailable),
    ],
)
async def test_network_failures_become_collaborator_unavailable(factory, method, error) -> None:
    completions = FakeCompletions(httpx.ConnectError("connection refused"))
    service = factory(_client(completions))

    with pytest.raises(error) as excinfo:
        await getattr(service, method)("ctx", "Java")

    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)
