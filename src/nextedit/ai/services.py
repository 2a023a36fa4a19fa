"""Collaborator interfaces for the suggestion models and their OpenAI backends."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, List, Mapping, Protocol

import httpx
from openai import OpenAIError

from ..core.edits import Classification, RawEdit
from ..core.errors import ClassificationUnavailable, CompletionUnavailable, ProposalUnavailable
from . import prompts
from .client import AIClient, ChatResult

LOGGER = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^\s*`{3,}[\w+#.-]*[ \t]*\n?|\n?[ \t]*`{3,}\s*$")
_NETWORK_ERRORS = (OpenAIError, httpx.HTTPError)


class ClassificationService(Protocol):
    async def classify(
        self, context: str, language: str, hints: str | None = None
    ) -> Classification:  # pragma: no cover - protocol stub
        ...


class CompletionService(Protocol):
    async def complete(self, context: str, language: str) -> str | None:  # pragma: no cover - protocol stub
        ...


class EditProposalService(Protocol):
    async def propose_edits(self, context: str, language: str) -> List[RawEdit]:  # pragma: no cover - protocol stub
        ...


def strip_code_fences(text: str) -> str:
    """Remove a leading/trailing markdown fence the model wrapped around code."""

    return _FENCE_RE.sub("", text)


def parse_classification(content: str | None) -> Classification:
    if not content:
        return Classification.NO_SUGGESTION
    try:
        payload = json.loads(content)
    except json.JSONDecodeError:
        # Plain-text label without the JSON envelope.
        return Classification.parse(content.strip().strip('"'))
    if isinstance(payload, Mapping):
        return Classification.parse(payload.get("classification"))
    return Classification.parse(payload)


def parse_edit_proposals(content: str | None) -> List[RawEdit]:
    """Parse the ``{"changes": [...]}`` payload; highest confidence first."""

    if not content:
        return []
    try:
        payload = json.loads(strip_code_fences(content))
    except json.JSONDecodeError as exc:
        LOGGER.warning("Edit proposal payload is not valid JSON: %s", exc)
        return []
    changes = payload.get("changes") if isinstance(payload, Mapping) else payload
    if not isinstance(changes, list):
        LOGGER.warning("Edit proposal payload has no changes array")
        return []
    edits: List[RawEdit] = []
    for index, entry in enumerate(changes):
        if not isinstance(entry, Mapping):
            continue
        try:
            edits.append(RawEdit.from_payload(entry))
        except ValueError as exc:
            LOGGER.warning("Skipping malformed change %s: %s", index, exc)
    edits.sort(key=lambda edit: edit.confidence, reverse=True)
    return edits


def clean_completion(content: str | None) -> str | None:
    if content is None:
        return None
    text = strip_code_fences(content)
    if not text.strip():
        return None
    return text


class OpenAIClassificationService:
    """Classifies the cursor situation with a small, fast model."""

    def __init__(self, client: AIClient, *, model: str | None = None, max_tokens: int = 20) -> None:
        self._client = client
        self._model = model
        self._max_tokens = max_tokens

    async def classify(self, context: str, language: str, hints: str | None = None) -> Classification:
        result = await _chat(
            self._client,
            ClassificationUnavailable,
            system=prompts.classification_prompt(language) + prompts.hints_note(hints),
            user=context,
            model=self._model,
            response_format=prompts.CLASSIFICATION_SCHEMA,
            temperature=0.0,
            max_tokens=self._max_tokens,
        )
        classification = parse_classification(result.content)
        LOGGER.debug("Classification for %s context: %s", language, classification.value)
        return classification


class OpenAICompletionService:
    """Produces inline completion text for the cursor position."""

    def __init__(
        self,
        client: AIClient,
        *,
        model: str | None = None,
        max_tokens: int = 100,
        temperature: float = 0.3,
    ) -> None:
        self._client = client
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature

    async def complete(self, context: str, language: str) -> str | None:
        result = await _chat(
            self._client,
            CompletionUnavailable,
            system=prompts.completion_prompt(language),
            user=context,
            model=self._model,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
            stop=prompts.COMPLETION_STOP_SEQUENCES,
        )
        return clean_completion(result.content)


class OpenAIEditProposalService:
    """Asks the main model for anchored multi-edit corrections."""

    def __init__(
        self,
        client: AIClient,
        *,
        model: str | None = None,
        max_tokens: int = 500,
        temperature: float = 0.2,
    ) -> None:
        self._client = client
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature

    async def propose_edits(self, context: str, language: str) -> List[RawEdit]:
        result = await _chat(
            self._client,
            ProposalUnavailable,
            system=prompts.edit_proposal_prompt(language),
            user=context,
            model=self._model,
            response_format=prompts.EDIT_PROPOSAL_SCHEMA,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        if result.truncated:
            LOGGER.warning("Edit proposal hit max_tokens=%s; payload may be incomplete", self._max_tokens)
        return parse_edit_proposals(result.content)


async def _chat(
    client: AIClient,
    error_cls: type[Exception],
    *,
    system: str,
    user: str,
    **options: Any,
) -> ChatResult:
    messages = [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]
    try:
        return await client.chat(messages, **options)
    except _NETWORK_ERRORS as exc:
        raise error_cls(f"Model request failed: {exc}") from exc


__all__ = [
    "ClassificationService",
    "CompletionService",
    "EditProposalService",
    "OpenAIClassificationService",
    "OpenAICompletionService",
    "OpenAIEditProposalService",
    "parse_classification",
    "parse_edit_proposals",
    "clean_completion",
    "strip_code_fences",
]
