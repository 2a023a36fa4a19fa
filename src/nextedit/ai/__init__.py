"""Model-facing layer: the OpenAI client wrapper, prompts and collaborator services."""

from .client import AIClient, ChatResult, ClientSettings
from .services import (
    ClassificationService,
    CompletionService,
    EditProposalService,
    OpenAIClassificationService,
    OpenAICompletionService,
    OpenAIEditProposalService,
)

__all__ = [
    "AIClient",
    "ChatResult",
    "ClientSettings",
    "ClassificationService",
    "CompletionService",
    "EditProposalService",
    "OpenAIClassificationService",
    "OpenAICompletionService",
    "OpenAIEditProposalService",
]
